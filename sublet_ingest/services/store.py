from __future__ import annotations

import asyncio

from sublet_ingest.schemas.listings import ListingRecord
from sublet_ingest.services.dedupe import DedupeRecordSnapshot
from sublet_ingest.services.listings import merge_listing


class InMemoryListingStore:
    """Dict-backed listing store for local runs and tests. Insertion order is preserved."""

    def __init__(self) -> None:
        self.listings: dict[str, ListingRecord] = {}
        self.delete_batches: list[list[str]] = []
        self._lock = asyncio.Lock()

    async def get_listing(self, listing_id: str) -> ListingRecord | None:
        return self.listings.get(listing_id)

    async def find_by_source_url(self, source_url: str) -> ListingRecord | None:
        return next((record for record in self.listings.values() if record.source_url == source_url), None)

    async def find_by_content_hash(self, content_hash: str) -> ListingRecord | None:
        return next((record for record in self.listings.values() if record.content_hash == content_hash), None)

    async def upsert_listing(self, record: ListingRecord) -> ListingRecord:
        async with self._lock:
            merged = merge_listing(self.listings.get(record.id), record)
            self.listings[merged.id] = merged
            return merged

    async def list_dedupe_snapshots(self) -> list[DedupeRecordSnapshot]:
        return [
            DedupeRecordSnapshot(
                record_id=record.id,
                source_url=record.source_url,
                content_hash=record.content_hash,
                needs_review=record.needs_review,
                lat=record.lat,
                lng=record.lng,
            )
            for record in self.listings.values()
        ]

    async def delete_listings(self, listing_ids: list[str], *, batch_size: int) -> int:
        size = max(1, batch_size)
        deleted = 0
        async with self._lock:
            for start in range(0, len(listing_ids), size):
                chunk = listing_ids[start : start + size]
                self.delete_batches.append(chunk)
                for listing_id in chunk:
                    if self.listings.pop(listing_id, None) is not None:
                        deleted += 1
        return deleted

    async def close(self) -> None:
        return None
