from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
import json
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from sublet_ingest.core.config import get_settings
from sublet_ingest.core.errors import PersistenceFailure
from sublet_ingest.schemas.listings import ListingRecord
from sublet_ingest.services.dedupe import DedupeRecordSnapshot
from sublet_ingest.services.listings import merge_listing
from sublet_ingest.services.store import InMemoryListingStore


class RepositoryError(PersistenceFailure):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


SCHEMA_SQL = """
create table if not exists listings (
  id text primary key,
  source_url text,
  content_hash text,
  needs_review boolean not null default false,
  lat double precision,
  lng double precision,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now(),
  payload jsonb not null
);
create index if not exists listings_source_url_idx on listings (source_url);
create index if not exists listings_content_hash_idx on listings (content_hash);
"""


class ListingRepository(Protocol):
    async def get_listing(self, listing_id: str) -> ListingRecord | None: ...

    async def find_by_source_url(self, source_url: str) -> ListingRecord | None: ...

    async def find_by_content_hash(self, content_hash: str) -> ListingRecord | None: ...

    async def upsert_listing(self, record: ListingRecord) -> ListingRecord: ...

    async def list_dedupe_snapshots(self) -> list[DedupeRecordSnapshot]: ...

    async def delete_listings(self, listing_ids: list[str], *, batch_size: int) -> int: ...

    async def close(self) -> None: ...


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def get_listing(self, listing_id: str) -> ListingRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow("select payload from listings where id = $1", listing_id)
        except pg_exc.PostgresError as exc:
            raise RepositoryError(f"failed to load listing {listing_id}") from exc
        return self._row_to_record(row) if row is not None else None

    async def find_by_source_url(self, source_url: str) -> ListingRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                select payload
                from listings
                where source_url = $1
                order by created_at asc, id asc
                limit 1
                """,
                source_url,
            )
        except pg_exc.PostgresError as exc:
            raise RepositoryError("failed to look up listing by source url") from exc
        return self._row_to_record(row) if row is not None else None

    async def find_by_content_hash(self, content_hash: str) -> ListingRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                select payload
                from listings
                where content_hash = $1
                order by created_at asc, id asc
                limit 1
                """,
                content_hash,
            )
        except pg_exc.PostgresError as exc:
            raise RepositoryError("failed to look up listing by content hash") from exc
        return self._row_to_record(row) if row is not None else None

    async def upsert_listing(self, record: ListingRecord) -> ListingRecord:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        "select payload from listings where id = $1 for update",
                        record.id,
                    )
                    existing = self._row_to_record(row) if row is not None else None
                    merged = merge_listing(existing, record)
                    await conn.execute(
                        """
                        insert into listings (
                          id, source_url, content_hash, needs_review, lat, lng, created_at, updated_at, payload
                        )
                        values ($1, $2, $3, $4, $5, $6, $7, now(), $8::jsonb)
                        on conflict (id) do update set
                          source_url = excluded.source_url,
                          content_hash = excluded.content_hash,
                          needs_review = excluded.needs_review,
                          lat = excluded.lat,
                          lng = excluded.lng,
                          updated_at = now(),
                          payload = excluded.payload
                        """,
                        merged.id,
                        merged.source_url,
                        merged.content_hash,
                        merged.needs_review,
                        merged.lat,
                        merged.lng,
                        merged.created_at or datetime.now(timezone.utc),
                        json.dumps(merged.model_dump(mode="json", by_alias=True)),
                    )
        except pg_exc.PostgresError as exc:
            raise RepositoryError(f"failed to upsert listing {record.id}") from exc
        return merged

    async def list_dedupe_snapshots(self) -> list[DedupeRecordSnapshot]:
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                """
                select id, source_url, content_hash, needs_review, lat, lng
                from listings
                order by created_at asc, id asc
                """
            )
        except pg_exc.PostgresError as exc:
            raise RepositoryError("failed to list listings") from exc
        return [
            DedupeRecordSnapshot(
                record_id=row["id"],
                source_url=row["source_url"],
                content_hash=row["content_hash"],
                needs_review=bool(row["needs_review"]),
                lat=row["lat"],
                lng=row["lng"],
            )
            for row in rows
        ]

    async def delete_listings(self, listing_ids: list[str], *, batch_size: int) -> int:
        if not listing_ids:
            return 0
        pool = await self._get_pool()
        size = max(1, batch_size)
        deleted = 0
        try:
            async with pool.acquire() as conn:
                for start in range(0, len(listing_ids), size):
                    chunk = listing_ids[start : start + size]
                    async with conn.transaction():
                        status = await conn.execute("delete from listings where id = any($1::text[])", chunk)
                    deleted += _affected_rows(status)
        except pg_exc.PostgresError as exc:
            raise RepositoryError("failed to delete duplicate listings") from exc
        return deleted

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("SUBLET_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

        try:
            async with pool.acquire() as conn:
                await conn.execute(SCHEMA_SQL)
        except Exception as exc:
            await pool.close()
            raise RepositoryUnavailableError("failed to ensure listings schema") from exc
        self._pool = pool
        return self._pool

    @staticmethod
    def _row_to_record(row: asyncpg.Record) -> ListingRecord:
        payload: Any = row["payload"]
        if isinstance(payload, str):
            payload = json.loads(payload)
        return ListingRecord.model_validate(payload)


def _affected_rows(status: str) -> int:
    _, _, count = status.rpartition(" ")
    return int(count) if count.isdigit() else 0


@lru_cache
def get_repository() -> ListingRepository:
    settings = get_settings()
    if settings.storage_backend == "memory":
        return InMemoryListingStore()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
