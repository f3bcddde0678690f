from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any

from opentelemetry import trace

from sublet_ingest.core import hashing
from sublet_ingest.core.errors import ConfigurationFailure, RejectedInput
from sublet_ingest.schemas.listings import ListingRecord
from sublet_ingest.schemas.posts import RawPost
from sublet_ingest.services.extraction import FallbackExtractionPolicy
from sublet_ingest.services.gazetteer import GeoPoint
from sublet_ingest.services.geocoding import Geocoder
from sublet_ingest.services.listings import build_listing_record
from sublet_ingest.services.repository import ListingRepository, RepositoryNotFoundError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TRACKED_FIELDS = ("start_date", "end_date", "location", "city", "neighborhood", "lat", "lng", "rent_term")
REPARSE_SUFFIX = "-reparse"


@dataclass(slots=True)
class ReparseResult:
    id: str
    success: bool
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    changed: list[str] = field(default_factory=list)
    error: str | None = None


class ReparseService:
    """Re-runs extraction over stored ``originalText`` without the duplicate pre-check."""

    def __init__(
        self,
        *,
        repository: ListingRepository,
        extraction: FallbackExtractionPolicy,
        geocoder: Geocoder | None,
        parser_version: str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._repository = repository
        self._extraction = extraction
        self._geocoder = geocoder
        self._parser_version = f"{parser_version}{REPARSE_SUFFIX}"
        self._clock = clock

    async def resolve_ids(
        self,
        *,
        listing_id: str | None = None,
        listing_ids: list[str] | None = None,
        source_url: str | None = None,
    ) -> list[str]:
        if listing_id:
            return [listing_id]
        if listing_ids:
            return list(dict.fromkeys(item for item in listing_ids if item))
        if source_url:
            record = await self._repository.find_by_source_url(source_url)
            if record is None:
                raise RepositoryNotFoundError(f"no listing with sourceUrl {source_url}")
            return [record.id]
        raise RejectedInput("provide id, ids or sourceUrl")

    async def reparse(self, listing_ids: list[str]) -> list[ReparseResult]:
        with tracer.start_as_current_span("reparse.batch") as span:
            span.set_attribute("reparse.count", len(listing_ids))
            self._extraction.ensure_ready()
            results = []
            for listing_id in listing_ids:
                results.append(await self.reparse_one(listing_id))
            return results

    async def reparse_one(self, listing_id: str) -> ReparseResult:
        try:
            record = await self._repository.get_listing(listing_id)
            if record is None:
                return ReparseResult(id=listing_id, success=False, error="listing not found")
            if not record.original_text:
                return ReparseResult(id=listing_id, success=False, error="listing has no originalText")

            outcome = await self._extraction.extract(record.original_text, record.source_group_name)
            coordinates: GeoPoint | None = None
            new_city = outcome.fields.location.city
            if new_city and new_city != record.city:
                query = outcome.fields.location.geocode_query()
                if self._geocoder is not None:
                    coordinates = await self._geocoder.geocode(query)
                coordinates = coordinates or outcome.coordinates_hint

            refreshed = build_listing_record(
                listing_id=record.id,
                post=_post_from_record(record),
                fields=outcome.fields,
                content_hash=record.content_hash or hashing.content_hash(record.original_text),
                coordinates=coordinates,
                images=list(record.images),
                source=outcome.source,
                parser_version=self._parser_version,
                now=self._clock(),
            )
            stored = await self._repository.upsert_listing(refreshed)
        except ConfigurationFailure:
            raise
        except Exception as exc:
            logger.exception("reparse failed for listing %s", listing_id)
            return ReparseResult(id=listing_id, success=False, error=str(exc) or exc.__class__.__name__)

        before = tracked_fields(record)
        after = tracked_fields(stored)
        changed = [name for name in before if before[name] != after[name]]
        logger.info("reparsed listing %s; changed=%s", listing_id, ",".join(changed) or "none")
        return ReparseResult(id=listing_id, success=True, before=before, after=after, changed=changed)


def tracked_fields(record: ListingRecord) -> dict[str, Any]:
    return record.model_dump(include=set(TRACKED_FIELDS), by_alias=True)


def _post_from_record(record: ListingRecord) -> RawPost:
    return RawPost(
        text=record.original_text or "",
        source_url=record.source_url,
        images=list(record.attachment_urls),
        posted_at=record.posted_at,
        group_context=record.source_group_name,
        author_name=record.author_name,
    )
