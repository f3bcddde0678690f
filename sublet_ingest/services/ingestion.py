from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import time
from typing import Any

from opentelemetry import trace

from sublet_ingest.core.errors import ConfigurationFailure
from sublet_ingest.core.hashing import canonicalize_text, content_hash, stable_id
from sublet_ingest.schemas.listings import ExtractedFields, ListingRecord
from sublet_ingest.schemas.posts import RawPost, Rejected
from sublet_ingest.services.extraction import ExtractionOutcome, FallbackExtractionPolicy
from sublet_ingest.services.gazetteer import GeoPoint
from sublet_ingest.services.geocoding import Geocoder
from sublet_ingest.services.images import ImageResolver
from sublet_ingest.services.listings import build_listing_record
from sublet_ingest.services.normalizer import normalize
from sublet_ingest.services.repository import ListingRepository, RepositoryUnavailableError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEADLINE_EXCEEDED = "batch deadline exceeded"
PREVIEW_LENGTH = 80


@dataclass(slots=True)
class ItemResult:
    id: str | None = None
    error: str | None = None
    duplicate_of: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BatchResult:
    results: list[ItemResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    @property
    def success(self) -> bool:
        return self.failed == 0 or self.processed > 0


async def resolve_coordinates(
    fields: ExtractedFields,
    *,
    geocoder: Geocoder | None,
    hint: GeoPoint | None,
    previous: ListingRecord | None,
) -> GeoPoint | None:
    """Geocoded point, else the dictionary hint, else stored coordinates. Never a default city."""
    query = fields.location.geocode_query()
    if query and geocoder is not None:
        point = await geocoder.geocode(query)
        if point is not None:
            return point
    if hint is not None:
        return hint
    if previous is not None and previous.has_coordinates and previous.lat is not None and previous.lng is not None:
        return GeoPoint(previous.lat, previous.lng)
    return None


class IngestionOrchestrator:
    def __init__(
        self,
        *,
        repository: ListingRepository,
        extraction: FallbackExtractionPolicy,
        geocoder: Geocoder | None,
        images: ImageResolver,
        parser_version: str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._extraction = extraction
        self._geocoder = geocoder
        self._images = images
        self._parser_version = parser_version
        self._clock = clock
        self._monotonic = monotonic

    async def ingest(self, items: list[Any], *, deadline: float | None = None) -> BatchResult:
        """Process ``items`` in order. ``deadline`` is a ``monotonic`` timestamp after which no item starts."""
        with tracer.start_as_current_span("ingest.batch") as span:
            span.set_attribute("ingest.batch_size", len(items))
            self._extraction.ensure_ready()

            batch = BatchResult()
            for index, item in enumerate(items):
                if deadline is not None and self._monotonic() >= deadline:
                    skipped = len(items) - index
                    logger.warning("batch deadline exceeded; %s items not started", skipped)
                    batch.results.extend(ItemResult(error=DEADLINE_EXCEEDED) for _ in range(skipped))
                    break
                batch.results.append(await self.ingest_item(index, item))

            span.set_attribute("ingest.processed", batch.processed)
            span.set_attribute("ingest.failed", batch.failed)
            logger.info("batch done: processed=%s failed=%s", batch.processed, batch.failed)
            return batch

    async def ingest_item(self, index: int, item: Any) -> ItemResult:
        post = normalize(item)
        if isinstance(post, Rejected):
            logger.info("item %s rejected: %s", index, post.reason)
            return ItemResult(error=post.reason)

        with tracer.start_as_current_span("ingest.item") as span:
            span.set_attribute("ingest.index", index)
            try:
                return await self._process(post, span)
            except (ConfigurationFailure, RepositoryUnavailableError):
                raise
            except Exception as exc:
                logger.exception("item %s failed; text=%r", index, post.text[:PREVIEW_LENGTH])
                span.record_exception(exc)
                return ItemResult(error=str(exc) or exc.__class__.__name__)

    async def _process(self, post: RawPost, span: trace.Span) -> ItemResult:
        by_url = await self._repository.find_by_source_url(post.source_url) if post.source_url else None
        listing_id = by_url.id if by_url is not None else stable_id(post)
        fingerprint = content_hash(post.text)
        span.set_attribute("listing.id", listing_id)

        holder = None
        if canonicalize_text(post.text):
            holder = await self._repository.find_by_content_hash(fingerprint)
        if holder is not None and holder.id != listing_id:
            logger.info("listing %s duplicates stored listing %s by content hash", listing_id, holder.id)
            return ItemResult(id=holder.id, duplicate_of=holder.id)

        outcome = await self._extraction.extract(post.text, post.group_context)
        span.set_attribute("extraction.source", outcome.source)
        previous = by_url if by_url is not None else await self._repository.get_listing(listing_id)
        coordinates = await resolve_coordinates(
            outcome.fields,
            geocoder=self._geocoder,
            hint=outcome.coordinates_hint,
            previous=previous,
        )
        images = await self._images.resolve(post.images)

        record = self._build_record(listing_id, post, outcome, fingerprint, coordinates, images)
        stored = await self._repository.upsert_listing(record)
        logger.info(
            "stored listing %s (source=%s, geocoded=%s, images=%s)",
            stored.id,
            outcome.source,
            coordinates is not None,
            len(images),
        )
        return ItemResult(id=stored.id)

    def _build_record(
        self,
        listing_id: str,
        post: RawPost,
        outcome: ExtractionOutcome,
        fingerprint: str,
        coordinates: GeoPoint | None,
        images: list[str],
    ) -> ListingRecord:
        return build_listing_record(
            listing_id=listing_id,
            post=post,
            fields=outcome.fields,
            content_hash=fingerprint,
            coordinates=coordinates,
            images=images,
            source=outcome.source,
            parser_version=self._parser_version,
            now=self._clock(),
        )
