from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol

from sublet_ingest.core.errors import ExtractionFailure
from sublet_ingest.core.ratelimit import MinIntervalLimiter
from sublet_ingest.schemas.listings import ExtractedFields, ExtractionSource
from sublet_ingest.services.gazetteer import GeoPoint
from sublet_ingest.services.heuristics import HeuristicExtractor, to_extracted_fields

logger = logging.getLogger(__name__)


class FieldExtractor(Protocol):
    source: ExtractionSource

    async def extract(self, text: str, group_hint: str | None = None) -> ExtractedFields: ...


@dataclass(slots=True)
class ExtractionOutcome:
    fields: ExtractedFields
    source: ExtractionSource
    coordinates_hint: GeoPoint | None = None
    error: str | None = None

    @property
    def needs_review(self) -> bool:
        return self.source == "heuristic"


class HeuristicFieldExtractor:
    source: ExtractionSource = "heuristic"

    def __init__(self, extractor: HeuristicExtractor) -> None:
        self._extractor = extractor

    async def extract(self, text: str, group_hint: str | None = None) -> ExtractedFields:
        fields, _ = self.extract_with_hint(text)
        return fields

    def extract_with_hint(self, text: str) -> tuple[ExtractedFields, GeoPoint | None]:
        result = self._extractor.extract(text)
        return to_extracted_fields(result, self._extractor.gazetteer), result.coordinate_hint


class FallbackExtractionPolicy:
    """AI extraction behind a rate limiter, with the heuristic extractor as the soft-failure path.

    The heuristic pass always runs so its dictionary coordinates are available as a
    geocoding fallback, whichever extractor produced the fields.
    ``ConfigurationFailure`` from the primary extractor propagates.
    """

    def __init__(
        self,
        primary: FieldExtractor | None,
        fallback: HeuristicFieldExtractor,
        *,
        limiter: MinIntervalLimiter | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._limiter = limiter

    def ensure_ready(self) -> None:
        ensure_configured = getattr(self._primary, "ensure_configured", None)
        if ensure_configured is not None:
            ensure_configured()

    async def extract(self, text: str, group_hint: str | None = None) -> ExtractionOutcome:
        heuristic_fields, hint = self._fallback.extract_with_hint(text)
        if self._primary is None:
            return ExtractionOutcome(fields=heuristic_fields, source="heuristic", coordinates_hint=hint)

        if self._limiter is not None:
            await self._limiter.wait()
        try:
            fields = await self._primary.extract(text, group_hint)
        except ExtractionFailure as exc:
            logger.warning("ai extraction failed; falling back to heuristics: %s", exc)
            return ExtractionOutcome(
                fields=heuristic_fields,
                source="heuristic",
                coordinates_hint=hint,
                error=str(exc),
            )
        return ExtractionOutcome(fields=fields, source=self._primary.source, coordinates_hint=hint)
