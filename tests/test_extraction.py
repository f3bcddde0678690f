import asyncio

import pytest

from sublet_ingest.core.errors import ConfigurationFailure, ExtractionFailure
from sublet_ingest.core.ratelimit import MinIntervalLimiter
from sublet_ingest.schemas.listings import ExtractedFields
from sublet_ingest.services.extraction import FallbackExtractionPolicy, HeuristicFieldExtractor
from sublet_ingest.services.gazetteer import GeoPoint, build_tel_aviv_gazetteer
from sublet_ingest.services.heuristics import HeuristicExtractor


class _StubExtractor:
    source = "ai"

    def __init__(self, fields: ExtractedFields | None = None, error: Exception | None = None) -> None:
        self.fields = fields or ExtractedFields()
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def extract(self, text: str, group_hint: str | None = None) -> ExtractedFields:
        self.calls.append((text, group_hint))
        if self.error is not None:
            raise self.error
        return self.fields


def _policy(primary, *, limiter: MinIntervalLimiter | None = None) -> FallbackExtractionPolicy:
    fallback = HeuristicFieldExtractor(HeuristicExtractor(build_tel_aviv_gazetteer()))
    return FallbackExtractionPolicy(primary, fallback, limiter=limiter)


def test_policy_without_primary_uses_heuristics() -> None:
    outcome = asyncio.run(_policy(None).extract("Lovely room in Florentin, 3000 NIS"))

    assert outcome.source == "heuristic"
    assert outcome.needs_review
    assert outcome.fields.location.neighborhood == "Florentin"
    assert outcome.fields.price.amount == 3000.0
    assert outcome.coordinates_hint == GeoPoint(32.0560, 34.7680)


def test_policy_returns_ai_fields_with_heuristic_hint() -> None:
    primary = _StubExtractor(ExtractedFields.model_validate({"location": {"city": "Tel Aviv"}}))

    outcome = asyncio.run(_policy(primary).extract("Lovely room in Florentin", "Sublets TLV"))

    assert outcome.source == "ai"
    assert not outcome.needs_review
    assert outcome.fields.location.city == "Tel Aviv"
    assert outcome.coordinates_hint == GeoPoint(32.0560, 34.7680)
    assert primary.calls == [("Lovely room in Florentin", "Sublets TLV")]


def test_policy_falls_back_to_heuristics_on_extraction_failure() -> None:
    primary = _StubExtractor(error=ExtractionFailure("model response is not JSON"))

    outcome = asyncio.run(_policy(primary).extract("Lovely room in Florentin"))

    assert outcome.source == "heuristic"
    assert outcome.needs_review
    assert outcome.error == "model response is not JSON"
    assert outcome.fields.location.neighborhood == "Florentin"


def test_policy_propagates_configuration_failure() -> None:
    primary = _StubExtractor(error=ConfigurationFailure("Gemini API key is not configured"))

    with pytest.raises(ConfigurationFailure):
        asyncio.run(_policy(primary).extract("Lovely room in Florentin"))


def test_policy_spaces_ai_calls_with_limiter() -> None:
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    limiter = MinIntervalLimiter(4.5, clock=lambda: 50.0, sleep=fake_sleep)
    policy = _policy(_StubExtractor(), limiter=limiter)

    async def run() -> None:
        await policy.extract("first post text")
        await policy.extract("second post text")

    asyncio.run(run())
    assert sleeps == [4.5]
