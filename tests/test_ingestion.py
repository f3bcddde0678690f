import asyncio
from datetime import datetime, timezone

import pytest

from sublet_ingest.core.errors import ConfigurationFailure, ExtractionFailure
from sublet_ingest.core.hashing import url_digest
from sublet_ingest.schemas.listings import ExtractedFields, ListingRecord
from sublet_ingest.services.ai_extractor import GeminiExtractor
from sublet_ingest.services.extraction import FallbackExtractionPolicy, HeuristicFieldExtractor
from sublet_ingest.services.gazetteer import GeoPoint, build_tel_aviv_gazetteer
from sublet_ingest.services.heuristics import HeuristicExtractor
from sublet_ingest.services.images import ImageResolver
from sublet_ingest.services.ingestion import DEADLINE_EXCEEDED, IngestionOrchestrator
from sublet_ingest.services.store import InMemoryListingStore

NOW = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)
LATER = datetime(2024, 2, 2, 9, 30, tzinfo=timezone.utc)
FLORENTIN = GeoPoint(32.0560, 34.7680)


class _StubExtractor:
    source = "ai"

    def __init__(self, fields: ExtractedFields | None = None, error: Exception | None = None) -> None:
        self.fields = fields or ExtractedFields()
        self.error = error

    async def extract(self, text: str, group_hint: str | None = None) -> ExtractedFields:
        if self.error is not None:
            raise self.error
        return self.fields


class _FakeGeocoder:
    def __init__(self, point: GeoPoint | None = None) -> None:
        self.point = point
        self.queries: list[str | None] = []

    async def geocode(self, query: str | None) -> GeoPoint | None:
        self.queries.append(query)
        return self.point


class _FlakyStore(InMemoryListingStore):
    async def upsert_listing(self, record: ListingRecord) -> ListingRecord:
        if record.source_url == "https://x/bad":
            raise RuntimeError("write rejected")
        return await super().upsert_listing(record)


def _orchestrator(
    store: InMemoryListingStore,
    *,
    primary=None,
    geocoder: _FakeGeocoder | None = None,
    clock=lambda: NOW,
    monotonic=lambda: 0.0,
) -> IngestionOrchestrator:
    fallback = HeuristicFieldExtractor(HeuristicExtractor(build_tel_aviv_gazetteer()))
    return IngestionOrchestrator(
        repository=store,
        extraction=FallbackExtractionPolicy(primary, fallback),
        geocoder=geocoder,
        images=ImageResolver(),
        parser_version="test",
        clock=clock,
        monotonic=monotonic,
    )


def _item(text: str, url: str | None = None, **extra) -> dict:
    item = {"text": text, **extra}
    if url is not None:
        item["url"] = url
    return item


def test_ingest_is_idempotent_by_source_url() -> None:
    store = InMemoryListingStore()
    parse_times = iter([NOW, LATER])
    orchestrator = _orchestrator(
        store,
        geocoder=_FakeGeocoder(GeoPoint(32.06, 34.77)),
        clock=lambda: next(parse_times),
    )
    item = _item("Room in Florentin, 3000 NIS per month", "https://facebook.com/groups/1/posts/2")

    async def run() -> None:
        first = await orchestrator.ingest([item])
        second = await orchestrator.ingest([item])
        assert first.results[0].id == second.results[0].id == url_digest(item["url"])
        assert second.results[0].duplicate_of is None

    asyncio.run(run())
    assert len(store.listings) == 1
    record = next(iter(store.listings.values()))
    assert record.price == 3000.0
    assert record.currency == "ILS"
    assert (record.lat, record.lng) == (32.06, 34.77)
    assert record.needs_review
    assert record.extraction_source == "heuristic"
    assert record.parser_version == "test"
    assert record.created_at == NOW
    assert record.last_parsed_at == LATER


def test_ingest_skips_same_content_under_a_different_url() -> None:
    store = InMemoryListingStore()
    orchestrator = _orchestrator(store)

    batch = asyncio.run(
        orchestrator.ingest(
            [
                _item("Sunny room in Florentin for March", "https://x/1"),
                _item("Sunny room in Florentin, for March!", "https://x/2"),
            ]
        )
    )

    original_id = url_digest("https://x/1")
    assert batch.processed == 2
    assert batch.failed == 0
    assert batch.results[1].id == original_id
    assert batch.results[1].duplicate_of == original_id
    assert list(store.listings) == [original_id]


def test_posts_without_text_are_kept_apart_by_url() -> None:
    store = InMemoryListingStore()
    orchestrator = _orchestrator(store)

    batch = asyncio.run(
        orchestrator.ingest(
            [
                {"url": "https://x/a"},
                {"url": "https://x/b", "images": ["https://cdn.example.com/b.jpg"]},
                _item("🏠🏠🏠", "https://x/c"),
            ]
        )
    )

    assert batch.processed == 3
    assert [result.duplicate_of for result in batch.results] == [None, None, None]
    assert sorted(store.listings) == sorted(url_digest(f"https://x/{suffix}") for suffix in "abc")
    assert store.listings[url_digest("https://x/b")].images == ["https://cdn.example.com/b.jpg"]


def test_ingest_reports_failures_without_aborting_the_batch() -> None:
    store = _FlakyStore()
    orchestrator = _orchestrator(store)

    batch = asyncio.run(
        orchestrator.ingest(
            [
                _item("Room in Florentin", "https://x/1"),
                "not a dict",
                {"text": "", "likes": 4},
                _item("Room in Jaffa", "https://x/bad"),
                _item("Room near Dizengoff", "https://x/3"),
            ]
        )
    )

    assert batch.processed == 2
    assert batch.failed == 3
    assert batch.success
    assert "not an object" in batch.results[1].error
    assert "likes" in batch.results[2].error
    assert batch.results[3].error == "write rejected"
    assert batch.results[4].ok
    assert len(store.listings) == 2


def test_ingest_all_rejected_is_not_a_success() -> None:
    batch = asyncio.run(_orchestrator(InMemoryListingStore()).ingest([1, "two"]))

    assert batch.processed == 0
    assert batch.failed == 2
    assert not batch.success


def test_ai_fields_are_used_and_not_flagged_for_review() -> None:
    store = InMemoryListingStore()
    fields = ExtractedFields.model_validate(
        {
            "location": {"city": "Tel Aviv", "fullAddress": "Dizengoff 50, Tel Aviv", "confidence": "high"},
            "price": {"amount": 5200, "currency": "ILS", "period": "month"},
            "type": "Entire Place",
        }
    )
    geocoder = _FakeGeocoder(GeoPoint(32.078, 34.774))
    orchestrator = _orchestrator(store, primary=_StubExtractor(fields), geocoder=geocoder)

    asyncio.run(orchestrator.ingest([_item("Whole flat on Dizengoff 50", "https://x/1")]))

    record = store.listings[url_digest("https://x/1")]
    assert not record.needs_review
    assert record.extraction_source == "ai"
    assert record.price == 5200
    assert record.type == "Entire Place"
    assert geocoder.queries == ["Dizengoff 50, Tel Aviv"]
    assert (record.lat, record.lng) == (32.078, 34.774)


def test_ai_failure_falls_back_to_heuristics_and_flags_review() -> None:
    store = InMemoryListingStore()
    primary = _StubExtractor(error=ExtractionFailure("model response is not JSON"))
    orchestrator = _orchestrator(store, primary=primary)

    batch = asyncio.run(orchestrator.ingest([_item("Lovely room in Florentin", "https://x/1")]))

    record = store.listings[url_digest("https://x/1")]
    assert batch.processed == 1
    assert record.needs_review
    assert record.extraction_source == "heuristic"
    assert record.neighborhood == "Florentin"


def test_dictionary_hint_is_used_when_geocoding_finds_nothing() -> None:
    store = InMemoryListingStore()
    orchestrator = _orchestrator(store, geocoder=_FakeGeocoder(None))

    asyncio.run(
        orchestrator.ingest(
            [
                _item("Lovely room in Florentin", "https://x/1"),
                _item("Nice place, message me for details", "https://x/2"),
            ]
        )
    )

    florentin = store.listings[url_digest("https://x/1")]
    unknown = store.listings[url_digest("https://x/2")]
    assert (florentin.lat, florentin.lng) == (FLORENTIN.lat, FLORENTIN.lng)
    assert unknown.lat is None
    assert unknown.lng is None
    assert unknown.city is None


def test_reingest_keeps_status_and_known_coordinates() -> None:
    store = InMemoryListingStore()
    fields = ExtractedFields.model_validate({"location": {"city": "Haifa"}})
    item = _item("Room with a view, message me", "https://x/1")

    first = _orchestrator(store, primary=_StubExtractor(fields), geocoder=_FakeGeocoder(GeoPoint(32.8, 35.0)))
    second = _orchestrator(store, primary=_StubExtractor(fields), geocoder=_FakeGeocoder(None))

    async def run() -> None:
        await first.ingest([item])
        listing_id = url_digest("https://x/1")
        store.listings[listing_id] = store.listings[listing_id].model_copy(update={"status": "Taken"})
        await second.ingest([item])

    asyncio.run(run())
    record = store.listings[url_digest("https://x/1")]
    assert record.status == "Taken"
    assert (record.lat, record.lng) == (32.8, 35.0)
    assert record.created_at == NOW


def test_items_after_the_deadline_are_not_started() -> None:
    store = InMemoryListingStore()
    ticks = iter([0.0, 20.0])
    orchestrator = _orchestrator(store, monotonic=lambda: next(ticks))

    batch = asyncio.run(
        orchestrator.ingest(
            [
                _item("Room in Florentin", "https://x/1"),
                _item("Room in Jaffa", "https://x/2"),
                _item("Room near Dizengoff", "https://x/3"),
            ],
            deadline=10.0,
        )
    )

    assert batch.processed == 1
    assert [result.error for result in batch.results] == [None, DEADLINE_EXCEEDED, DEADLINE_EXCEEDED]
    assert len(store.listings) == 1


def test_missing_ai_credentials_abort_the_batch() -> None:
    store = InMemoryListingStore()
    primary = GeminiExtractor(api_key=None, model="gemini-test", base_url="https://gemini.test")

    with pytest.raises(ConfigurationFailure):
        asyncio.run(_orchestrator(store, primary=primary).ingest([_item("Room in Florentin", "https://x/1")]))
    assert store.listings == {}
