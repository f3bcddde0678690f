from datetime import datetime, timezone

from sublet_ingest.schemas.listings import ExtractedFields, ListingRecord
from sublet_ingest.schemas.posts import RawPost
from sublet_ingest.services.gazetteer import GeoPoint
from sublet_ingest.services.listings import build_listing_record, compute_rent_term, merge_listing

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2024, 2, 1, tzinfo=timezone.utc)


def test_compute_rent_term_from_dates_and_duration_text() -> None:
    assert compute_rent_term("2024-03-01", "2024-05-01", None) == "short_term"
    assert compute_rent_term("2024-01-01", "2024-07-02", None) == "short_term"
    assert compute_rent_term("2024-01-01", "2024-07-03", None) == "long_term"
    assert compute_rent_term(None, None, "3 months") == "short_term"
    assert compute_rent_term(None, None, "1 year") == "long_term"
    assert compute_rent_term("01.03", "15.04", None) is None
    assert compute_rent_term(None, None, None) is None


def test_build_listing_record_flags_heuristic_records_for_review() -> None:
    fields = ExtractedFields.model_validate(
        {
            "price": {"amount": 0, "currency": "ILS"},
            "location": {"city": "Tel Aviv", "neighborhood": "Florentin"},
            "dates": {"startDate": "2024-03-01", "endDate": "2024-04-01"},
        }
    )
    post = RawPost(
        text="Room in Florentin",
        source_url="https://example.com/p/1",
        images=["https://cdn.example.com/raw.jpg"],
        group_context="Sublets TLV",
    )

    record = build_listing_record(
        listing_id="abc",
        post=post,
        fields=fields,
        content_hash="0123456789abcdef",
        coordinates=GeoPoint(32.0560, 34.7680),
        images=["https://storage.test/a.jpg"],
        source="heuristic",
        parser_version="test",
        now=T0,
    )

    assert record.price is None
    assert record.needs_review
    assert record.extraction_source == "heuristic"
    assert record.location == "Florentin, Tel Aviv"
    assert record.rent_term == "short_term"
    assert (record.lat, record.lng) == (32.0560, 34.7680)
    assert record.images == ["https://storage.test/a.jpg"]
    assert record.attachment_urls == ["https://cdn.example.com/raw.jpg"]
    assert record.source_group_name == "Sublets TLV"
    assert record.status == "Available"


def test_merge_keeps_status_created_at_and_known_values() -> None:
    existing = ListingRecord(
        id="abc",
        status="Taken",
        price=4000,
        city="Tel Aviv",
        lat=32.05,
        lng=34.76,
        amenities={"wifi": True},
        created_at=T0,
    )
    incoming = ListingRecord(
        id="abc",
        price=None,
        city="Jaffa",
        summary="",
        amenities={"ac": True},
        created_at=T1,
        last_parsed_at=T1,
    )

    merged = merge_listing(existing, incoming)

    assert merged.status == "Taken"
    assert merged.created_at == T0
    assert merged.price == 4000
    assert merged.city == "Jaffa"
    assert merged.summary is None
    assert (merged.lat, merged.lng) == (32.05, 34.76)
    assert merged.amenities == {"wifi": True, "ac": True}
    assert merged.last_parsed_at == T1


def test_merge_moves_coordinates_as_a_pair() -> None:
    existing = ListingRecord(id="abc", lat=32.05, lng=34.76)

    moved = merge_listing(existing, ListingRecord(id="abc", lat=32.10, lng=34.80))
    half = merge_listing(existing, ListingRecord(id="abc", lat=32.10))

    assert (moved.lat, moved.lng) == (32.10, 34.80)
    assert (half.lat, half.lng) == (32.05, 34.76)
    assert merge_listing(None, moved) is moved


def test_merge_accepts_zero_zero_coordinates_as_a_real_point() -> None:
    existing = ListingRecord(id="abc", lat=32.05, lng=34.76)

    merged = merge_listing(existing, ListingRecord(id="abc", lat=0.0, lng=0.0))

    assert ListingRecord(id="null-island", lat=0.0, lng=0.0).has_coordinates
    assert (merged.lat, merged.lng) == (0.0, 0.0)
