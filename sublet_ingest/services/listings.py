from __future__ import annotations

from datetime import date, datetime
import re
from typing import Any

from sublet_ingest.schemas.listings import (
    ExtractedFields,
    ExtractionSource,
    ListingRecord,
    RentTerm,
)
from sublet_ingest.schemas.posts import RawPost
from sublet_ingest.services.gazetteer import GeoPoint

SHORT_TERM_MAX_DAYS = 183

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DURATION_UNITS = (
    (re.compile(r"(\d+)\s*month"), 30),
    (re.compile(r"(\d+)\s*week"), 7),
    (re.compile(r"(\d+)\s*year"), 365),
)

PRESERVED_FIELDS = frozenset({"id", "status", "created_at"})
COORDINATE_FIELDS = frozenset({"lat", "lng"})


def duration_days(start_date: str | None, end_date: str | None, duration_text: str | None) -> int | None:
    if start_date and end_date and _ISO_DATE_RE.match(start_date) and _ISO_DATE_RE.match(end_date):
        try:
            start = date.fromisoformat(start_date)
            end = date.fromisoformat(end_date)
        except ValueError:
            start = end = None
        if start is not None and end is not None and end >= start:
            return (end - start).days

    lowered = (duration_text or "").lower()
    for pattern, days_per_unit in _DURATION_UNITS:
        match = pattern.search(lowered)
        if match:
            return int(match.group(1)) * days_per_unit
    return None


def compute_rent_term(start_date: str | None, end_date: str | None, duration_text: str | None) -> RentTerm | None:
    days = duration_days(start_date, end_date, duration_text)
    if days is None:
        return None
    return "short_term" if days <= SHORT_TERM_MAX_DAYS else "long_term"


def build_listing_record(
    *,
    listing_id: str,
    post: RawPost,
    fields: ExtractedFields,
    content_hash: str,
    coordinates: GeoPoint | None,
    images: list[str],
    source: ExtractionSource,
    parser_version: str,
    now: datetime,
) -> ListingRecord:
    location = fields.location
    dates = fields.dates
    rooms = fields.rooms
    return ListingRecord(
        id=listing_id,
        source_url=post.source_url,
        content_hash=content_hash,
        original_text=post.text,
        price=fields.price.amount or None,
        currency=fields.price.currency,
        price_period=fields.price.period,
        utilities_included=fields.price.utilities_included,
        country=location.country,
        country_code=location.country_code,
        city=location.city,
        neighborhood=location.neighborhood,
        street=location.street,
        location=location.display(),
        location_confidence=location.confidence,
        start_date=dates.start_date,
        end_date=dates.end_date,
        dates_flexible=dates.is_flexible,
        duration_text=dates.duration_text,
        immediate_availability=dates.immediate_availability,
        dates_confidence=dates.confidence,
        rent_term=compute_rent_term(dates.start_date, dates.end_date, dates.duration_text),
        total_rooms=rooms.total_rooms,
        bedrooms=rooms.bedrooms,
        bathrooms=rooms.bathrooms,
        is_studio=rooms.is_studio,
        floor=rooms.floor,
        total_floors=rooms.total_floors,
        type=fields.type,
        amenities=dict(fields.amenities),
        summary=fields.summary,
        images=images,
        attachment_urls=list(post.images),
        lat=coordinates.lat if coordinates else None,
        lng=coordinates.lng if coordinates else None,
        needs_review=source == "heuristic",
        extraction_source=source,
        author_name=post.author_name,
        source_group_name=post.group_context,
        posted_at=post.posted_at,
        created_at=now,
        last_parsed_at=now,
        parser_version=parser_version,
    )


def merge_listing(existing: ListingRecord | None, incoming: ListingRecord) -> ListingRecord:
    """Field-wise merge of a freshly built record into the stored one.

    Unknown incoming values never replace known stored ones, coordinates move
    as a pair, and ``status``/``createdAt`` always keep their stored values.
    """
    if existing is None:
        return incoming

    merged: dict[str, Any] = existing.model_dump()
    for name in ListingRecord.model_fields:
        if name in PRESERVED_FIELDS or name in COORDINATE_FIELDS:
            continue
        value = getattr(incoming, name)
        if _is_unknown(value):
            continue
        if name == "amenities":
            merged[name] = {**existing.amenities, **value}
        else:
            merged[name] = value

    if incoming.has_coordinates:
        merged["lat"] = incoming.lat
        merged["lng"] = incoming.lng
    if existing.created_at is None:
        merged["created_at"] = incoming.created_at
    return ListingRecord.model_validate(merged)


def _is_unknown(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False
