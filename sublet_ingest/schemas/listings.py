from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Confidence = Literal["low", "medium", "high"]
ListingType = Literal["Entire Place", "Roommate", "Studio"]
ListingStatus = Literal["Available", "Taken", "Expired"]
ExtractionSource = Literal["ai", "heuristic"]
RentTerm = Literal["short_term", "long_term"]

_CONFIDENCE_VALUES = {"low", "medium", "high"}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _as_confidence(value: Any) -> str | None:
    if isinstance(value, str) and value.strip().lower() in _CONFIDENCE_VALUES:
        return value.strip().lower()
    return None


def _as_number(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return float(value.replace(",", "").strip())
        except ValueError:
            return None
    return value


LenientConfidence = Annotated[Confidence | None, BeforeValidator(_as_confidence)]
LenientNumber = Annotated[float | None, BeforeValidator(_as_number)]


def category_to_listing_type(category: Any) -> str | None:
    if not isinstance(category, str) or not category.strip():
        return None
    lowered = category.lower()
    if "room" in lowered and ("shared" in lowered or "mate" in lowered):
        return "Roommate"
    if "studio" in lowered:
        return "Studio"
    return "Entire Place"


class PriceInfo(CamelModel):
    amount: LenientNumber = None
    currency: str | None = None
    period: str | None = None
    utilities_included: bool | None = None


class LocationInfo(CamelModel):
    country: str | None = None
    country_code: str | None = None
    city: str | None = None
    neighborhood: str | None = None
    street: str | None = None
    full_address: str | None = None
    confidence: LenientConfidence = None

    def geocode_query(self) -> str | None:
        if self.full_address and self.full_address.strip():
            return self.full_address.strip()
        if not self.city:
            return None
        parts = [self.neighborhood or "", self.city, self.country or ""]
        query = " ".join(part.strip() for part in parts if part and part.strip())
        return query or None

    def display(self) -> str | None:
        if self.full_address:
            return self.full_address
        parts = [part for part in (self.street, self.neighborhood, self.city) if part]
        return ", ".join(parts) or None


class DatesInfo(CamelModel):
    start_date: str | None = None
    end_date: str | None = None
    is_flexible: bool | None = None
    duration_text: str | None = None
    immediate_availability: bool | None = None
    confidence: LenientConfidence = None


class RoomsInfo(CamelModel):
    total_rooms: LenientNumber = None
    bedrooms: LenientNumber = None
    bathrooms: LenientNumber = None
    is_studio: bool | None = None
    floor: int | None = None
    total_floors: int | None = None


class ExtractedFields(CamelModel):
    """Structured view of one post. ``None`` everywhere means unknown."""

    price: PriceInfo = Field(default_factory=PriceInfo)
    location: LocationInfo = Field(default_factory=LocationInfo)
    dates: DatesInfo = Field(default_factory=DatesInfo)
    rooms: RoomsInfo = Field(default_factory=RoomsInfo)
    type: ListingType | None = None
    amenities: dict[str, bool] = Field(default_factory=dict)
    summary: str | None = None

    @field_validator("price", "location", "dates", "rooms", mode="before")
    @classmethod
    def _null_section(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("type", mode="before")
    @classmethod
    def _map_category(cls, value: Any) -> str | None:
        return category_to_listing_type(value)

    @field_validator("amenities", mode="before")
    @classmethod
    def _known_flags_only(cls, value: Any) -> dict[str, bool]:
        if not isinstance(value, dict):
            return {}
        return {str(key): flag for key, flag in value.items() if isinstance(flag, bool)}


class ListingRecord(CamelModel):
    id: str
    source_url: str | None = None
    content_hash: str | None = None
    original_text: str | None = None

    price: float | None = None
    currency: str | None = None
    price_period: str | None = None
    utilities_included: bool | None = None

    country: str | None = None
    country_code: str | None = None
    city: str | None = None
    neighborhood: str | None = None
    street: str | None = None
    location: str | None = None
    location_confidence: Confidence | None = None

    start_date: str | None = None
    end_date: str | None = None
    dates_flexible: bool | None = None
    duration_text: str | None = None
    immediate_availability: bool | None = None
    dates_confidence: Confidence | None = None
    rent_term: RentTerm | None = None

    total_rooms: float | None = None
    bedrooms: float | None = None
    bathrooms: float | None = None
    is_studio: bool | None = None
    floor: int | None = None
    total_floors: int | None = None

    type: ListingType | None = None
    amenities: dict[str, bool] = Field(default_factory=dict)
    summary: str | None = None

    images: list[str] = Field(default_factory=list)
    attachment_urls: list[str] = Field(default_factory=list)
    lat: float | None = None
    lng: float | None = None

    status: ListingStatus = "Available"
    needs_review: bool = False
    extraction_source: ExtractionSource | None = None
    author_name: str | None = None
    source_group_name: str | None = None
    posted_at: str | None = None
    created_at: datetime | None = None
    last_parsed_at: datetime | None = None
    parser_version: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None
