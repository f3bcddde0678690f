from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import re

from sublet_ingest.schemas.listings import (
    Confidence,
    DatesInfo,
    ExtractedFields,
    LocationInfo,
    PriceInfo,
    RoomsInfo,
)
from sublet_ingest.services.gazetteer import Gazetteer, GeoPoint

HEBREW_MONTHS: dict[str, str] = {
    "ינואר": "01",
    "פברואר": "02",
    "מרץ": "03",
    "מרס": "03",
    "אפריל": "04",
    "מאי": "05",
    "יוני": "06",
    "יולי": "07",
    "אוגוסט": "08",
    "ספטמבר": "09",
    "אוקטובר": "10",
    "נובמבר": "11",
    "דצמבר": "12",
}

ENGLISH_MONTHS: dict[str, str] = {
    "january": "01",
    "jan": "01",
    "february": "02",
    "feb": "02",
    "march": "03",
    "mar": "03",
    "april": "04",
    "apr": "04",
    "may": "05",
    "june": "06",
    "jun": "06",
    "july": "07",
    "jul": "07",
    "august": "08",
    "aug": "08",
    "september": "09",
    "sep": "09",
    "sept": "09",
    "october": "10",
    "oct": "10",
    "november": "11",
    "nov": "11",
    "december": "12",
    "dec": "12",
}

HEBREW_NAMED_FLOORS: dict[str, int] = {
    "קרקע": 0,
    "ראשונה": 1,
    "ראשון": 1,
    "שנייה": 2,
    "שניה": 2,
    "שני": 2,
    "שלישית": 3,
    "שלישי": 3,
    "רביעית": 4,
    "רביעי": 4,
    "חמישית": 5,
    "חמישי": 5,
}

_HEBREW_NAME = r"[א-ת][א-ת\s'\"\-]"

_HEBREW_STREET_RE = re.compile(
    r"(?:ב)?(?:רחוב|שדרות|שדרת|סמטת)\s+"
    rf"({_HEBREW_NAME}{{0,25}})"
    rf"(?:\s+פינת\s+({_HEBREW_NAME}{{0,20}}))?"
    r"(?:\s+(\d{1,4}))?"
    r"(?=[\s,.]|$)"
)
_ENGLISH_STREET_RE = re.compile(
    r"(?:on\s+)?(\d{1,4}\s+)?([A-Za-z][A-Za-z\s\-]{2,30}?)\s+"
    r"(?:street|st|avenue|ave|boulevard|blvd|road|rd)\b\.?",
    re.IGNORECASE,
)
_HEBREW_NEIGHBORHOOD_RE = re.compile(rf"(?:ב)?שכונת\s+({_HEBREW_NAME}{{1,25}})(?=[\s,.]|$)")

_NUMERIC_RANGE_RE = re.compile(r"(\d{1,2})[./](\d{1,2})(?:[./]\d{2,4})?\s*[-–]\s*(\d{1,2})[./](\d{1,2})")
_HEBREW_RANGE_RE = re.compile(r"מ[- ](\d{1,2})\s+ב([א-ת]+)\s+עד\s+(\d{1,2})\s+ב([א-ת]+)")

_CURRENCY_AMOUNT = r"(?<![\d,])(\d{1,3}(?:,\d{3})+|\d+)(?!\d)"
_BARE_AMOUNT = r"(?<![\d,])(\d{1,3}(?:,\d{3})+|\d{3,6})(?!\d)"
_PRICE_PATTERNS: tuple[tuple[re.Pattern[str], str | None], ...] = (
    (re.compile(rf"{_CURRENCY_AMOUNT}\s*(?:₪|ש\"ח|שח|שקל|nis\b|ils\b)", re.IGNORECASE), "ILS"),
    (re.compile(rf"\$\s*{_CURRENCY_AMOUNT}"), "USD"),
    (re.compile(rf"{_BARE_AMOUNT}\s*(?:ל|per\s*|/\s*|a\s+)(?:חודש|month)", re.IGNORECASE), None),
)

_STUDIO_RE = re.compile(r"סטודיו|studio", re.IGNORECASE)
_ROOMS_RE = re.compile(r"(\d+(?:\.\d)?)\s*(?:חדרים|חדר|bedrooms?\b|rooms?\b)", re.IGNORECASE)

_HEBREW_FLOOR_RE = re.compile(r"קומה\s+([א-ת]+|\d+)")
_ENGLISH_FLOOR_RE = re.compile(r"\b(?:floor|fl\.?)\s*(\d+)", re.IGNORECASE)
_ENGLISH_ORDINAL_FLOOR_RE = re.compile(r"\b(\d+)(?:st|nd|rd|th)\s+floor\b", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class DictionaryHit:
    key: str
    point: GeoPoint


@dataclass(frozen=True, slots=True)
class StreetMatch:
    name: str
    number: str | None = None
    intersect: str | None = None


@dataclass(frozen=True, slots=True)
class DateRange:
    start_date: str | None = None
    end_date: str | None = None


@dataclass(frozen=True, slots=True)
class PriceMatch:
    amount: float
    currency: str | None


@dataclass(slots=True)
class LocationGuess:
    location: str
    point: GeoPoint
    confidence: Confidence
    neighborhood: str | None = None
    street: str | None = None
    house_number: str | None = None
    from_dictionary: bool = False


@dataclass(slots=True)
class ExtractionResult:
    location: str
    lat: float
    lng: float
    confidence: Confidence
    neighborhood: str | None = None
    street: str | None = None
    house_number: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    price: float | None = None
    currency: str | None = None
    rooms: float | None = None
    is_studio: bool | None = None
    floor: int | None = None
    from_dictionary: bool = False

    @property
    def coordinate_hint(self) -> GeoPoint | None:
        if self.confidence == "low" or not self.from_dictionary:
            return None
        return GeoPoint(self.lat, self.lng)


def find_in_dictionary(text: str, table: Mapping[str, GeoPoint]) -> DictionaryHit | None:
    """Case-insensitive substring lookup; the longest matching key wins."""
    lowered = text.lower()
    for key in sorted(table, key=len, reverse=True):
        if key.lower() in lowered:
            return DictionaryHit(key=key, point=table[key])
    return None


def extract_hebrew_street(text: str) -> StreetMatch | None:
    match = _HEBREW_STREET_RE.search(text)
    if match is None:
        return None
    name = match.group(1).strip()
    if not name:
        return None
    intersect = match.group(2).strip() if match.group(2) else None
    if intersect is None and " פינת " in name:
        name, _, intersect = (part.strip() for part in name.partition(" פינת "))
    return StreetMatch(name=name, number=match.group(3), intersect=intersect or None)


def extract_english_street(text: str) -> StreetMatch | None:
    match = _ENGLISH_STREET_RE.search(text)
    if match is None:
        return None
    number = match.group(1).strip() if match.group(1) else None
    return StreetMatch(name=match.group(2).strip(), number=number)


def extract_hebrew_neighborhood(text: str) -> str | None:
    match = _HEBREW_NEIGHBORHOOD_RE.search(text)
    if match is None:
        return None
    return match.group(1).strip() or None


def extract_dates(
    text: str,
    hebrew_months: Mapping[str, str] = HEBREW_MONTHS,
    english_months: Mapping[str, str] = ENGLISH_MONTHS,
) -> DateRange:
    match = _NUMERIC_RANGE_RE.search(text)
    if match is not None:
        start_day, start_month, end_day, end_month = match.groups()
        return DateRange(
            start_date=f"{_pad(start_day)}.{_pad(start_month)}",
            end_date=f"{_pad(end_day)}.{_pad(end_month)}",
        )

    match = _HEBREW_RANGE_RE.search(text)
    if match is not None:
        start_month = hebrew_months.get(match.group(2))
        end_month = hebrew_months.get(match.group(4))
        if start_month and end_month:
            return DateRange(
                start_date=f"{_pad(match.group(1))}.{start_month}",
                end_date=f"{_pad(match.group(3))}.{end_month}",
            )

    match = _english_range_pattern(english_months).search(text)
    if match is not None:
        start_month = english_months.get(match.group(1).lower())
        end_month = english_months.get(match.group(3).lower()) if match.group(3) else start_month
        if start_month:
            return DateRange(
                start_date=f"{_pad(match.group(2))}.{start_month}",
                end_date=f"{_pad(match.group(4))}.{end_month}" if end_month else None,
            )

    return DateRange()


def extract_price(text: str) -> PriceMatch | None:
    for pattern, currency in _PRICE_PATTERNS:
        match = pattern.search(text)
        if match is not None:
            return PriceMatch(amount=float(match.group(1).replace(",", "")), currency=currency)
    return None


def mentions_studio(text: str) -> bool:
    return _STUDIO_RE.search(text) is not None


def extract_rooms(text: str) -> float | None:
    if mentions_studio(text):
        return 1.0
    match = _ROOMS_RE.search(text)
    return float(match.group(1)) if match else None


def extract_floor(text: str, named_floors: Mapping[str, int] = HEBREW_NAMED_FLOORS) -> int | None:
    match = _HEBREW_FLOOR_RE.search(text)
    if match is not None:
        value = match.group(1)
        if value in named_floors:
            return named_floors[value]
        if value.isdigit():
            return int(value)

    match = _ENGLISH_FLOOR_RE.search(text) or _ENGLISH_ORDINAL_FLOOR_RE.search(text)
    if match is not None:
        return int(match.group(1))
    return None


def resolve_location(text: str, gazetteer: Gazetteer) -> LocationGuess:
    guess = LocationGuess(location=gazetteer.city, point=gazetteer.center, confidence="low")
    if not text:
        return guess

    street_match = extract_hebrew_street(text) or extract_english_street(text)
    street_hit = find_in_dictionary(street_match.name, gazetteer.streets) if street_match is not None else None
    text_hit = find_in_dictionary(text, gazetteer.streets)
    if street_hit is None or (text_hit is not None and _extends(text_hit.key, street_hit.key)):
        street_hit = text_hit

    street_point: GeoPoint | None = None
    if street_hit is not None:
        number = street_match.number if street_match is not None else None
        street_point = street_hit.point
        guess.street = street_hit.key
        guess.house_number = number
        guess.location = _display(f"{street_hit.key} {number}" if number else street_hit.key, gazetteer)
        guess.point = street_hit.point
        guess.from_dictionary = True
        guess.confidence = "high" if number else "medium"
    elif street_match is not None:
        guess.street = street_match.name
        guess.house_number = street_match.number
        guess.location = _display(street_match.name, gazetteer)
        guess.confidence = "medium"

    keyword_neighborhood = extract_hebrew_neighborhood(text)
    neighborhood_hit = None
    if keyword_neighborhood is not None:
        neighborhood_hit = find_in_dictionary(keyword_neighborhood, gazetteer.neighborhoods)
    if neighborhood_hit is None:
        neighborhood_hit = find_in_dictionary(text, gazetteer.neighborhoods)

    if neighborhood_hit is not None:
        guess.neighborhood = neighborhood_hit.key
    elif keyword_neighborhood is not None:
        guess.neighborhood = keyword_neighborhood

    if guess.neighborhood is not None and street_point is None:
        if neighborhood_hit is not None:
            guess.point = neighborhood_hit.point
            guess.from_dictionary = True
        if guess.confidence == "low":
            guess.location = _display(guess.neighborhood, gazetteer)
            guess.confidence = "medium"

    if guess.confidence == "low":
        landmark_hit = find_in_dictionary(text, gazetteer.landmarks)
        if landmark_hit is not None:
            guess.point = landmark_hit.point
            guess.location = _display(landmark_hit.key, gazetteer)
            guess.from_dictionary = True
            guess.confidence = "medium"

    return guess


class HeuristicExtractor:
    """Deterministic regex and dictionary extraction over one gazetteer."""

    def __init__(
        self,
        gazetteer: Gazetteer,
        *,
        hebrew_months: Mapping[str, str] = HEBREW_MONTHS,
        english_months: Mapping[str, str] = ENGLISH_MONTHS,
        named_floors: Mapping[str, int] = HEBREW_NAMED_FLOORS,
    ) -> None:
        self._gazetteer = gazetteer
        self._hebrew_months = hebrew_months
        self._english_months = english_months
        self._named_floors = named_floors

    @property
    def gazetteer(self) -> Gazetteer:
        return self._gazetteer

    def extract(self, text: str) -> ExtractionResult:
        text = text or ""
        guess = resolve_location(text, self._gazetteer)
        dates = extract_dates(text, self._hebrew_months, self._english_months)
        price = extract_price(text)
        return ExtractionResult(
            location=guess.location,
            lat=guess.point.lat,
            lng=guess.point.lng,
            confidence=guess.confidence,
            neighborhood=guess.neighborhood,
            street=guess.street,
            house_number=guess.house_number,
            start_date=dates.start_date,
            end_date=dates.end_date,
            price=price.amount if price else None,
            currency=price.currency if price else None,
            rooms=extract_rooms(text),
            is_studio=True if mentions_studio(text) else None,
            floor=extract_floor(text, self._named_floors),
            from_dictionary=guess.from_dictionary,
        )


def to_extracted_fields(result: ExtractionResult, gazetteer: Gazetteer) -> ExtractedFields:
    location = LocationInfo(confidence=result.confidence)
    if result.confidence != "low":
        location = LocationInfo(
            country=gazetteer.country,
            country_code=gazetteer.country_code,
            city=gazetteer.city,
            neighborhood=result.neighborhood,
            street=f"{result.street} {result.house_number}" if result.street and result.house_number else result.street,
            full_address=result.location,
            confidence=result.confidence,
        )

    dates = DatesInfo()
    if result.start_date or result.end_date:
        dates = DatesInfo(start_date=result.start_date, end_date=result.end_date, confidence="medium")

    return ExtractedFields(
        price=PriceInfo(amount=result.price, currency=result.currency, period="month" if result.price else None),
        location=location,
        dates=dates,
        rooms=RoomsInfo(total_rooms=result.rooms, is_studio=result.is_studio, floor=result.floor),
    )


def _display(name: str, gazetteer: Gazetteer) -> str:
    return f"{name}, {gazetteer.city}"


def _pad(value: str) -> str:
    return value.zfill(2)


def _english_range_pattern(months: Mapping[str, str]) -> re.Pattern[str]:
    names = "|".join(re.escape(name) for name in sorted(months, key=len, reverse=True))
    return re.compile(
        rf"\b({names})\s+(\d{{1,2}})(?:st|nd|rd|th)?\s*(?:-|–|to|until)\s*(?:({names})\s+)?(\d{{1,2}})\b",
        re.IGNORECASE,
    )


def _extends(longer: str, shorter: str) -> bool:
    """True when ``longer`` is a longer spelling of the same street, e.g. with its suffix."""
    return len(longer) > len(shorter) and shorter.lower() in longer.lower()
