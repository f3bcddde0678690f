from __future__ import annotations

from collections.abc import Callable
from datetime import date
import json
import re
from typing import Any

import httpx
from pydantic import ValidationError

from sublet_ingest.core.errors import ConfigurationFailure, ExtractionFailure
from sublet_ingest.schemas.listings import ExtractedFields

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)

PROMPT_TEMPLATE = """Extract structured data from this sublet/rental social media post. \
The post may be written in Hebrew, English, French, Russian or German.

TODAY'S DATE: {today}
{group_hint}
Return strict JSON with exactly these keys. Use null for anything the post does not state.
{{
  "price": {{"amount": number, "currency": "ISO 4217 code", "period": "month|week|night|total",
            "utilitiesIncluded": boolean}},
  "location": {{"country": string, "countryCode": "ISO 3166-1 alpha-2", "city": string, "neighborhood": string,
               "street": string, "fullAddress": string, "confidence": "high|medium|low"}},
  "dates": {{"startDate": "YYYY-MM-DD", "endDate": "YYYY-MM-DD", "isFlexible": boolean, "durationText": string,
            "immediateAvailability": boolean, "confidence": "high|medium|low"}},
  "rooms": {{"totalRooms": number, "bedrooms": number, "bathrooms": number, "isStudio": boolean,
            "floor": integer, "totalFloors": integer}},
  "type": "Entire Place|Room in Shared|Studio",
  "amenities": {{"furnished": boolean, "wifi": boolean, "ac": boolean, "parking": boolean, "balcony": boolean,
                "elevator": boolean, "petFriendly": boolean, "washer": boolean, "dishwasher": boolean}},
  "summary": "one short sentence"
}}
Rules:
- location.confidence is high when the address is stated, medium when inferred, low when unknown
- when only day and month are given, pick the nearest upcoming occurrence relative to today
- dates.durationText holds a human readable duration when there is no exact end date
- rooms.totalRooms uses the Israeli count (3 rooms = 2 bedrooms + living room)
- include an amenity only when the post mentions it

POST TEXT:
\"\"\"{text}\"\"\"
"""


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw).strip()


def build_prompt(text: str, *, group_hint: str | None = None, today: date | None = None) -> str:
    hint = f"The post was published in the group: {group_hint}\n" if group_hint else ""
    return PROMPT_TEMPLATE.format(today=(today or date.today()).isoformat(), group_hint=hint, text=text)


def parse_extraction_payload(raw: str) -> ExtractedFields:
    cleaned = strip_code_fences(raw)
    if not cleaned:
        raise ExtractionFailure("empty model response")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ExtractionFailure(f"model response is not JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ExtractionFailure("model response is not a JSON object")
    try:
        return ExtractedFields.model_validate(payload)
    except ValidationError as exc:
        raise ExtractionFailure(f"model response does not match schema: {exc.error_count()} errors") from exc


class GeminiExtractor:
    """Calls the Gemini ``generateContent`` endpoint and validates the JSON it returns."""

    source = "ai"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout_seconds: float = 60.0,
        temperature: float = 0.1,
        client: httpx.AsyncClient | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._temperature = temperature
        self._client = client
        self._today = today

    def ensure_configured(self) -> None:
        if not self._api_key:
            raise ConfigurationFailure("Gemini API key is not configured")

    async def extract(self, text: str, group_hint: str | None = None) -> ExtractedFields:
        self.ensure_configured()
        prompt = build_prompt(text, group_hint=group_hint, today=self._today())
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self._temperature,
            },
        }
        if self._client is not None:
            payload = await self._generate(self._client, body)
        else:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as temp_client:
                payload = await self._generate(temp_client, body)
        return parse_extraction_payload(_candidate_text(payload))

    async def _generate(self, client: httpx.AsyncClient, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/models/{self._model}:generateContent"
        try:
            response = await client.post(url, params={"key": self._api_key}, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ExtractionFailure(f"Gemini returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ExtractionFailure(f"Gemini request failed: {exc.__class__.__name__}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExtractionFailure("Gemini response body is not JSON") from exc
        if not isinstance(payload, dict):
            raise ExtractionFailure("Gemini response body is not an object")
        return payload


def _candidate_text(payload: dict[str, Any]) -> str:
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ExtractionFailure("Gemini returned no candidates")
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise ExtractionFailure("Gemini candidate has no content parts")
    text = "".join(part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str))
    if not text.strip():
        raise ExtractionFailure("Gemini candidate text is empty")
    return text
