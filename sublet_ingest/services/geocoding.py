from __future__ import annotations

from functools import lru_cache
import logging
from typing import Any, Protocol

import httpx

from sublet_ingest.core.errors import GeocodeFailure
from sublet_ingest.core.ratelimit import MinIntervalLimiter
from sublet_ingest.services.gazetteer import GeoPoint

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def geocode(self, query: str | None) -> GeoPoint | None: ...


class GeocodeCache:
    """Process-lifetime, append-only query cache. Negative results are cached too."""

    def __init__(self) -> None:
        self._entries: dict[str, GeoPoint | None] = {}

    @staticmethod
    def key(query: str) -> str:
        return query.strip().lower()

    def lookup(self, query: str) -> tuple[bool, GeoPoint | None]:
        key = self.key(query)
        if key not in self._entries:
            return False, None
        return True, self._entries[key]

    def store(self, query: str, point: GeoPoint | None) -> None:
        self._entries.setdefault(self.key(query), point)

    def __contains__(self, query: object) -> bool:
        return isinstance(query, str) and self.key(query) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class NominatimGeocoder:
    def __init__(
        self,
        *,
        cache: GeocodeCache,
        limiter: MinIntervalLimiter,
        base_url: str,
        user_agent: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cache = cache
        self._limiter = limiter
        self._base_url = base_url.rstrip("/")
        self._headers = {"User-Agent": user_agent, "Accept-Language": "en"}
        self._timeout_seconds = timeout_seconds
        self._client = client

    async def geocode(self, query: str | None) -> GeoPoint | None:
        if not query or not query.strip():
            return None
        hit, cached = self._cache.lookup(query)
        if hit:
            return cached

        try:
            point = await self._search(query.strip())
        except GeocodeFailure as exc:
            logger.warning("geocoding failed for query=%r: %s", query, exc)
            point = None
        self._cache.store(query, point)
        return point

    async def _search(self, query: str) -> GeoPoint | None:
        await self._limiter.wait()
        params = {"q": query, "format": "json", "limit": 1}
        try:
            if self._client is not None:
                response = await self._client.get(f"{self._base_url}/search", params=params, headers=self._headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as temp_client:
                    response = await temp_client.get(f"{self._base_url}/search", params=params, headers=self._headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise GeocodeFailure(f"{exc.__class__.__name__}: {exc}") from exc
        except ValueError as exc:
            raise GeocodeFailure("response body is not JSON") from exc
        return _first_point(payload)


def _first_point(payload: Any) -> GeoPoint | None:
    if not isinstance(payload, list) or not payload:
        return None
    first = payload[0]
    if not isinstance(first, dict):
        return None
    try:
        return GeoPoint(lat=float(first["lat"]), lng=float(first["lon"]))
    except (KeyError, TypeError, ValueError):
        return None


@lru_cache
def get_geocode_cache() -> GeocodeCache:
    return GeocodeCache()
