from __future__ import annotations

from typing import Any

import httpx


class AdminClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def preview_dedup(self) -> dict[str, Any]:
        return await self._request("GET", "/admin/dedup")

    async def apply_dedup(self) -> dict[str, Any]:
        return await self._request("POST", "/admin/dedup")

    async def _request(self, method: str, path: str) -> dict[str, Any]:
        if self._client is not None:
            response = await self._client.request(method, f"{self.base_url}{path}")
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(method, f"{self.base_url}{path}")
        response.raise_for_status()
        return response.json()
