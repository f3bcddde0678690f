from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

_IMAGE_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|avif|svg)(\?|$)", re.IGNORECASE)
_CDN_MARKERS = ("fbcdn.net", "fbsbx.com")
_IMAGE_HOSTS = ("picsum.photos", "unsplash.com", "cloudinary.com", "imgur.com", "storage.googleapis.com")
_CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/avif": ".avif",
}


def is_direct_image_url(url: str) -> bool:
    """True when ``url`` can be rendered directly rather than pointing at an HTML page."""
    if not url or not isinstance(url, str):
        return False
    lowered = url.lower()
    if any(marker in lowered for marker in _CDN_MARKERS):
        return True
    if "facebook.com" in lowered or "fb.com/" in lowered:
        return False
    if _IMAGE_EXTENSION_RE.search(url):
        return True
    if any(host in lowered for host in _IMAGE_HOSTS):
        return True
    return lowered.startswith(("https://", "http://"))


class ImageResolver:
    """Filters image candidates and, when an upload endpoint is set, re-hosts them."""

    def __init__(
        self,
        *,
        upload_base_url: str | None = None,
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._upload_base_url = upload_base_url.rstrip("/") if upload_base_url else None
        self._timeout_seconds = timeout_seconds
        self._client = client

    async def resolve(self, candidates: list[str]) -> list[str]:
        direct = [url for url in candidates if is_direct_image_url(url)]
        if not direct or self._upload_base_url is None:
            return direct

        if self._client is not None:
            rehosted = await self._rehost_all(self._client, direct)
        else:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, follow_redirects=True) as temp_client:
                rehosted = await self._rehost_all(temp_client, direct)
        return [url for url in rehosted if url is not None]

    async def _rehost_all(self, client: httpx.AsyncClient, urls: list[str]) -> list[str | None]:
        return list(await asyncio.gather(*(self._rehost(client, url) for url in urls)))

    async def _rehost(self, client: httpx.AsyncClient, url: str) -> str | None:
        try:
            download = await client.get(url)
            download.raise_for_status()
            content_type = download.headers.get("content-type", "application/octet-stream").split(";")[0].strip()
            target = f"{self._upload_base_url}/{_object_name(url, content_type)}"
            upload = await client.put(target, content=download.content, headers={"Content-Type": content_type})
            upload.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("image rehost failed for url=%s: %s", url, exc)
            return None
        return target


def _object_name(url: str, content_type: str) -> str:
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
    extension = _CONTENT_TYPE_EXTENSIONS.get(content_type)
    if extension is None:
        match = _IMAGE_EXTENSION_RE.search(urlparse(url).path)
        extension = f".{match.group(1).lower()}" if match else ""
    return f"{digest}{extension}"
