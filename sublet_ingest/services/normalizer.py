from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from sublet_ingest.schemas.posts import RawPost, Rejected

TEXT_ALIASES = ("text", "message", "content", "postText")
URL_ALIASES = ("url", "postUrl", "link", "facebookUrl")
POSTED_AT_ALIASES = ("scrapedAt", "time", "postedAt")
EXTERNAL_ID_ALIASES = ("postID", "postId", "id")
GROUP_ALIASES = ("groupTitle", "groupName")
AUTHOR_ALIASES = ("posterName", "authorName", "user.name")

MIN_TEXT_LENGTH = 3


def normalize(raw: Any) -> RawPost | Rejected:
    if not isinstance(raw, dict):
        return Rejected(reason=f"item is not an object (got {type(raw).__name__})")

    body = _first_text(raw, TEXT_ALIASES) or ""
    text = build_full_text(raw, body)
    source_url = _first_text(raw, URL_ALIASES)
    if len(text) < MIN_TEXT_LENGTH and not source_url:
        keys = ", ".join(sorted(str(key) for key in raw)) or "none"
        return Rejected(reason=f"no usable text or url (received keys: {keys})")

    return RawPost(
        text=text,
        source_url=source_url,
        images=collect_image_candidates(raw),
        posted_at=_first_text(raw, POSTED_AT_ALIASES),
        group_context=_first_text(raw, GROUP_ALIASES),
        external_id=_first_text(raw, EXTERNAL_ID_ALIASES),
        author_name=_first_text(raw, AUTHOR_ALIASES),
    )


def build_full_text(raw: dict[str, Any], body: str) -> str:
    """Post body followed by the secondary text fields some scrapers split out."""
    parts: list[str] = []
    if body:
        parts.append(body)
    title = _as_text(raw.get("title"))
    if title and title != body:
        parts.append(title)
    preview_description = _as_text(raw.get("previewDescription"))
    if preview_description:
        parts.append(preview_description)
    preview_title = _as_text(raw.get("previewTitle"))
    if preview_title and preview_title not in parts:
        parts.append(preview_title)
    return "\n\n".join(parts).strip()


def collect_image_candidates(raw: dict[str, Any]) -> list[str]:
    candidates: list[str] = []
    thumbnails: list[str] = []

    attachments = raw.get("attachments")
    if isinstance(attachments, list):
        for attachment in attachments:
            if isinstance(attachment, str):
                candidates.append(attachment)
                continue
            if not isinstance(attachment, dict):
                continue
            candidates.extend(
                value
                for value in (
                    _lookup(attachment, "media.image.uri"),
                    attachment.get("source"),
                    attachment.get("photo"),
                )
                if isinstance(value, str)
            )
            page_url = attachment.get("url")
            if isinstance(page_url, str) and not _is_facebook_page(page_url):
                candidates.append(page_url)
            thumbnail = attachment.get("thumbnail")
            if isinstance(thumbnail, str):
                thumbnails.append(thumbnail)

    images = raw.get("images")
    if isinstance(images, list):
        candidates.extend(url for url in images if isinstance(url, str))
    for key in ("fullPicture", "imageUrl"):
        value = raw.get(key)
        if isinstance(value, str):
            candidates.append(value)
    candidates.extend(thumbnails)

    seen: set[str] = set()
    ordered: list[str] = []
    for url in candidates:
        url = url.strip()
        if not url.lower().startswith(("http://", "https://")) or url in seen:
            continue
        seen.add(url)
        ordered.append(url)
    return ordered


def _first_text(raw: dict[str, Any], aliases: tuple[str, ...]) -> str | None:
    for alias in aliases:
        value = _as_text(_lookup(raw, alias))
        if value:
            return value
    return None


def _lookup(raw: dict[str, Any], dotted_key: str) -> Any:
    current: Any = raw
    for key in dotted_key.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _as_text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _is_facebook_page(url: str) -> bool:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return True
    return host.endswith("facebook.com") or host.endswith("fb.com")
