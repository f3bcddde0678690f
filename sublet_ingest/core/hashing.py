from __future__ import annotations

import hashlib
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sublet_ingest.schemas.posts import RawPost

_EMOJI_RE = re.compile(r"[\U0001F300-\U0001F9FF]|[\u2600-\u26FF]|[\u2700-\u27BF]")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w\s]")

CONTENT_HASH_LENGTH = 16


def canonicalize_text(text: str) -> str:
    """Canonical form used for content fingerprints.

    The step order matters: whitespace is collapsed before punctuation is
    removed, so "a ! b" canonicalizes to "a  b".
    """
    lowered = text.lower()
    without_emoji = _EMOJI_RE.sub("", lowered)
    collapsed = _WHITESPACE_RE.sub(" ", without_emoji)
    stripped = _NON_WORD_RE.sub("", collapsed)
    return stripped.strip()


def content_hash(text: str) -> str:
    canonical = canonicalize_text(text)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:CONTENT_HASH_LENGTH]


def url_digest(source_url: str) -> str:
    return hashlib.md5(source_url.encode("utf-8")).hexdigest()


def stable_id(post: RawPost) -> str:
    """Persistence key: scraper id, else md5(sourceUrl), else content hash."""
    if post.external_id:
        return post.external_id
    if post.source_url:
        return url_digest(post.source_url)
    return content_hash(post.text)
