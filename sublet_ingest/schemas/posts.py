from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class RawPost:
    text: str
    source_url: str | None = None
    images: list[str] = field(default_factory=list)
    posted_at: str | None = None
    group_context: str | None = None
    external_id: str | None = None
    author_name: str | None = None


@dataclass(slots=True)
class Rejected:
    reason: str
