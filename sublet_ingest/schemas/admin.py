from typing import Any

from pydantic import Field

from sublet_ingest.schemas.listings import CamelModel


class ReparseRequest(CamelModel):
    id: str | None = None
    ids: list[str] | None = None
    source_url: str | None = None


class ReparseResultOut(CamelModel):
    id: str
    success: bool
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    changed: list[str] = Field(default_factory=list)
    error: str | None = None


class ReparseResponse(CamelModel):
    reparsed: int
    results: list[ReparseResultOut] = Field(default_factory=list)


class DedupGroupOut(CamelModel):
    keep_id: str
    delete_ids: list[str]
    source_url: str | None = None
    content_hash: str | None = None
    count: int


class DedupPreviewOut(CamelModel):
    total_docs: int
    duplicate_groups: int
    docs_to_delete: int
    groups: list[DedupGroupOut] = Field(default_factory=list)


class DedupApplyOut(CamelModel):
    total_docs: int
    duplicate_groups: int
    deleted: int
    message: str
