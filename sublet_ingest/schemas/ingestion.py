from pydantic import BaseModel, Field

from sublet_ingest.schemas.listings import CamelModel


class ItemResultOut(CamelModel):
    id: str | None = None
    error: str | None = None
    duplicate_of: str | None = None


class BatchResponse(BaseModel):
    success: bool
    processed: int
    failed: int
    results: list[ItemResultOut] = Field(default_factory=list)
