import json
import time
from typing import Any

from fastapi import HTTPException, status
from starlette.requests import Request

from sublet_ingest.core.config import get_settings
from sublet_ingest.core.errors import ConfigurationFailure
from sublet_ingest.schemas.ingestion import BatchResponse, ItemResultOut
from sublet_ingest.services.ingestion import IngestionOrchestrator
from sublet_ingest.services.repository import RepositoryUnavailableError


async def read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="empty request body")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="request body is not valid JSON") from exc


def as_items(payload: Any, *, envelope_key: str | None = None) -> list[Any]:
    if envelope_key and isinstance(payload, dict) and isinstance(payload.get(envelope_key), list):
        payload = payload[envelope_key]
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list) and payload:
        return payload
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="expected a JSON object or a non-empty JSON array",
    )


async def run_batch(orchestrator: IngestionOrchestrator, items: list[Any]) -> BatchResponse:
    allowance = get_settings().ingest_batch_deadline_seconds
    deadline = time.monotonic() + allowance if allowance else None
    try:
        batch = await orchestrator.ingest(items, deadline=deadline)
    except (ConfigurationFailure, RepositoryUnavailableError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return BatchResponse(
        success=batch.success,
        processed=batch.processed,
        failed=batch.failed,
        results=[
            ItemResultOut(id=result.id, error=result.error, duplicate_of=result.duplicate_of)
            for result in batch.results
        ],
    )
