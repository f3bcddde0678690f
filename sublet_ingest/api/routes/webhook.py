from fastapi import APIRouter, Depends
from starlette.requests import Request

from sublet_ingest.api.deps import get_orchestrator
from sublet_ingest.api.payload import as_items, read_json_body, run_batch
from sublet_ingest.schemas.ingestion import BatchResponse
from sublet_ingest.services.ingestion import IngestionOrchestrator

router = APIRouter()


@router.post("/scraper", response_model=BatchResponse, response_model_exclude_none=True)
async def scraper_webhook(
    request: Request,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> BatchResponse:
    items = as_items(await read_json_body(request))
    return await run_batch(orchestrator, items)
