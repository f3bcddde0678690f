from fastapi import APIRouter, Depends, HTTPException, status
from starlette.requests import Request

from sublet_ingest.api.deps import get_duplicate_resolver, get_orchestrator, get_reparse_service
from sublet_ingest.api.payload import as_items, read_json_body, run_batch
from sublet_ingest.core.errors import ConfigurationFailure, RejectedInput
from sublet_ingest.schemas.admin import (
    DedupApplyOut,
    DedupGroupOut,
    DedupPreviewOut,
    ReparseRequest,
    ReparseResponse,
    ReparseResultOut,
)
from sublet_ingest.schemas.ingestion import BatchResponse
from sublet_ingest.services.dedupe import DuplicateResolver
from sublet_ingest.services.ingestion import IngestionOrchestrator
from sublet_ingest.services.reparse import ReparseService
from sublet_ingest.services.repository import (
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
)

router = APIRouter()


@router.post("/ingest", response_model=BatchResponse, response_model_exclude_none=True)
async def manual_ingest(
    request: Request,
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
) -> BatchResponse:
    items = as_items(await read_json_body(request), envelope_key="items")
    return await run_batch(orchestrator, items)


@router.post("/reparse", response_model=ReparseResponse)
async def reparse_listings(
    payload: ReparseRequest,
    service: ReparseService = Depends(get_reparse_service),
) -> ReparseResponse:
    try:
        listing_ids = await service.resolve_ids(
            listing_id=payload.id,
            listing_ids=payload.ids,
            source_url=payload.source_url,
        )
        results = await service.reparse(listing_ids)
    except RejectedInput as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (ConfigurationFailure, RepositoryUnavailableError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return ReparseResponse(
        reparsed=sum(1 for result in results if result.success),
        results=[
            ReparseResultOut(
                id=result.id,
                success=result.success,
                before=result.before,
                after=result.after,
                changed=result.changed,
                error=result.error,
            )
            for result in results
        ],
    )


@router.get("/dedup", response_model=DedupPreviewOut)
async def preview_dedup(resolver: DuplicateResolver = Depends(get_duplicate_resolver)) -> DedupPreviewOut:
    try:
        plan = await resolver.dry_run()
    except RepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    groups = []
    for group in plan.groups:
        survivor = group.survivor
        groups.append(
            DedupGroupOut(
                keep_id=survivor.record_id,
                delete_ids=group.delete_ids,
                source_url=survivor.source_url,
                content_hash=survivor.content_hash,
                count=len(group.members),
            )
        )
    return DedupPreviewOut(
        total_docs=plan.total_docs,
        duplicate_groups=len(plan.groups),
        docs_to_delete=plan.docs_to_delete,
        groups=groups,
    )


@router.post("/dedup", response_model=DedupApplyOut)
async def apply_dedup(resolver: DuplicateResolver = Depends(get_duplicate_resolver)) -> DedupApplyOut:
    try:
        result = await resolver.apply()
    except RepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return DedupApplyOut(
        total_docs=result.total_docs,
        duplicate_groups=result.duplicate_groups,
        deleted=result.deleted,
        message=f"Deleted {result.deleted} duplicate listings.",
    )
