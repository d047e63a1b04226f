from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_service_token
from server.models.requests import BackfillRequest
from server.models.responses import BackfillResponse, EmbeddingStatusResponse
from shared.models.record import RecordKind

router = APIRouter(prefix="/v1/embeddings", tags=["embeddings"])


@router.post("/backfill")
async def backfill_embeddings(
    request: Request,
    body: BackfillRequest,
    _: None = Depends(verify_service_token),
) -> BackfillResponse:
    """Embed every record of a kind that has no embedding yet.

    Runs to completion before answering; a re-run after a completed run
    reports zero processed records.
    """
    embedding_service = request.app.state.embedding_service
    stats = await embedding_service.backfill_embeddings(
        body.kind,
        batch_size=body.batch_size,
        max_concurrency=body.max_concurrency,
        dry_run=body.dry_run,
    )
    return BackfillResponse(
        kind=body.kind.value,
        dry_run=body.dry_run,
        processed=stats.processed,
        succeeded=stats.succeeded,
        failed=stats.failed,
    )


@router.get("/status")
async def embedding_status(
    request: Request,
    kind: RecordKind = RecordKind.RISK,
    _: None = Depends(verify_service_token),
) -> EmbeddingStatusResponse:
    embedding_service = request.app.state.embedding_service
    status = await embedding_service.embedding_status(kind)
    return EmbeddingStatusResponse.model_validate(status.model_dump())
