from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_service_token
from server.models.requests import SimilarityCheckRequest, SimilarRisksRequest
from server.models.responses import SimilarityResponse
from shared.models.record import RiskInput

router = APIRouter(prefix="/v1/risks", tags=["similarity"])


@router.post("/{risk_id}/similar")
async def similar_risks(
    request: Request,
    risk_id: str,
    body: SimilarRisksRequest | None = None,
    _: None = Depends(verify_service_token),
) -> SimilarityResponse:
    """Find stored risks similar to an existing risk.

    Args:
        request (Request): FastAPI request (provides app.state.similarity_service).
        risk_id (str): Id of the stored risk.
        body (SimilarRisksRequest | None): Optional JSON body with a result limit.
        _ (None): Auth dependency result (unused).

    Returns:
        SimilarityResponse: Matches sorted by score, empty if the risk is unknown.
    """
    similarity_service = request.app.state.similarity_service
    limit = body.limit if body else None
    results = await similarity_service.find_similar_for_existing(risk_id, limit=limit)
    return SimilarityResponse(results=results)


@router.post("/similar/check")
async def check_similarity(
    request: Request,
    body: SimilarityCheckRequest,
    _: None = Depends(verify_service_token),
) -> SimilarityResponse:
    """Find stored risks similar to a risk that is being drafted.

    Args:
        request (Request): FastAPI request (provides app.state.similarity_service).
        body (SimilarityCheckRequest): Draft title and descriptions, optional excludeId and limit.
        _ (None): Auth dependency result (unused).

    Returns:
        SimilarityResponse: Matches sorted by score.
    """
    similarity_service = request.app.state.similarity_service
    data = RiskInput(
        title=body.title,
        threat_description=body.threat_description,
        description=body.description,
    )
    results = await similarity_service.find_similar_for_new(data, limit=body.limit, exclude_id=body.exclude_id)
    return SimilarityResponse(results=results)
