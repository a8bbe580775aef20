"""
Admin / observability endpoints
===============================

GET /api/v1/admin/negotiations -- negotiations still waiting on a rider
GET /api/v1/admin/health       -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from zeger_dispatch.api.dependencies import get_negotiator
from zeger_dispatch.api.middleware import limiter
from zeger_dispatch.api.schemas import DispatchResponse, HealthResponse
from zeger_dispatch.workers.negotiator import DispatchNegotiator

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/negotiations",
    response_model=list[DispatchResponse],
    summary="List pending negotiations",
)
@limiter.limit("100/minute")
async def get_active_negotiations(
    request: Request,
    negotiator: DispatchNegotiator = Depends(get_negotiator),
):
    return [
        DispatchResponse.model_validate(n)
        for n in sorted(negotiator.active(), key=lambda n: n.opened_at)
    ]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
