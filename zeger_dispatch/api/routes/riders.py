"""
Rider discovery endpoint
========================

POST /api/v1/riders/nearby -- ranked riders around the customer
"""

from fastapi import APIRouter, Depends, Request

from zeger_dispatch.api.dependencies import get_locator
from zeger_dispatch.api.middleware import limiter
from zeger_dispatch.api.schemas import (
    NearbyRidersRequest,
    NearbyRidersResponse,
    RiderCandidateResponse,
)
from zeger_dispatch.domain.locator import RiderLocator

router = APIRouter(prefix="/riders", tags=["riders"])


@router.post(
    "/nearby",
    response_model=NearbyRidersResponse,
    summary="Find riders near the customer",
    description=(
        "Online riders first, then by distance.  Riders without any known "
        "position are never listed."
    ),
    responses={503: {"description": "Rider store unavailable."}},
)
@limiter.limit("100/minute")
async def nearby_riders(
    request: Request,
    body: NearbyRidersRequest,
    locator: RiderLocator = Depends(get_locator),
):
    candidates = await locator.locate(
        body.customer_lat, body.customer_lng, body.radius_km
    )
    return NearbyRidersResponse(
        riders=[RiderCandidateResponse.model_validate(c) for c in candidates]
    )
