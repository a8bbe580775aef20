"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from zeger_dispatch.domain.enums import NegotiationState, PositionSource


# ── Requests ──────────────────────────────────────────────────────────


class NearbyRidersRequest(BaseModel):
    customer_lat: float = Field(..., ge=-90, le=90)
    customer_lng: float = Field(..., ge=-180, le=180)
    radius_km: Optional[float] = Field(
        None, gt=0, le=500, description="Defaults to the configured search radius."
    )


class DispatchCreateRequest(BaseModel):
    requester_id: str = Field(..., min_length=1, max_length=36)
    rider_id: str = Field(..., min_length=1, max_length=36)
    customer_lat: float = Field(..., ge=-90, le=90)
    customer_lng: float = Field(..., ge=-180, le=180)


class DispatchRespondRequest(BaseModel):
    status: Literal["accepted", "rejected"]
    rejection_reason: Optional[str] = Field(None, max_length=500)


# ── Responses ─────────────────────────────────────────────────────────


class RiderCandidateResponse(BaseModel):
    id: str
    full_name: str
    phone: str
    photo_url: Optional[str] = None
    latitude: float
    longitude: float
    position_source: PositionSource
    last_updated: Optional[datetime] = None
    distance_km: float
    eta_minutes: int
    is_online: bool
    total_stock: int
    branch_name: str = ""
    branch_address: str = ""

    model_config = {"from_attributes": True}


class NearbyRidersResponse(BaseModel):
    riders: list[RiderCandidateResponse] = []


class DispatchResponse(BaseModel):
    id: str
    requester_id: str
    rider_id: str
    state: NegotiationState
    rejection_reason: Optional[str] = None
    opened_at: datetime
    deadline: datetime
    remaining_seconds: int

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: str
    user_id: str
    rider_id: str
    status: str
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
