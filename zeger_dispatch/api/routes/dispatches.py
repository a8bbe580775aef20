"""
Dispatch negotiation endpoints
==============================

POST  /api/v1/dispatches                -- ask one rider to take the order (202)
GET   /api/v1/dispatches/{id}           -- negotiation state and countdown
PATCH /api/v1/dispatches/{id}/cancel    -- customer revokes the request
PATCH /api/v1/dispatches/{id}/respond   -- rider accepts or rejects
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from zeger_dispatch.api.dependencies import (
    get_dispatch_store,
    get_locator,
    get_negotiator,
    get_notification_channel,
)
from zeger_dispatch.api.middleware import limiter
from zeger_dispatch.api.schemas import (
    DispatchCreateRequest,
    DispatchRespondRequest,
    DispatchResponse,
    OrderResponse,
)
from zeger_dispatch.domain.entities import StatusChange
from zeger_dispatch.domain.enums import OrderStatus
from zeger_dispatch.domain.errors import ChannelUnavailable
from zeger_dispatch.domain.locator import RiderLocator
from zeger_dispatch.domain.ports import NotificationChannel
from zeger_dispatch.infrastructure.repositories import SqlDispatchStore
from zeger_dispatch.workers.negotiator import DispatchNegotiator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dispatches", tags=["dispatches"])


@router.post(
    "",
    status_code=202,
    response_model=DispatchResponse,
    summary="Open a negotiation with one rider",
    responses={
        202: {"description": "Request sent; the rider has 60 s to respond."},
        409: {"description": "Rider is already handling another request."},
        422: {"description": "Rider cannot be dispatched."},
    },
)
@limiter.limit("100/minute")
async def create_dispatch(
    request: Request,
    body: DispatchCreateRequest,
    locator: RiderLocator = Depends(get_locator),
    negotiator: DispatchNegotiator = Depends(get_negotiator),
):
    rider = await locator.candidate_for(
        body.rider_id, body.customer_lat, body.customer_lng
    )
    negotiation = await negotiator.request(body.requester_id, rider)
    negotiator.start(negotiation)
    return DispatchResponse.model_validate(negotiation)


@router.get(
    "/{dispatch_id}",
    response_model=DispatchResponse,
    summary="Get negotiation state",
)
@limiter.limit("100/minute")
async def get_dispatch(
    request: Request,
    dispatch_id: str,
    negotiator: DispatchNegotiator = Depends(get_negotiator),
):
    negotiation = negotiator.get(dispatch_id)
    if negotiation is None:
        raise HTTPException(status_code=404, detail="Negotiation not found")
    return DispatchResponse.model_validate(negotiation)


@router.patch(
    "/{dispatch_id}/cancel",
    response_model=DispatchResponse,
    summary="Cancel a pending negotiation",
)
@limiter.limit("100/minute")
async def cancel_dispatch(
    request: Request,
    dispatch_id: str,
    negotiator: DispatchNegotiator = Depends(get_negotiator),
):
    negotiation = negotiator.get(dispatch_id)
    if negotiation is None:
        raise HTTPException(status_code=404, detail="Negotiation not found")
    if negotiation.is_terminal:
        raise HTTPException(
            status_code=409,
            detail=f"Negotiation already {negotiation.state.value}",
        )
    negotiator.cancel(dispatch_id)
    return DispatchResponse.model_validate(negotiation)


@router.patch(
    "/{dispatch_id}/respond",
    response_model=OrderResponse,
    summary="Rider accepts or rejects the order",
    description=(
        "Writes the order status and publishes it on the dispatch channel "
        "so the waiting customer is notified."
    ),
)
@limiter.limit("100/minute")
async def respond_to_dispatch(
    request: Request,
    dispatch_id: str,
    body: DispatchRespondRequest,
    store: SqlDispatchStore = Depends(get_dispatch_store),
    channel: NotificationChannel = Depends(get_notification_channel),
    negotiator: DispatchNegotiator = Depends(get_negotiator),
):
    order = await store.get_order(dispatch_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.status != OrderStatus.PENDING.value:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot respond to order in status {order.status}",
        )
    # the order row stays pending after a cancel or timeout
    negotiation = negotiator.get(dispatch_id)
    if negotiation is None or negotiation.is_terminal:
        state = negotiation.state.value if negotiation else "closed"
        raise HTTPException(
            status_code=409,
            detail=f"Negotiation for order {dispatch_id} is {state}",
        )

    order = await store.update_status(
        dispatch_id, OrderStatus(body.status), body.rejection_reason
    )
    try:
        await channel.publish(
            dispatch_id, StatusChange(order.status, order.rejection_reason)
        )
    except ChannelUnavailable:
        logger.warning(
            "Order %s is %s but the customer could not be notified",
            dispatch_id, order.status,
        )
    return order
