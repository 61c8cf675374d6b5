"""Lalamove webhook endpoints."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError as PayloadValidationError

from ...models.domain import MarketplaceOrder
from ...schemas.delivery import WebhookPayload
from ...services.delivery import DeliveryServices, WebhookEvent
from ...services.delivery.webhooks import SIGNATURE_HEADER
from ..dependencies import get_delivery_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook/lalamove", tags=["webhooks"])

Handler = Callable[[WebhookEvent], Awaitable[MarketplaceOrder | None]]


async def _verified_event(request: Request, services: DeliveryServices) -> WebhookEvent:
    raw_body = await request.body()
    if not services.verifier.verify(request.headers.get(SIGNATURE_HEADER), raw_body):
        logger.warning(f"Rejected webhook on {request.url.path}: missing or invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing signature")
    try:
        payload = WebhookPayload.model_validate_json(raw_body)
    except PayloadValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors()) from exc
    data = payload.data
    return WebhookEvent(
        order_id=data.orderId,
        status=data.status,
        driver=data.driver.to_domain() if data.driver else None,
        location=data.location.to_domain() if data.location else None,
        reason=data.reason,
    )


async def _process(event: WebhookEvent, handler: Handler, kind: str) -> dict:
    try:
        order = await handler(event)
    except Exception as exc:
        logger.exception(f"{kind} webhook processing failed for Lalamove order {event.order_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{kind} processing failed",
        ) from exc
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return {"message": f"{kind} processed successfully", "orderId": order.id}


@router.post("/delivery", status_code=status.HTTP_200_OK)
async def handle_delivery_update(
    request: Request,
    services: DeliveryServices = Depends(get_delivery_services),
) -> dict:
    event = await _verified_event(request, services)
    return await _process(event, services.dispatcher.handle_delivery_update, "Webhook")


@router.post("/cancellation", status_code=status.HTTP_200_OK)
async def handle_delivery_cancellation(
    request: Request,
    services: DeliveryServices = Depends(get_delivery_services),
) -> dict:
    event = await _verified_event(request, services)
    return await _process(event, services.dispatcher.handle_cancellation, "Cancellation")


@router.post("/driver", status_code=status.HTTP_200_OK)
async def handle_driver_assignment(
    request: Request,
    services: DeliveryServices = Depends(get_delivery_services),
) -> dict:
    event = await _verified_event(request, services)
    return await _process(event, services.dispatcher.handle_driver_assignment, "Driver assignment")
