"""Delivery management endpoints (quotes, manual dispatch, tracking, cancellation)."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas.delivery import (
    CreateDeliveryRequest,
    CreateDeliveryResponse,
    DeliveryRecordModel,
    DriverModel,
    LocationModel,
    QuoteRequest,
    QuoteResponse,
)
from ...services.delivery import DeliveryNotFoundError, DeliveryServices, OrderNotFoundError
from ...services.lalamove.errors import (
    ProviderError,
    RateLimitExceeded,
    TransportError,
    ValidationError,
)
from ..dependencies import get_delivery_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/delivery", tags=["delivery"])


def _raise_http(exc: Exception, action: str) -> NoReturn:
    """Translate a delivery failure into the matching HTTP error."""
    if isinstance(exc, (OrderNotFoundError, DeliveryNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": exc.message, "field": exc.field},
        ) from exc
    if isinstance(exc, RateLimitExceeded):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc)) from exc
    if isinstance(exc, ProviderError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": f"Failed to {action}", "provider": exc.to_dict()},
        ) from exc
    if isinstance(exc, TransportError):
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=f"Failed to {action}: {exc}") from exc
    logger.exception(f"Error trying to {action}: {exc}")
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    ) from exc


@router.post("/quote", response_model=QuoteResponse, status_code=status.HTTP_200_OK)
async def get_quotation(
    payload: QuoteRequest,
    services: DeliveryServices = Depends(get_delivery_services),
) -> QuoteResponse:
    try:
        quote = await services.client.get_quote(
            payload.serviceType,
            [stop.to_domain() for stop in payload.stops],
            language=payload.language,
        )
    except Exception as exc:
        _raise_http(exc, "get delivery quotation")
    return QuoteResponse.from_domain(quote)


@router.post("/create", response_model=CreateDeliveryResponse, status_code=status.HTTP_200_OK)
async def create_delivery_order(
    payload: CreateDeliveryRequest,
    services: DeliveryServices = Depends(get_delivery_services),
) -> CreateDeliveryResponse:
    """Manually dispatch a delivery for an existing marketplace order."""
    try:
        record = await services.orchestrator.dispatch(payload.orderId)
    except Exception as exc:
        _raise_http(exc, "create delivery order")

    if record is None:
        return CreateDeliveryResponse(
            orderId=payload.orderId,
            dispatched=False,
            message="Delivery provider is not configured correctly; order left without delivery.",
        )
    return CreateDeliveryResponse(
        orderId=payload.orderId,
        dispatched=True,
        delivery=DeliveryRecordModel.from_domain(payload.orderId, record),
        message=f"Delivery {record.provider_order_id} created",
    )


@router.get("/{order_id}/status", response_model=DeliveryRecordModel, status_code=status.HTTP_200_OK)
async def get_delivery_status(
    order_id: str,
    services: DeliveryServices = Depends(get_delivery_services),
) -> DeliveryRecordModel:
    try:
        record = await services.orchestrator.refresh_status(order_id)
    except Exception as exc:
        _raise_http(exc, "get delivery status")
    return DeliveryRecordModel.from_domain(order_id, record)


@router.get("/{order_id}/driver", response_model=DriverModel, status_code=status.HTTP_200_OK)
async def get_driver_info(
    order_id: str,
    services: DeliveryServices = Depends(get_delivery_services),
) -> DriverModel:
    try:
        driver = await services.orchestrator.driver_info(order_id)
    except Exception as exc:
        _raise_http(exc, "get driver information")
    return DriverModel.from_domain(driver)


@router.get("/{order_id}/driver-location", response_model=LocationModel, status_code=status.HTTP_200_OK)
async def get_driver_location(
    order_id: str,
    services: DeliveryServices = Depends(get_delivery_services),
) -> LocationModel:
    try:
        location = await services.orchestrator.driver_location(order_id)
    except Exception as exc:
        _raise_http(exc, "get driver location")
    return LocationModel(**asdict(location))


@router.delete("/{order_id}", status_code=status.HTTP_200_OK)
async def cancel_delivery(
    order_id: str,
    services: DeliveryServices = Depends(get_delivery_services),
) -> dict:
    try:
        record = await services.orchestrator.cancel(order_id)
    except Exception as exc:
        _raise_http(exc, "cancel delivery")
    return {
        "message": "Delivery cancelled successfully",
        "orderId": order_id,
        "deliveryStatus": record.status.value,
        "redispatchScheduled": services.scheduler.pending(order_id) is not None,
    }
