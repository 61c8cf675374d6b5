"""Request-scoped access to the delivery services built at startup."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..services.delivery import DeliveryServices


def get_delivery_services(request: Request) -> DeliveryServices:
    services = getattr(request.app.state, "delivery", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Delivery services are not initialised.",
        )
    return services
