"""Order placement boundary: delivery dispatch never fails an order."""

from __future__ import annotations

import logging

from ...models.domain import MarketplaceOrder
from ...persistence.orders import OrderRepository
from ..lalamove.errors import DeliveryError
from .orchestrator import DeliveryOrchestrator

logger = logging.getLogger(__name__)


class OrderPlacementService:
    def __init__(self, repository: OrderRepository, orchestrator: DeliveryOrchestrator) -> None:
        self.repository = repository
        self.orchestrator = orchestrator

    async def place(self, order: MarketplaceOrder) -> MarketplaceOrder:
        """Persist ``order`` then try to dispatch it.

        Dispatch failures are logged; the order stays without a delivery and
        can be dispatched later through the manual create-delivery route.
        """
        self.repository.save(order)
        try:
            record = await self.orchestrator.dispatch(order)
        except DeliveryError as exc:
            logger.error(f"Delivery dispatch failed for order {order.id}; order kept without delivery: {exc}")
            record = None
        if record is None:
            logger.warning(f"Order {order.id} placed without a delivery assignment")
        return self.repository.get(order.id) or order
