"""Wiring of the delivery services held on ``app.state``."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from ...config import LalamoveSettings, lalamove_settings
from ...persistence.orders import OrderRepository, get_order_repository
from ..lalamove.client import LalamoveClient
from ..notifications import EventBroadcaster
from .orchestrator import DeliveryOrchestrator
from .placement import OrderPlacementService
from .scheduler import TaskScheduler
from .webhooks import WebhookDispatcher, WebhookVerifier


@dataclass
class DeliveryServices:
    client: LalamoveClient
    repository: OrderRepository
    broadcaster: EventBroadcaster
    scheduler: TaskScheduler
    orchestrator: DeliveryOrchestrator
    placement: OrderPlacementService
    verifier: WebhookVerifier
    dispatcher: WebhookDispatcher

    async def aclose(self) -> None:
        await self.scheduler.shutdown()
        await self.client.aclose()


def build_delivery_services(
    config: LalamoveSettings | None = None,
    repository: OrderRepository | None = None,
    broadcaster: EventBroadcaster | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DeliveryServices:
    """Build every delivery component; raises ConfigurationError on missing credentials."""
    config = config or lalamove_settings
    verifier = WebhookVerifier(config.effective_webhook_secret)
    client = LalamoveClient.from_settings(config, transport=transport)
    repository = repository if repository is not None else get_order_repository()
    broadcaster = broadcaster if broadcaster is not None else EventBroadcaster()
    scheduler = TaskScheduler()
    orchestrator = DeliveryOrchestrator(
        client,
        repository,
        broadcaster=broadcaster,
        scheduler=scheduler,
        service_type=config.service_type,
        language=config.language,
        redispatch_delay=config.redispatch_delay_seconds,
        default_sender_phone=config.api_user,
    )
    return DeliveryServices(
        client=client,
        repository=repository,
        broadcaster=broadcaster,
        scheduler=scheduler,
        orchestrator=orchestrator,
        placement=OrderPlacementService(repository, orchestrator),
        verifier=verifier,
        dispatcher=WebhookDispatcher(repository, broadcaster),
    )
