"""Order store used by the delivery integration.

The order subsystem owns these records; the delivery code only reads them and
writes the ``delivery`` sub-document back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import MarketplaceOrder

logger = logging.getLogger(__name__)


class OrderRepository(Protocol):
    def get(self, order_id: str) -> MarketplaceOrder | None: ...

    def find_by_provider_order_id(self, provider_order_id: str) -> MarketplaceOrder | None: ...

    def save(self, order: MarketplaceOrder) -> MarketplaceOrder: ...


class InMemoryOrderRepository:
    """Dict-backed store. Records are kept serialized so callers never share instances."""

    def __init__(self, orders: list[MarketplaceOrder] | None = None) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        for order in orders or []:
            self.save(order)

    def get(self, order_id: str) -> MarketplaceOrder | None:
        row = self._rows.get(str(order_id))
        return MarketplaceOrder.from_dict(row) if row else None

    def find_by_provider_order_id(self, provider_order_id: str) -> MarketplaceOrder | None:
        for row in self._rows.values():
            delivery = row.get("delivery") or {}
            if delivery.get("provider_order_id") == provider_order_id:
                return MarketplaceOrder.from_dict(row)
        return None

    def save(self, order: MarketplaceOrder) -> MarketplaceOrder:
        self._rows[order.id] = order.to_dict()
        return order

    def __len__(self) -> int:
        return len(self._rows)


class SupabaseOrderRepository:
    """Orders stored as JSON payloads in a Supabase table."""

    def __init__(self, client: Any, table: str | None = None) -> None:
        self.client = client
        self.table = table or settings.orders_table

    def _load(self, rows: list[dict] | None) -> MarketplaceOrder | None:
        if not rows:
            return None
        return MarketplaceOrder.from_dict(rows[0]["payload"])

    def get(self, order_id: str) -> MarketplaceOrder | None:
        response = self.client.table(self.table).select("payload").eq("id", str(order_id)).limit(1).execute()
        return self._load(response.data)

    def find_by_provider_order_id(self, provider_order_id: str) -> MarketplaceOrder | None:
        response = (
            self.client.table(self.table)
            .select("payload")
            .eq("provider_order_id", provider_order_id)
            .limit(1)
            .execute()
        )
        return self._load(response.data)

    def save(self, order: MarketplaceOrder) -> MarketplaceOrder:
        row = {
            "id": order.id,
            "provider_order_id": order.delivery.provider_order_id if order.delivery else None,
            "status": order.status.value,
            "payload": order.to_dict(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self.client.table(self.table).upsert(row).execute()
        return order


def get_order_repository() -> OrderRepository:
    """Supabase-backed store when configured, in-memory otherwise."""
    client = get_supabase_client()
    if client is None:
        logger.warning("Order store is in-memory; orders will not survive a restart")
        return InMemoryOrderRepository()
    return SupabaseOrderRepository(client)
