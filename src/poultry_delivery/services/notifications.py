"""Channel-keyed event broadcasting for order and delivery updates."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)

Listener = Callable[[str, str, dict], Union[Awaitable[None], None]]


def order_channel(order_id: str) -> str:
    return f"order:{order_id}"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


class EventBroadcaster:
    """Fan-out of ``(channel, event, payload)`` to registered listeners.

    Listeners subscribe either to one channel or to every channel (``"*"``).
    A failing listener is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, channel: str, listener: Listener) -> Callable[[], None]:
        self._listeners[channel].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners.get(channel, []):
                self._listeners[channel].remove(listener)

        return unsubscribe

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        for listener in [*self._listeners.get(channel, []), *self._listeners.get("*", [])]:
            try:
                result = listener(channel, event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Listener failed for {event} on {channel}")

    async def publish_many(self, channels: list[str], event: str, payload: dict[str, Any]) -> None:
        for channel in channels:
            await self.publish(channel, event, payload)
