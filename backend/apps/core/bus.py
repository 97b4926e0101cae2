"""
In-process realtime event bus.

Connected clients (websocket gateways, dashboards) subscribe to topics such
as ``notification``; domain code publishes events like ``task_assigned`` that
the notification manager turns into alerts.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from apps.core.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class RealtimeBus:
    """Async publish/subscribe hub keyed by topic name."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        handlers = self._subscribers.setdefault(topic, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_subscribers(self, topic: str) -> bool:
        return bool(self._subscribers.get(topic))

    async def publish(self, topic: str, data: dict[str, Any]) -> int:
        """
        Publish an event to every subscriber of ``topic``.

        A failing handler is logged and does not stop delivery to the others.

        Returns:
            Number of handlers that completed without raising.
        """
        delivered = 0
        for handler in list(self._subscribers.get(topic, [])):
            try:
                await handler(data)
                delivered += 1
            except Exception:
                logger.exception("realtime_handler_failed", topic=topic)
        return delivered

    def clear(self) -> None:
        self._subscribers.clear()
