"""
Realtime bus subscriptions that turn domain events into notifications.

Event payloads accept snake_case or camelCase keys. A malformed event is
logged and dropped; it never reaches the bus publisher as an exception.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from apps.core.bus import EventHandler, RealtimeBus
from apps.core.logging import get_logger
from apps.notifications.schemas import (
    ComplianceDeadlineEvent,
    EmergencyAlertEvent,
    MessageReceivedEvent,
    TaskAssignedEvent,
    WeatherAlertEvent,
)

if TYPE_CHECKING:
    from apps.notifications.manager import NotificationManager

logger = get_logger(__name__)


def _handler(
    topic: str,
    schema: type[BaseModel],
    create: Callable[[Any], Awaitable[str]],
) -> EventHandler:
    async def handle(data: dict[str, Any]) -> None:
        try:
            event = schema.model_validate(data)
        except ValidationError as e:
            logger.warning("realtime_event_invalid", topic=topic, errors=e.error_count())
            return
        notification_id = await create(event)
        logger.debug("realtime_event_handled", topic=topic, notification_id=notification_id)

    return handle


def register_realtime_handlers(
    bus: RealtimeBus, manager: NotificationManager
) -> list[tuple[str, EventHandler]]:
    """
    Subscribe the manager's creators to inbound domain events.

    Returns:
        (topic, handler) pairs, for unsubscribing on shutdown.
    """
    handlers: list[tuple[str, EventHandler]] = [
        (
            "task_assigned",
            _handler(
                "task_assigned",
                TaskAssignedEvent,
                lambda e: manager.create_task_notification(
                    e.task_id, e.task_title, e.user_id, e.user_role, e.priority
                ),
            ),
        ),
        (
            "emergency_alert",
            _handler(
                "emergency_alert",
                EmergencyAlertEvent,
                lambda e: manager.create_emergency_notification(
                    e.emergency_id, e.emergency_type, e.building_id, e.user_id, e.user_role
                ),
            ),
        ),
        (
            "message_received",
            _handler(
                "message_received",
                MessageReceivedEvent,
                lambda e: manager.create_message_notification(
                    e.message_id, e.sender_name, e.message, e.user_id, e.user_role
                ),
            ),
        ),
        (
            "compliance_deadline",
            _handler(
                "compliance_deadline",
                ComplianceDeadlineEvent,
                lambda e: manager.create_compliance_notification(
                    e.building_id, e.compliance_type, e.due_date, e.user_id, e.user_role
                ),
            ),
        ),
        (
            "weather_alert",
            _handler(
                "weather_alert",
                WeatherAlertEvent,
                lambda e: manager.create_weather_notification(
                    e.weather_type, e.severity, e.building_id, e.user_id, e.user_role
                ),
            ),
        ),
    ]

    for topic, handler in handlers:
        bus.subscribe(topic, handler)

    logger.info("realtime_handlers_registered", topics=[topic for topic, _ in handlers])
    return handlers


def unregister_realtime_handlers(
    bus: RealtimeBus, handlers: list[tuple[str, EventHandler]]
) -> None:
    for topic, handler in handlers:
        bus.unsubscribe(topic, handler)
