"""
Pydantic schemas for notification data, actions, preferences and inbound
realtime events.

Notification ``data`` is typed per notification type; inbound events and
preference updates accept camelCase keys from mobile clients.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from apps.notifications import constants
from apps.notifications.exceptions import InvalidNotificationError

Priority = Literal["low", "medium", "high", "critical"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Notification data (one model per type)
# ---------------------------------------------------------------------------


class TaskNotificationData(CamelModel):
    task_id: str
    task_title: str


class EmergencyNotificationData(CamelModel):
    emergency_id: str
    emergency_type: str
    building_id: str


class MessageNotificationData(CamelModel):
    message_id: str
    sender_name: str


class ComplianceNotificationData(CamelModel):
    building_id: str
    compliance_type: str
    due_date: datetime


class WeatherNotificationData(CamelModel):
    weather_type: str
    severity: str
    building_id: str


class FreeformNotificationData(CamelModel):
    """System and maintenance notifications carry arbitrary context."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


NOTIFICATION_DATA_MODELS: dict[str, type[CamelModel]] = {
    "task": TaskNotificationData,
    "emergency": EmergencyNotificationData,
    "message": MessageNotificationData,
    "compliance": ComplianceNotificationData,
    "weather": WeatherNotificationData,
    "system": FreeformNotificationData,
    "maintenance": FreeformNotificationData,
}


def normalize_notification_data(
    notification_type: str, data: dict[str, Any] | None
) -> dict[str, Any] | None:
    """
    Validate ``data`` for a notification type and return JSON-safe snake_case data.

    Raises:
        InvalidNotificationError: Unknown type or data fails validation
    """
    if data is None:
        return None
    model = NOTIFICATION_DATA_MODELS.get(notification_type)
    if model is None:
        raise InvalidNotificationError(f"Unknown notification type: {notification_type}")
    try:
        return model.model_validate(data).model_dump(mode="json")
    except ValidationError as e:
        raise InvalidNotificationError(
            f"Invalid {notification_type} notification data",
            errors=e.errors(include_url=False),
        ) from e


class NotificationAction(CamelModel):
    id: str
    title: str
    action: str
    destructive: bool = False
    authentication_required: bool = False


def normalize_actions(actions: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    if not actions:
        return []
    try:
        return [NotificationAction.model_validate(a).model_dump() for a in actions]
    except ValidationError as e:
        raise InvalidNotificationError(
            "Invalid notification actions", errors=e.errors(include_url=False)
        ) from e


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class QuietHours(CamelModel):
    enabled: bool = False
    start: str = constants.DEFAULT_QUIET_HOURS["start"]
    end: str = constants.DEFAULT_QUIET_HOURS["end"]
    timezone: str = constants.DEFAULT_QUIET_HOURS["timezone"]

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class NotificationPreferencesData(CamelModel):
    """Full preference record, stored or defaulted."""

    user_id: str
    user_role: str = "worker"
    enabled: bool = True
    types: dict[str, bool] = Field(default_factory=constants.default_types)
    priority: dict[str, bool] = Field(default_factory=constants.default_priorities)
    delivery: dict[str, bool] = Field(default_factory=constants.default_delivery)
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    sound: bool = True
    vibration: bool = True
    badge: bool = True
    email_address: str = ""
    phone_number: str = ""
    push_token: str = ""

    @field_validator("delivery", mode="before")
    @classmethod
    def normalize_delivery_keys(cls, v: Any) -> Any:
        # Mobile clients send inApp
        if isinstance(v, dict) and "inApp" in v:
            v = {**v}
            v["in_app"] = v.pop("inApp")
        return v

    @classmethod
    def default(cls, user_id: str) -> NotificationPreferencesData:
        return cls(user_id=user_id)

    def type_enabled(self, notification_type: str) -> bool:
        return self.types.get(notification_type, False)

    def priority_enabled(self, priority: str) -> bool:
        return self.priority.get(priority, False)

    def enabled_channels(self) -> list[str]:
        return [channel.value for channel in constants.Channel if self.delivery.get(channel.value)]


# ---------------------------------------------------------------------------
# Inbound realtime events
# ---------------------------------------------------------------------------


class RecipientEvent(CamelModel):
    user_id: str
    user_role: str = "worker"


class TaskAssignedEvent(RecipientEvent):
    task_id: str
    task_title: str
    priority: Priority = "medium"


class EmergencyAlertEvent(RecipientEvent):
    emergency_id: str
    emergency_type: str
    building_id: str


class MessageReceivedEvent(RecipientEvent):
    message_id: str
    sender_name: str
    message: str


class ComplianceDeadlineEvent(RecipientEvent):
    building_id: str
    compliance_type: str
    due_date: datetime


class WeatherAlertEvent(RecipientEvent):
    weather_type: str
    severity: str
    building_id: str
