"""
Constants for the notifications app.

Defines the channel names and the documented default preferences returned
for users that never saved their own.
"""

from enum import StrEnum


class Channel(StrEnum):
    """Delivery channels, in the order they are attempted."""

    PUSH = "push"
    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"


NOTIFICATION_TYPES = (
    "task",
    "emergency",
    "system",
    "message",
    "compliance",
    "weather",
    "maintenance",
)

PRIORITIES = ("low", "medium", "high", "critical")

DEFAULT_DELIVERY = {
    Channel.PUSH.value: True,
    Channel.IN_APP.value: True,
    Channel.EMAIL.value: False,
    Channel.SMS.value: False,
}

DEFAULT_QUIET_HOURS = {
    "enabled": False,
    "start": "22:00",
    "end": "07:00",
    "timezone": "America/New_York",
}

# Realtime bus topic used for in-app delivery
IN_APP_TOPIC = "notification"

MESSAGE_PREVIEW_LENGTH = 100

EMERGENCY_TTL_HOURS = 24
WEATHER_TTL_HOURS = 6


def default_types() -> dict[str, bool]:
    return {name: True for name in NOTIFICATION_TYPES}


def default_priorities() -> dict[str, bool]:
    return {name: True for name in PRIORITIES}


def default_delivery() -> dict[str, bool]:
    return dict(DEFAULT_DELIVERY)


def default_quiet_hours() -> dict[str, object]:
    return dict(DEFAULT_QUIET_HOURS)
