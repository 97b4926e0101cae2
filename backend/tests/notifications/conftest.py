"""
Pytest fixtures for notification tests.

RecordingChannel stands in for a delivery backend so tests can assert which
channels were attempted.
"""

from __future__ import annotations

import pytest

from apps.notifications.config import NotificationConfig
from apps.notifications.exceptions import ChannelError
from apps.notifications.manager import NotificationManager


class RecordingChannel:
    """Channel double that records sends and can be told to fail."""

    def __init__(self, name: str, fail: bool = False):
        self.name = name
        self.fail = fail
        self.sent: list[str] = []

    async def send(self, notification, preferences) -> bool:
        if self.fail:
            raise ChannelError(self.name, "backend unavailable")
        self.sent.append(str(notification.id))
        return True


@pytest.fixture
def notification_config() -> NotificationConfig:
    return NotificationConfig(enable_processor=False, channel_timeout=1.0)


@pytest.fixture
def channels() -> dict[str, RecordingChannel]:
    return {name: RecordingChannel(name) for name in ("push", "in_app", "email", "sms")}


@pytest.fixture
def manager(notification_config, channels) -> NotificationManager:
    return NotificationManager(config=notification_config, channels=channels)
