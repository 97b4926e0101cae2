"""
Delivery channels - pluggable send backends.

LocalPushChannel / LocalSMSChannel: log the send (dev, tests)
ExpoPushChannel: Expo push API over httpx
InAppChannel: broadcast on the realtime bus ``notification`` topic
EmailChannel: Django mail
AwsSMSChannel: AWS End User Messaging via boto3

Each channel's ``send`` returns True on success and raises ChannelError on a
failed send. The manager isolates channels from each other.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
from asgiref.sync import sync_to_async
from django.core.mail import send_mail

from apps.core.bus import RealtimeBus
from apps.core.logging import get_logger
from apps.notifications import sms
from apps.notifications.config import NotificationConfig
from apps.notifications.constants import IN_APP_TOPIC, Channel
from apps.notifications.exceptions import ChannelError
from apps.notifications.models import Notification
from apps.notifications.schemas import NotificationPreferencesData

logger = get_logger(__name__)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """JSON-safe representation used for in-app broadcast and push payloads."""
    return {
        "id": str(notification.id),
        "type": notification.type,
        "priority": notification.priority,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "user_id": notification.user_id,
        "user_role": notification.user_role,
        "timestamp": notification.timestamp.isoformat(),
        "read": notification.read,
        "delivered": notification.delivered,
        "expires_at": notification.expires_at.isoformat() if notification.expires_at else None,
        "actions": notification.actions,
        "category": notification.category,
        "sound": notification.sound or None,
        "vibration": notification.vibration,
        "badge": notification.badge,
    }


class NotificationChannel(ABC):
    """Abstract base class for delivery channels."""

    name: str

    @abstractmethod
    async def send(
        self, notification: Notification, preferences: NotificationPreferencesData
    ) -> bool:
        """
        Send one notification.

        Raises:
            ChannelError: The send failed
        """
        pass


class LocalPushChannel(NotificationChannel):
    """Logs push sends. Useful for development and testing without Expo."""

    name = Channel.PUSH

    async def send(self, notification, preferences):
        logger.info(
            "push_notification_sent",
            notification_id=str(notification.id),
            title=notification.title,
            backend="local",
        )
        return True


class ExpoPushChannel(NotificationChannel):
    """Expo push API backend."""

    name = Channel.PUSH

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def build_message(
        self, notification: Notification, preferences: NotificationPreferencesData
    ) -> dict[str, Any]:
        message: dict[str, Any] = {
            "to": preferences.push_token,
            "title": notification.title,
            "body": notification.message,
            "data": {"notification_id": str(notification.id), **(notification.data or {})},
            "priority": "high" if notification.priority in ("high", "critical") else "default",
        }
        if preferences.sound and notification.sound:
            message["sound"] = notification.sound
        if preferences.badge and notification.badge is not None:
            message["badge"] = notification.badge
        if notification.category:
            message["categoryId"] = notification.category
        return message

    async def send(self, notification, preferences):
        if not preferences.push_token:
            raise ChannelError(self.name, "No push token registered")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.url, json=self.build_message(notification, preferences)
                )
        except httpx.TimeoutException as e:
            raise ChannelError(self.name, f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ChannelError(self.name, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise ChannelError(self.name, f"Expo returned HTTP {response.status_code}")

        ticket = response.json().get("data", {})
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            raise ChannelError(self.name, ticket.get("message", "Expo rejected the message"))

        logger.info(
            "push_notification_sent",
            notification_id=str(notification.id),
            ticket_id=ticket.get("id"),
            backend="expo",
        )
        return True


class InAppChannel(NotificationChannel):
    """Broadcasts to connected clients through the realtime bus."""

    name = Channel.IN_APP

    def __init__(self, bus: RealtimeBus):
        self.bus = bus

    async def send(self, notification, preferences):
        receivers = await self.bus.publish(
            IN_APP_TOPIC,
            {"type": "in_app", "notification": serialize_notification(notification)},
        )
        logger.info(
            "in_app_notification_sent",
            notification_id=str(notification.id),
            receivers=receivers,
        )
        return True


class EmailChannel(NotificationChannel):
    """Sends through Django's configured EMAIL_BACKEND."""

    name = Channel.EMAIL

    def __init__(self, from_email: str):
        self.from_email = from_email

    async def send(self, notification, preferences):
        if not preferences.email_address:
            raise ChannelError(self.name, "No email address on file")

        try:
            sent = await sync_to_async(send_mail)(
                subject=notification.title,
                message=notification.message,
                from_email=self.from_email,
                recipient_list=[preferences.email_address],
            )
        except OSError as e:
            raise ChannelError(self.name, str(e)) from e

        if not sent:
            raise ChannelError(self.name, "Mail backend accepted no messages")

        logger.info("email_notification_sent", notification_id=str(notification.id))
        return True


class LocalSMSChannel(NotificationChannel):
    """Logs SMS sends."""

    name = Channel.SMS

    async def send(self, notification, preferences):
        logger.info(
            "sms_notification_sent",
            notification_id=str(notification.id),
            title=notification.title,
            backend="local",
        )
        return True


class AwsSMSChannel(NotificationChannel):
    name = Channel.SMS

    async def send(self, notification, preferences):
        if not preferences.phone_number:
            raise ChannelError(self.name, "No phone number on file")

        body = f"{notification.title}: {notification.message}"
        await sync_to_async(sms.send_sms, thread_sensitive=False)(preferences.phone_number, body)
        return True


def get_push_channel(config: NotificationConfig) -> NotificationChannel:
    """
    Get the configured push channel.

    Uses NOTIFICATION_PUSH_BACKEND setting: 'local' or 'expo'
    """
    if config.push_backend == "expo":
        if not config.expo_push_url:
            raise ValueError("NOTIFICATION_EXPO_PUSH_URL setting required for expo backend")
        return ExpoPushChannel(url=config.expo_push_url, timeout=config.channel_timeout)
    return LocalPushChannel()


def get_sms_channel(config: NotificationConfig) -> NotificationChannel:
    """
    Get the configured SMS channel.

    Uses NOTIFICATION_SMS_BACKEND setting: 'local' or 'aws'
    """
    if config.sms_backend == "aws":
        return AwsSMSChannel()
    return LocalSMSChannel()


def build_channels(config: NotificationConfig, bus: RealtimeBus) -> dict[str, NotificationChannel]:
    return {
        Channel.PUSH.value: get_push_channel(config),
        Channel.IN_APP.value: InAppChannel(bus),
        Channel.EMAIL.value: EmailChannel(from_email=config.email_from),
        Channel.SMS.value: get_sms_channel(config),
    }
