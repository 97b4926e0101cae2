"""
Notification manager.

Creates notifications, gates them on the recipient's stored preferences
(master switch, per-type and per-priority toggles, quiet hours with a
critical-priority bypass) and delivers them over every enabled channel.
Notifications that fail the gate stay undelivered and are re-evaluated by
the periodic processor until they pass or expire.

"delivered" means every enabled channel was attempted; the channels that
actually reported success are recorded in delivery_channels.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from django.db.models import Count, Max, Q
from django.utils import timezone
from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from apps.core.logging import bind_contextvars, get_logger, unbind_contextvars
from apps.notifications import constants
from apps.notifications.channels import NotificationChannel
from apps.notifications.config import NotificationConfig
from apps.notifications.exceptions import InvalidNotificationError
from apps.notifications.models import Notification, NotificationPreferences
from apps.notifications.quiet_hours import in_quiet_hours
from apps.notifications.schemas import (
    NotificationPreferencesData,
    normalize_actions,
    normalize_notification_data,
)

logger = get_logger(__name__)

# Keys of NotificationPreferencesData that hold nested maps and merge key by key
_NESTED_PREFERENCE_KEYS = ("types", "priority", "delivery", "quiet_hours")


@dataclass
class NotificationStats:
    total_notifications: int = 0
    unread_notifications: int = 0
    notifications_by_type: dict[str, int] = field(default_factory=dict)
    notifications_by_priority: dict[str, int] = field(default_factory=dict)
    delivery_rate: float = 0.0
    read_rate: float = 0.0
    last_notification: datetime | None = None


@dataclass
class ProcessResult:
    examined: int = 0
    delivered: int = 0
    deferred: int = 0
    expired: int = 0
    skipped: bool = False


def _preferences_from_row(row: NotificationPreferences) -> NotificationPreferencesData:
    return NotificationPreferencesData(
        user_id=row.user_id,
        user_role=row.user_role,
        enabled=row.enabled,
        types=row.types,
        priority=row.priorities,
        delivery=row.delivery,
        quiet_hours=row.quiet_hours,
        sound=row.sound,
        vibration=row.vibration,
        badge=row.badge,
        email_address=row.email_address,
        phone_number=row.phone_number,
        push_token=row.push_token,
    )


class NotificationManager:
    def __init__(
        self,
        config: NotificationConfig,
        channels: dict[str, NotificationChannel],
    ):
        self.config = config
        self.channels = channels
        self._is_processing = False
        self._timer_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.config.enable_processor and self._timer_task is None:
            self._timer_task = asyncio.create_task(self._periodic_process())
        logger.info(
            "notification_manager_started",
            processor=self.config.enable_processor,
            interval=self.config.process_interval,
            channels=sorted(self.channels),
        )

    async def stop(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None
        logger.info("notification_manager_stopped")

    async def _periodic_process(self) -> None:
        while True:
            await asyncio.sleep(self.config.process_interval)
            await self.process_notification_queue()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_notification(
        self,
        *,
        type: str,
        title: str,
        message: str,
        user_id: str,
        user_role: str,
        priority: str = Notification.Priority.MEDIUM,
        data: dict[str, Any] | None = None,
        expires_at: datetime | None = None,
        actions: list[dict[str, Any]] | None = None,
        category: str = "",
        sound: str = "",
        vibration: bool = False,
        badge: int | None = None,
    ) -> str:
        """
        Persist a notification and deliver it now if the preference gate passes.

        Channel failures are logged, never raised.

        Raises:
            InvalidNotificationError: Bad type, priority, data or actions
        """
        if type not in Notification.Type.values:
            raise InvalidNotificationError(f"Unknown notification type: {type}")
        if priority not in Notification.Priority.values:
            raise InvalidNotificationError(f"Unknown priority: {priority}")

        notification = await Notification.objects.acreate(
            type=type,
            priority=priority,
            title=title,
            message=message,
            data=normalize_notification_data(type, data),
            user_id=user_id,
            user_role=user_role,
            expires_at=expires_at,
            actions=normalize_actions(actions),
            category=category,
            sound=sound,
            vibration=vibration,
            badge=badge,
        )

        if await self.should_deliver_notification(notification):
            await self.deliver_notification(notification)
        else:
            logger.info(
                "notification_deferred",
                notification_id=str(notification.id),
                type=type,
                priority=priority,
            )

        logger.info("notification_created", notification_id=str(notification.id), type=type)
        return str(notification.id)

    async def create_task_notification(
        self,
        task_id: str,
        task_title: str,
        user_id: str,
        user_role: str,
        priority: str = Notification.Priority.MEDIUM,
    ) -> str:
        return await self.create_notification(
            type=Notification.Type.TASK,
            priority=priority,
            title="New Task Assignment",
            message=f"You have been assigned a new task: {task_title}",
            data={"task_id": task_id, "task_title": task_title},
            user_id=user_id,
            user_role=user_role,
            category="task_assignment",
            sound="default",
            vibration=True,
            badge=1,
        )

    async def create_emergency_notification(
        self,
        emergency_id: str,
        emergency_type: str,
        building_id: str,
        user_id: str,
        user_role: str,
    ) -> str:
        """Critical priority, expires after 24 hours."""
        return await self.create_notification(
            type=Notification.Type.EMERGENCY,
            priority=Notification.Priority.CRITICAL,
            title="Emergency Alert",
            message=f"{emergency_type} reported at building {building_id}",
            data={
                "emergency_id": emergency_id,
                "emergency_type": emergency_type,
                "building_id": building_id,
            },
            user_id=user_id,
            user_role=user_role,
            category="emergency",
            sound="emergency",
            vibration=True,
            badge=1,
            expires_at=timezone.now() + timedelta(hours=constants.EMERGENCY_TTL_HOURS),
        )

    async def create_system_notification(
        self,
        title: str,
        message: str,
        user_id: str,
        user_role: str,
        priority: str = Notification.Priority.MEDIUM,
    ) -> str:
        return await self.create_notification(
            type=Notification.Type.SYSTEM,
            priority=priority,
            title=title,
            message=message,
            user_id=user_id,
            user_role=user_role,
            category="system",
            sound="default",
            vibration=False,
        )

    async def create_message_notification(
        self,
        message_id: str,
        sender_name: str,
        message: str,
        user_id: str,
        user_role: str,
    ) -> str:
        limit = constants.MESSAGE_PREVIEW_LENGTH
        preview = message[:limit] + "..." if len(message) > limit else message
        return await self.create_notification(
            type=Notification.Type.MESSAGE,
            priority=Notification.Priority.MEDIUM,
            title=f"Message from {sender_name}",
            message=preview,
            data={"message_id": message_id, "sender_name": sender_name},
            user_id=user_id,
            user_role=user_role,
            category="message",
            sound="message",
            vibration=True,
            badge=1,
        )

    async def create_compliance_notification(
        self,
        building_id: str,
        compliance_type: str,
        due_date: datetime,
        user_id: str,
        user_role: str,
    ) -> str:
        """High priority when due within a day; expires at the due date."""
        days_until_due = math.ceil((due_date - timezone.now()).total_seconds() / 86400)
        priority = (
            Notification.Priority.HIGH if days_until_due <= 1 else Notification.Priority.MEDIUM
        )
        return await self.create_notification(
            type=Notification.Type.COMPLIANCE,
            priority=priority,
            title="Compliance Deadline",
            message=f"{compliance_type} due in {days_until_due} days for building {building_id}",
            data={
                "building_id": building_id,
                "compliance_type": compliance_type,
                "due_date": due_date,
            },
            user_id=user_id,
            user_role=user_role,
            category="compliance",
            sound="default",
            vibration=True,
            expires_at=due_date,
        )

    async def create_weather_notification(
        self,
        weather_type: str,
        severity: str,
        building_id: str,
        user_id: str,
        user_role: str,
    ) -> str:
        """High priority for severe weather, expires after 6 hours."""
        priority = (
            Notification.Priority.HIGH if severity == "severe" else Notification.Priority.MEDIUM
        )
        return await self.create_notification(
            type=Notification.Type.WEATHER,
            priority=priority,
            title="Weather Alert",
            message=f"{severity} {weather_type} expected near building {building_id}",
            data={"weather_type": weather_type, "severity": severity, "building_id": building_id},
            user_id=user_id,
            user_role=user_role,
            category="weather",
            sound="weather",
            vibration=True,
            expires_at=timezone.now() + timedelta(hours=constants.WEATHER_TTL_HOURS),
        )

    # ------------------------------------------------------------------
    # Gate and delivery
    # ------------------------------------------------------------------

    async def _stored_preferences(self, user_id: str) -> NotificationPreferencesData | None:
        row = await NotificationPreferences.objects.filter(pk=user_id).afirst()
        if row is None:
            return None
        return _preferences_from_row(row)

    async def should_deliver_notification(
        self, notification: Notification, now: datetime | None = None
    ) -> bool:
        """
        Decide whether to deliver now.

        False when the user has no stored preferences, has disabled
        notifications, the type or priority is disabled, or quiet hours are
        active and the notification is not critical.
        """
        preferences = await self._stored_preferences(notification.user_id)
        if preferences is None or not preferences.enabled:
            return False
        if not preferences.type_enabled(notification.type):
            return False
        if not preferences.priority_enabled(notification.priority):
            return False
        if in_quiet_hours(preferences.quiet_hours, now):
            return notification.priority == Notification.Priority.CRITICAL
        return True

    async def deliver_notification(self, notification: Notification) -> list[str]:
        """
        Attempt every enabled channel.

        Returns:
            Channels that reported success.
        """
        preferences = await self._stored_preferences(notification.user_id)
        if preferences is None:
            return []

        enabled = [name for name in preferences.enabled_channels() if name in self.channels]
        if not enabled:
            logger.warning(
                "notification_no_enabled_channels",
                notification_id=str(notification.id),
                user_id=notification.user_id,
            )
            return []

        bind_contextvars(**{"notification.id": str(notification.id)})
        succeeded: list[str] = []
        try:
            for name in enabled:
                try:
                    ok = await asyncio.wait_for(
                        self.channels[name].send(notification, preferences),
                        timeout=self.config.channel_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.warning("notification_channel_timeout", channel=name)
                    continue
                except Exception as e:
                    logger.warning("notification_channel_failed", channel=name, error=str(e))
                    continue
                if ok:
                    succeeded.append(name)

            notification.delivered = True
            notification.delivered_at = timezone.now()
            notification.delivery_channels = succeeded
            await notification.asave(
                update_fields=["delivered", "delivered_at", "delivery_channels"]
            )
            logger.info(
                "notification_delivered",
                type=notification.type,
                attempted=enabled,
                succeeded=succeeded,
            )
        finally:
            unbind_contextvars("notification.id")

        return succeeded

    async def process_notification_queue(self, now: datetime | None = None) -> ProcessResult:
        """
        Re-evaluate every deferred notification, oldest first, in batch_size pages.

        Expired notifications are purged first. Runs are guarded so a slow
        pass is never overlapped by the next tick.
        """
        if self._is_processing:
            return ProcessResult(skipped=True)

        self._is_processing = True
        result = ProcessResult()
        try:
            now = now or timezone.now()
            expired, _ = await Notification.objects.filter(expires_at__lte=now).adelete()
            result.expired = expired
            if expired:
                logger.info("notifications_expired", count=expired)

            # Keyset pages over (timestamp, id); every undelivered row is examined each pass
            qs = Notification.objects.filter(delivered=False).order_by("timestamp", "id")
            last: Notification | None = None
            while True:
                page_qs = qs
                if last is not None:
                    page_qs = qs.filter(
                        Q(timestamp__gt=last.timestamp)
                        | Q(timestamp=last.timestamp, id__gt=last.id)
                    )
                page = [n async for n in page_qs[: self.config.batch_size]]
                for notification in page:
                    await self._process_deferred(notification, now, result)
                if not page or len(page) < self.config.batch_size:
                    break
                last = page[-1]
        except Exception:
            logger.exception("notification_queue_failed")
        finally:
            self._is_processing = False

        if result.delivered:
            logger.info("notification_queue_processed", delivered=result.delivered)
        return result

    async def _process_deferred(
        self, notification: Notification, now: datetime, result: ProcessResult
    ) -> None:
        result.examined += 1
        try:
            if await self.should_deliver_notification(notification, now):
                await self.deliver_notification(notification)
                if notification.delivered:
                    result.delivered += 1
                    return
            result.deferred += 1
        except Exception:
            logger.exception("notification_processing_failed", notification_id=str(notification.id))
            result.deferred += 1

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    async def mark_notification_as_read(self, notification_id) -> bool:
        updated = await Notification.objects.filter(pk=notification_id).aupdate(read=True)
        return updated > 0

    async def mark_all_notifications_as_read(self, user_id: str) -> int:
        updated = await Notification.objects.filter(user_id=user_id, read=False).aupdate(
            read=True
        )
        logger.info("notifications_marked_read", user_id=user_id, count=updated)
        return updated

    async def delete_notification(self, notification_id) -> bool:
        deleted, _ = await Notification.objects.filter(pk=notification_id).adelete()
        return deleted > 0

    async def get_notifications_for_user(self, user_id: str, limit: int = 50) -> list[Notification]:
        qs = Notification.objects.filter(user_id=user_id).order_by("-timestamp")[:limit]
        return [n async for n in qs]

    async def get_unread_notification_count(self, user_id: str) -> int:
        return await Notification.objects.filter(user_id=user_id, read=False).acount()

    async def get_notification_stats(self, user_id: str | None = None) -> NotificationStats:
        qs = Notification.objects.all()
        if user_id:
            qs = qs.filter(user_id=user_id)

        totals = await qs.aaggregate(
            total=Count("id"),
            unread_count=Count("id", filter=Q(read=False)),
            delivered_count=Count("id", filter=Q(delivered=True)),
            read_count=Count("id", filter=Q(read=True)),
            last=Max("timestamp"),
        )
        stats = NotificationStats(
            total_notifications=totals["total"],
            unread_notifications=totals["unread_count"],
            last_notification=totals["last"],
        )

        async for row in qs.order_by().values("type").annotate(count=Count("id")):
            stats.notifications_by_type[row["type"]] = row["count"]
        async for row in qs.order_by().values("priority").annotate(count=Count("id")):
            stats.notifications_by_priority[row["priority"]] = row["count"]

        if stats.total_notifications:
            stats.delivery_rate = totals["delivered_count"] / stats.total_notifications * 100
            stats.read_rate = totals["read_count"] / stats.total_notifications * 100
        return stats

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_notification_preferences(self, user_id: str) -> NotificationPreferencesData:
        """Stored preferences, or the documented defaults when none are stored."""
        stored = await self._stored_preferences(user_id)
        return stored or NotificationPreferencesData.default(user_id)

    async def update_notification_preferences(
        self, user_id: str, updates: dict[str, Any]
    ) -> NotificationPreferencesData:
        """
        Merge a partial update onto the current (or default) preferences and store it.

        Nested maps (types, priority, delivery, quiet_hours) merge key by key,
        so {"quiet_hours": {"enabled": True}} keeps the stored window.

        Raises:
            InvalidNotificationError: The merged record fails validation
        """
        current = await self.get_notification_preferences(user_id)
        merged = current.model_dump()

        for key, value in _snake_keys(updates).items():
            if key in _NESTED_PREFERENCE_KEYS and isinstance(value, dict):
                merged[key] = {**merged[key], **_snake_keys(value)}
            else:
                merged[key] = value
        merged["user_id"] = user_id

        try:
            preferences = NotificationPreferencesData.model_validate(merged)
        except ValidationError as e:
            raise InvalidNotificationError(
                "Invalid notification preferences", errors=e.errors(include_url=False)
            ) from e

        await NotificationPreferences.objects.aupdate_or_create(
            user_id=user_id,
            defaults={
                "user_role": preferences.user_role,
                "enabled": preferences.enabled,
                "types": preferences.types,
                "priorities": preferences.priority,
                "delivery": preferences.delivery,
                "quiet_hours": preferences.quiet_hours.model_dump(),
                "sound": preferences.sound,
                "vibration": preferences.vibration,
                "badge": preferences.badge,
                "email_address": preferences.email_address,
                "phone_number": preferences.phone_number,
                "push_token": preferences.push_token,
            },
        )
        logger.info("notification_preferences_updated", user_id=user_id, keys=sorted(updates))
        return preferences


def _snake_keys(data: dict[str, Any]) -> dict[str, Any]:
    # Mobile clients send camelCase (quietHours, inApp)
    return {to_snake(key): value for key, value in data.items()}
