"""
Tests for the notification manager.

Covers creation, the preference gate, multi-channel delivery, the deferred
queue processor, read/delete operations, stats and preferences.
"""

from datetime import UTC, datetime, timedelta

import pytest
from asgiref.sync import sync_to_async
from django.utils import timezone

from apps.notifications.exceptions import InvalidNotificationError
from apps.notifications.models import Notification, NotificationPreferences
from tests.notifications.factories import NotificationFactory, NotificationPreferencesFactory

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]

# 23:00 in New York on 2024-01-15
NY_2300 = datetime(2024, 1, 16, 4, 0, tzinfo=UTC)


async def _preferences(user_id: str = "worker_1", **kwargs) -> NotificationPreferences:
    return await sync_to_async(NotificationPreferencesFactory.create)(user_id=user_id, **kwargs)


async def _notification(**kwargs) -> Notification:
    notification = NotificationFactory.build(**kwargs)
    await notification.asave()
    return notification


QUIET_NIGHT = {"enabled": True, "start": "22:00", "end": "07:00", "timezone": "America/New_York"}


class TestCreateNotification:
    async def test_delivers_immediately_when_gate_passes(self, manager, channels):
        await _preferences()

        notification_id = await manager.create_system_notification(
            "Heads up", "Water shut off at 3pm", "worker_1", "worker"
        )

        notification = await Notification.objects.aget(pk=notification_id)
        assert notification.delivered is True
        assert notification.delivered_at is not None
        assert notification.delivery_channels == ["push", "in_app"]
        assert channels["push"].sent == [notification_id]
        assert channels["in_app"].sent == [notification_id]
        assert channels["email"].sent == []

    async def test_stored_but_undelivered_without_preferences(self, manager, channels):
        """Users with no stored preferences are treated as opted out."""
        notification_id = await manager.create_system_notification(
            "Heads up", "Water shut off at 3pm", "worker_1", "worker"
        )

        notification = await Notification.objects.aget(pk=notification_id)
        assert notification.delivered is False
        assert channels["push"].sent == []

    async def test_unknown_type_rejected(self, manager):
        with pytest.raises(InvalidNotificationError):
            await manager.create_notification(
                type="gossip", title="t", message="m", user_id="worker_1", user_role="worker"
            )

    async def test_invalid_data_rejected(self, manager):
        with pytest.raises(InvalidNotificationError):
            await manager.create_notification(
                type="task",
                title="t",
                message="m",
                user_id="worker_1",
                user_role="worker",
                data={"taskTitle": "missing the id"},
            )

    async def test_actions_normalized(self, manager):
        notification_id = await manager.create_notification(
            type="system",
            title="Confirm",
            message="Confirm arrival",
            user_id="worker_1",
            user_role="worker",
            actions=[{"id": "ack", "title": "Acknowledge", "action": "acknowledge"}],
        )

        notification = await Notification.objects.aget(pk=notification_id)
        assert notification.actions == [
            {
                "id": "ack",
                "title": "Acknowledge",
                "action": "acknowledge",
                "destructive": False,
                "authentication_required": False,
            }
        ]


class TestCreators:
    """Tests for the typed notification creators."""

    async def test_task_notification(self, manager):
        notification_id = await manager.create_task_notification(
            "task_1", "Replace filter", "worker_1", "worker", priority="high"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.type == Notification.Type.TASK
        assert n.priority == Notification.Priority.HIGH
        assert n.message == "You have been assigned a new task: Replace filter"
        assert n.data == {"task_id": "task_1", "task_title": "Replace filter"}
        assert n.badge == 1

    async def test_emergency_is_critical_and_expires_in_a_day(self, manager):
        before = timezone.now()

        notification_id = await manager.create_emergency_notification(
            "em_1", "Gas leak", "bldg_1", "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.priority == Notification.Priority.CRITICAL
        assert before + timedelta(hours=24) <= n.expires_at
        assert n.expires_at <= timezone.now() + timedelta(hours=24)

    async def test_long_message_is_truncated(self, manager):
        body = "x" * 150

        notification_id = await manager.create_message_notification(
            "msg_1", "Dispatch", body, "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.message == "x" * 100 + "..."
        assert n.title == "Message from Dispatch"

    async def test_short_message_kept(self, manager):
        notification_id = await manager.create_message_notification(
            "msg_1", "Dispatch", "On my way", "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.message == "On my way"

    async def test_compliance_due_tomorrow_is_high(self, manager):
        due = timezone.now() + timedelta(hours=20)

        notification_id = await manager.create_compliance_notification(
            "bldg_1", "Boiler inspection", due, "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.priority == Notification.Priority.HIGH
        assert n.expires_at == due
        assert "due in 1 days" in n.message

    async def test_compliance_due_later_is_medium(self, manager):
        due = timezone.now() + timedelta(days=10)

        notification_id = await manager.create_compliance_notification(
            "bldg_1", "Boiler inspection", due, "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.priority == Notification.Priority.MEDIUM

    async def test_severe_weather_is_high(self, manager):
        notification_id = await manager.create_weather_notification(
            "snow", "severe", "bldg_1", "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.priority == Notification.Priority.HIGH
        assert n.expires_at is not None

    async def test_mild_weather_is_medium(self, manager):
        notification_id = await manager.create_weather_notification(
            "rain", "moderate", "bldg_1", "worker_1", "worker"
        )

        n = await Notification.objects.aget(pk=notification_id)
        assert n.priority == Notification.Priority.MEDIUM


class TestShouldDeliver:
    """Tests for the preference gate."""

    async def test_quiet_hours_hold_medium_notifications(self, manager):
        await _preferences(quiet_hours=QUIET_NIGHT)
        notification = await _notification(priority="medium")

        assert await manager.should_deliver_notification(notification, now=NY_2300) is False

    async def test_quiet_hours_let_critical_through(self, manager):
        await _preferences(quiet_hours=QUIET_NIGHT)
        notification = await _notification(priority="critical")

        assert await manager.should_deliver_notification(notification, now=NY_2300) is True

    async def test_outside_quiet_hours(self, manager, fixed_now):
        await _preferences(quiet_hours={**QUIET_NIGHT, "end": "06:00"})
        notification = await _notification(priority="low")

        # fixed_now is 07:00 in New York
        assert await manager.should_deliver_notification(notification, now=fixed_now) is True

    async def test_master_switch(self, manager):
        await _preferences(enabled=False)
        notification = await _notification(priority="critical")

        assert await manager.should_deliver_notification(notification) is False

    async def test_type_disabled(self, manager):
        await _preferences(types={"system": False})
        notification = await _notification(type="system")

        assert await manager.should_deliver_notification(notification) is False

    async def test_priority_disabled(self, manager):
        await _preferences(priorities={"low": False, "medium": True})
        notification = await _notification(priority="low")

        assert await manager.should_deliver_notification(notification) is False

    async def test_no_preferences(self, manager):
        notification = await _notification()

        assert await manager.should_deliver_notification(notification) is False


class TestDeliver:
    """Tests for multi-channel delivery."""

    async def test_failing_channel_does_not_block_others(self, manager, channels):
        await _preferences(delivery={"push": True, "in_app": True, "email": True, "sms": False})
        channels["push"].fail = True
        notification = await _notification()

        succeeded = await manager.deliver_notification(notification)

        assert succeeded == ["in_app", "email"]
        await notification.arefresh_from_db()
        assert notification.delivered is True
        assert notification.delivery_channels == ["in_app", "email"]

    async def test_all_channels_disabled_leaves_undelivered(self, manager):
        await _preferences(delivery={"push": False, "in_app": False})
        notification = await _notification()

        assert await manager.deliver_notification(notification) == []

        await notification.arefresh_from_db()
        assert notification.delivered is False

    async def test_camel_case_in_app_flag(self, manager, channels):
        await _preferences(delivery={"push": False, "inApp": True})
        notification = await _notification()

        assert await manager.deliver_notification(notification) == ["in_app"]


class TestProcessQueue:
    """Tests for the deferred queue processor."""

    async def test_delivers_deferred_once_gate_passes(self, manager, channels):
        notification_id = await manager.create_system_notification(
            "Later", "Deferred", "worker_1", "worker"
        )
        await _preferences()

        result = await manager.process_notification_queue()

        assert result.delivered == 1
        n = await Notification.objects.aget(pk=notification_id)
        assert n.delivered is True

    async def test_still_blocked_stays_deferred(self, manager):
        await _notification(user_id="nobody")

        result = await manager.process_notification_queue()

        assert result.examined == 1
        assert result.deferred == 1
        assert result.delivered == 0

    async def test_expired_notifications_purged(self, manager):
        expired = await _notification(expires_at=timezone.now() - timedelta(minutes=1))
        live = await _notification(expires_at=timezone.now() + timedelta(hours=1))

        result = await manager.process_notification_queue()

        assert result.expired == 1
        assert not await Notification.objects.filter(pk=expired.pk).aexists()
        assert await Notification.objects.filter(pk=live.pk).aexists()

    async def test_quiet_hours_defer_until_morning(self, manager):
        await _preferences(quiet_hours=QUIET_NIGHT)
        notification = await _notification(priority="medium")

        night = await manager.process_notification_queue(now=NY_2300)
        morning = await manager.process_notification_queue(now=NY_2300 + timedelta(hours=9))

        assert night.delivered == 0
        assert morning.delivered == 1
        await notification.arefresh_from_db()
        assert notification.delivered is True

    async def test_pass_walks_every_batch(self, notification_config, channels):
        from dataclasses import replace

        from apps.notifications.manager import NotificationManager

        manager = NotificationManager(replace(notification_config, batch_size=2), channels)
        await _preferences()
        for _ in range(5):
            await _notification()

        result = await manager.process_notification_queue()

        assert result.examined == 5
        assert result.delivered == 5
        assert await Notification.objects.filter(delivered=False).acount() == 0

    async def test_blocked_rows_do_not_starve_newer_ones(self, notification_config, channels):
        from dataclasses import replace

        from apps.notifications.manager import NotificationManager

        manager = NotificationManager(replace(notification_config, batch_size=2), channels)
        await _preferences(quiet_hours=QUIET_NIGHT)
        # Users without stored preferences never pass the gate
        for minutes in (30, 20, 10):
            await _notification(user_id="nobody", timestamp=NY_2300 - timedelta(minutes=minutes))
        target = await _notification(priority="medium", timestamp=NY_2300)

        night = await manager.process_notification_queue(now=NY_2300)
        morning = await manager.process_notification_queue(now=NY_2300 + timedelta(hours=9))

        assert night.delivered == 0
        assert morning.examined == 4
        assert morning.delivered == 1
        assert morning.deferred == 3
        await target.arefresh_from_db()
        assert target.delivered is True


class TestUserOperations:
    async def test_mark_as_read(self, manager):
        n = await _notification()

        assert await manager.mark_notification_as_read(n.pk) is True
        assert await manager.get_unread_notification_count("worker_1") == 0

    async def test_mark_unknown_as_read(self, manager):
        assert await manager.mark_notification_as_read("01890000-0000-7000-8000-000000000000") is False

    async def test_mark_all_as_read_is_per_user(self, manager):
        await _notification()
        await _notification()
        await _notification(user_id="worker_2")

        assert await manager.mark_all_notifications_as_read("worker_1") == 2
        assert await manager.get_unread_notification_count("worker_2") == 1

    async def test_delete(self, manager):
        n = await _notification()

        assert await manager.delete_notification(n.pk) is True
        assert await manager.delete_notification(n.pk) is False

    async def test_list_newest_first_with_limit(self, manager):
        now = timezone.now()
        old = await _notification(timestamp=now - timedelta(hours=2))
        new = await _notification(timestamp=now)
        await _notification(timestamp=now - timedelta(hours=5))

        notifications = await manager.get_notifications_for_user("worker_1", limit=2)

        assert [n.pk for n in notifications] == [new.pk, old.pk]

    async def test_stats(self, manager):
        await _notification(type="task", priority="high", read=True, delivered=True)
        await _notification(type="task", priority="medium", delivered=True)
        await _notification(type="system", priority="medium")
        await _notification(type="system", user_id="worker_2")

        stats = await manager.get_notification_stats("worker_1")

        assert stats.total_notifications == 3
        assert stats.unread_notifications == 2
        assert stats.notifications_by_type == {"task": 2, "system": 1}
        assert stats.notifications_by_priority == {"high": 1, "medium": 2}
        assert stats.delivery_rate == pytest.approx(200 / 3)
        assert stats.read_rate == pytest.approx(100 / 3)
        assert stats.last_notification is not None

    async def test_stats_empty(self, manager):
        stats = await manager.get_notification_stats("nobody")

        assert stats.total_notifications == 0
        assert stats.delivery_rate == 0.0


class TestPreferences:
    async def test_defaults_when_none_stored(self, manager):
        prefs = await manager.get_notification_preferences("worker_9")

        assert prefs.enabled is True
        assert all(prefs.types.values())
        assert all(prefs.priority.values())
        assert prefs.delivery == {"push": True, "in_app": True, "email": False, "sms": False}
        assert prefs.quiet_hours.enabled is False
        assert prefs.quiet_hours.start == "22:00"
        assert prefs.quiet_hours.end == "07:00"
        assert prefs.quiet_hours.timezone == "America/New_York"
        assert prefs.sound and prefs.vibration and prefs.badge
        assert not await NotificationPreferences.objects.filter(pk="worker_9").aexists()

    async def test_update_merges_nested_maps(self, manager):
        await manager.update_notification_preferences(
            "worker_1", {"quietHours": {"enabled": True, "start": "21:00"}}
        )

        prefs = await manager.update_notification_preferences(
            "worker_1", {"delivery": {"email": True}, "quietHours": {"end": "06:30"}}
        )

        assert prefs.delivery == {"push": True, "in_app": True, "email": True, "sms": False}
        assert prefs.quiet_hours.enabled is True
        assert prefs.quiet_hours.start == "21:00"
        assert prefs.quiet_hours.end == "06:30"

        stored = await manager.get_notification_preferences("worker_1")
        assert stored.model_dump() == prefs.model_dump()

    async def test_update_creates_row_that_opens_the_gate(self, manager):
        notification = await _notification()
        assert await manager.should_deliver_notification(notification) is False

        await manager.update_notification_preferences("worker_1", {"pushToken": "ExponentPushToken[x]"})

        assert await manager.should_deliver_notification(notification) is True

    async def test_invalid_update_rejected(self, manager):
        with pytest.raises(InvalidNotificationError):
            await manager.update_notification_preferences(
                "worker_1", {"quietHours": {"start": "9pm"}}
            )

        assert not await NotificationPreferences.objects.filter(pk="worker_1").aexists()
