"""
Tests for the service container and the offline worker command.
"""

from io import StringIO

import pytest
from django.core.management import call_command
from django.test import override_settings

from apps.core.container import build_container
from apps.facilities.models import Task
from apps.notifications.channels import ExpoPushChannel, LocalPushChannel
from apps.notifications.models import Notification
from apps.sync.models import SyncOperation
from tests.notifications.factories import NotificationFactory, NotificationPreferencesFactory
from tests.sync.factories import SyncOperationFactory


class TestBuildContainer:
    """Tests for build_container wiring."""

    def test_sync_overrides_applied(self):
        container = build_container(sync_on_enqueue=False, batch_size=3)

        assert container.sync_manager.config.sync_on_enqueue is False
        assert container.sync_manager.config.batch_size == 3

    def test_unknown_override_rejected(self):
        with pytest.raises(TypeError):
            build_container(turbo=True)

    def test_managers_share_network_and_bus(self):
        container = build_container(online=False)

        assert container.sync_manager.network is container.network
        assert container.network.is_online is False
        assert container.bus.has_subscribers("task_assigned")
        assert container.bus.has_subscribers("emergency_alert")

    def test_probe_only_when_url_configured(self):
        assert build_container().probe is None

        with override_settings(SYNC_CONNECTIVITY_URL="https://api.example.com/health"):
            container = build_container()

        assert container.probe is not None
        assert container.probe.url == "https://api.example.com/health"

    def test_push_backend_from_settings(self):
        assert isinstance(build_container().notification_manager.channels["push"], LocalPushChannel)

        with override_settings(NOTIFICATION_PUSH_BACKEND="expo"):
            container = build_container()

        assert isinstance(container.notification_manager.channels["push"], ExpoPushChannel)


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
class TestContainerLifecycle:
    async def test_start_and_stop(self):
        container = build_container()

        await container.start()
        await container.stop()

        assert not container.bus.has_subscribers("task_assigned")

    async def test_bus_event_creates_notification(self):
        container = build_container()

        await container.bus.publish(
            "task_assigned",
            {"taskId": "task_1", "taskTitle": "Check boiler", "userId": "worker_1"},
        )

        notification = await Notification.objects.aget(user_id="worker_1")
        assert notification.type == Notification.Type.TASK


@pytest.mark.django_db(transaction=True)
class TestRunOfflineWorkerOnce:
    def test_once_drains_sync_and_notification_queues(self):
        SyncOperationFactory.create(entity_id="task_worker")
        NotificationPreferencesFactory.create(user_id="worker_1")
        NotificationFactory.create(user_id="worker_1")

        out = StringIO()
        call_command("run_offline_worker", "--once", stdout=out)

        output = out.getvalue()
        assert "Synced 1 operations (1 completed" in output
        assert "Delivered 1 notifications" in output
        assert Task.objects.filter(pk="task_worker").exists()
        assert SyncOperation.objects.count() == 0
        assert Notification.objects.get(user_id="worker_1").delivered is True

    def test_once_with_empty_queues(self):
        out = StringIO()
        call_command("run_offline_worker", "--once", stdout=out)

        assert "Sync skipped: empty" in out.getvalue()
