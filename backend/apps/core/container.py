"""
Service container.

Wires the sync engine and the notification manager to one realtime bus and
one network monitor. Management commands and embedding processes build a
container instead of constructing the managers by hand.

Usage:
    container = build_container()
    await container.start()
    ...
    await container.stop()
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings

from apps.core.bus import EventHandler, RealtimeBus
from apps.core.logging import get_logger
from apps.notifications.channels import build_channels
from apps.notifications.config import NotificationConfig
from apps.notifications.manager import NotificationManager
from apps.notifications.subscriptions import (
    register_realtime_handlers,
    unregister_realtime_handlers,
)
from apps.sync.config import SyncEngineConfig
from apps.sync.engine import OfflineSyncManager
from apps.sync.network import ConnectivityProbe, NetworkMonitor
from apps.sync.registry import build_default_registry

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    bus: RealtimeBus
    network: NetworkMonitor
    sync_manager: OfflineSyncManager
    notification_manager: NotificationManager
    probe: ConnectivityProbe | None = None
    handlers: list[tuple[str, EventHandler]] = field(default_factory=list)
    _probe_task: asyncio.Task | None = field(default=None, init=False, repr=False)

    async def start(self) -> None:
        if self.probe is not None and self._probe_task is None:
            await self.probe.check()
            self._probe_task = asyncio.create_task(self.probe.run())
        await self.sync_manager.start()
        await self.notification_manager.start()
        logger.info("service_container_started", probe=self.probe is not None)

    async def stop(self) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass
            self._probe_task = None
        await self.notification_manager.stop()
        await self.sync_manager.stop()
        unregister_realtime_handlers(self.bus, self.handlers)
        self.handlers = []
        logger.info("service_container_stopped")


def build_container(online: bool = True, **sync_overrides: Any) -> ServiceContainer:
    """
    Build a container from Django settings.

    Args:
        online: Initial connectivity flag. A configured probe overrides it on start.
        **sync_overrides: SyncEngineConfig fields to replace, e.g. sync_on_enqueue=False

    Raises:
        TypeError: If an override names an unknown SyncEngineConfig field
    """
    sync_config = dataclasses.replace(SyncEngineConfig.from_settings(), **sync_overrides)
    notification_config = NotificationConfig.from_settings()

    bus = RealtimeBus()
    network = NetworkMonitor(online=online)

    sync_manager = OfflineSyncManager(
        config=sync_config,
        registry=build_default_registry(),
        network=network,
    )
    notification_manager = NotificationManager(
        config=notification_config,
        channels=build_channels(notification_config, bus),
    )

    probe = None
    connectivity_url = getattr(settings, "SYNC_CONNECTIVITY_URL", "")
    if connectivity_url:
        probe = ConnectivityProbe(
            network,
            url=connectivity_url,
            interval=float(getattr(settings, "SYNC_CONNECTIVITY_INTERVAL_SECONDS", 15)),
        )

    handlers = register_realtime_handlers(bus, notification_manager)

    return ServiceContainer(
        bus=bus,
        network=network,
        sync_manager=sync_manager,
        notification_manager=notification_manager,
        probe=probe,
        handlers=handlers,
    )
