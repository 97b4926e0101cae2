"""
Connectivity tracking.

NetworkMonitor holds the current online flag and notifies subscribers on
transitions. ConnectivityProbe can drive it by polling a URL with httpx;
without a probe the flag is set by whoever embeds the engine.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx

from apps.core.logging import get_logger

logger = get_logger(__name__)

NetworkListener = Callable[[bool], None]


class NetworkMonitor:
    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: list[NetworkListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register a transition listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """
        Update connectivity.

        Returns:
            True if the state changed and listeners were notified.
        """
        if online == self._online:
            return False

        self._online = online
        logger.info("network_status_changed", online=online)

        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("network_listener_failed")
        return True


class ConnectivityProbe:
    """Polls a health URL and feeds the result into a NetworkMonitor."""

    def __init__(
        self,
        monitor: NetworkMonitor,
        url: str,
        interval: float = 15.0,
        timeout: float = 5.0,
    ):
        self.monitor = monitor
        self.url = url
        self.interval = interval
        self.timeout = timeout

    async def check(self) -> bool:
        """Probe once and update the monitor. Any 5xx or transport error counts as offline."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.head(self.url)
            online = response.status_code < 500
        except httpx.HTTPError as e:
            logger.debug("connectivity_probe_failed", url=self.url, error=str(e))
            online = False

        self.monitor.set_online(online)
        return online

    async def run(self) -> None:
        """Probe forever until cancelled."""
        while True:
            await self.check()
            await asyncio.sleep(self.interval)
