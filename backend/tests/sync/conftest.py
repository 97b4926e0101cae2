"""
Pytest fixtures for sync tests.

Provides engine configuration, a network monitor and an engine factory.
Apply functions can be swapped per entity type through the registry.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable

import pytest

from apps.sync.config import SyncEngineConfig
from apps.sync.engine import OfflineSyncManager
from apps.sync.exceptions import ApplyError
from apps.sync.network import NetworkMonitor
from apps.sync.registry import ApplyRegistry, build_default_registry


class FlakyApply:
    """Apply double that fails a fixed number of times, then succeeds (or delegates)."""

    def __init__(self, failures: int = 0, error: Exception | None = None, delegate=None):
        self.failures = failures
        self.error = error or ApplyError("connection reset")
        self.delegate = delegate
        self.calls: list[str] = []

    async def __call__(self, operation, payload) -> bool:
        self.calls.append(str(operation.id))
        if len(self.calls) <= self.failures:
            raise self.error
        if self.delegate is not None:
            return await self.delegate(operation, payload)
        return True


class RecordingApply:
    """Apply double that records the order operations were applied in."""

    def __init__(self):
        self.applied: list[str] = []

    async def __call__(self, operation, payload) -> bool:
        self.applied.append(operation.entity_id)
        return True


@pytest.fixture
def sync_config() -> SyncEngineConfig:
    """Deterministic config: no timers, no drain on enqueue, no backoff."""
    return SyncEngineConfig(
        sync_interval=30.0,
        max_retries=3,
        batch_size=10,
        max_queue_size=1000,
        apply_timeout=5.0,
        retry_backoff_base=0.0,
        retry_backoff_max=0.0,
        conflict_resolution_strategy="manual",
        enable_conflict_resolution=True,
        enable_background_sync=False,
        sync_on_enqueue=False,
    )


@pytest.fixture
def network() -> NetworkMonitor:
    return NetworkMonitor(online=True)


@pytest.fixture
def registry() -> ApplyRegistry:
    return build_default_registry()


@pytest.fixture
def make_engine(sync_config, network, registry) -> Callable[..., OfflineSyncManager]:
    """
    Build an engine, optionally overriding config fields.

    Usage:
        engine = make_engine(max_queue_size=2)
    """

    def _make(**overrides) -> OfflineSyncManager:
        config = dataclasses.replace(sync_config, **overrides)
        return OfflineSyncManager(config=config, registry=registry, network=network)

    return _make


@pytest.fixture
def engine(make_engine) -> OfflineSyncManager:
    return make_engine()
