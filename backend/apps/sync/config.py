"""
Engine configuration.

Values come from Django settings (which in turn come from the pydantic
Settings object), but the engine itself only ever sees this dataclass so
tests can build one directly.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class SyncEngineConfig:
    sync_interval: float = 30.0
    max_retries: int = 3
    batch_size: int = 10
    max_queue_size: int = 1000
    apply_timeout: float | None = 30.0
    retry_backoff_base: float = 2.0
    retry_backoff_max: float = 300.0
    conflict_resolution_strategy: str = "manual"
    enable_conflict_resolution: bool = True
    enable_background_sync: bool = True
    sync_on_enqueue: bool = True

    @classmethod
    def from_settings(cls) -> SyncEngineConfig:
        timeout = float(getattr(settings, "SYNC_APPLY_TIMEOUT_SECONDS", 30))
        return cls(
            sync_interval=float(getattr(settings, "SYNC_INTERVAL_SECONDS", 30)),
            max_retries=int(getattr(settings, "SYNC_MAX_RETRIES", 3)),
            batch_size=int(getattr(settings, "SYNC_BATCH_SIZE", 10)),
            max_queue_size=int(getattr(settings, "SYNC_MAX_QUEUE_SIZE", 1000)),
            apply_timeout=timeout if timeout > 0 else None,
            retry_backoff_base=float(getattr(settings, "SYNC_RETRY_BACKOFF_BASE_SECONDS", 2)),
            retry_backoff_max=float(getattr(settings, "SYNC_RETRY_BACKOFF_MAX_SECONDS", 300)),
            conflict_resolution_strategy=getattr(
                settings, "SYNC_CONFLICT_RESOLUTION_STRATEGY", "manual"
            ),
            enable_conflict_resolution=bool(
                getattr(settings, "SYNC_ENABLE_CONFLICT_RESOLUTION", True)
            ),
            enable_background_sync=bool(getattr(settings, "SYNC_ENABLE_BACKGROUND_SYNC", True)),
            sync_on_enqueue=bool(getattr(settings, "SYNC_ON_ENQUEUE", True)),
        )
