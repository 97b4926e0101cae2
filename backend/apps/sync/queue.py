"""
Durable operation queue.

The sync_operations table is the queue. There is no separate in-memory copy:
every state change is written through, and writes from concurrent batch
members are serialized by a single asyncio lock so the table never sees
interleaved partial updates from one engine.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime

from django.db.models import Count, Q
from django.utils import timezone

from apps.core.logging import get_logger
from apps.sync.constants import QUEUE_FULL_ERROR, RETRY_JITTER_RATIO
from apps.sync.exceptions import QueueFullError
from apps.sync.models import SyncConflict, SyncOperation

logger = get_logger(__name__)


def compute_retry_delay(
    retry_count: int,
    base: float,
    cap: float,
    rand: float | None = None,
) -> float:
    """
    Exponential backoff with up to 20% jitter.

    retry_count is the number of failed attempts so far (>= 1).
    """
    if base <= 0:
        return 0.0
    delay = min(base * 2 ** max(retry_count - 1, 0), cap)
    if rand is None:
        rand = random.random()
    return delay + delay * RETRY_JITTER_RATIO * rand


class OperationQueue:
    """Write-through queue over SyncOperation rows."""

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._write_lock = asyncio.Lock()

    async def enqueue(self, operation: SyncOperation) -> SyncOperation | None:
        """
        Persist a new pending operation.

        When the number of pending operations is at max_queue_size, the
        lowest-priority, newest pending operation is evicted (marked failed).

        Returns:
            The evicted operation, if any.

        Raises:
            QueueFullError: The new operation itself would be the one evicted.
        """
        async with self._write_lock:
            evicted = None
            pending_count = await SyncOperation.objects.filter(
                status=SyncOperation.Status.PENDING
            ).acount()

            if pending_count >= self.max_queue_size:
                victim = await self._eviction_candidate()
                if victim is None or _eviction_key(operation) <= _eviction_key(victim):
                    raise QueueFullError(
                        f"Queue full ({self.max_queue_size} pending); "
                        f"{operation.priority} operation rejected"
                    )
                victim.status = SyncOperation.Status.FAILED
                victim.error = QUEUE_FULL_ERROR
                victim.next_attempt_at = None
                await victim.asave(update_fields=["status", "error", "next_attempt_at", "updated_at"])
                evicted = victim
                logger.warning(
                    "sync_operation_evicted",
                    operation_id=victim.id,
                    priority=victim.priority,
                    entity=victim.entity,
                )

            await operation.asave(force_insert=True)
            return evicted

    async def _eviction_candidate(self) -> SyncOperation | None:
        pending = [
            op async for op in SyncOperation.objects.filter(status=SyncOperation.Status.PENDING)
        ]
        if not pending:
            return None
        return min(pending, key=_eviction_key)

    async def save(self, operation: SyncOperation, fields: list[str]) -> None:
        """Write selected fields of an operation."""
        async with self._write_lock:
            await operation.asave(update_fields=[*fields, "updated_at"])

    async def get(self, operation_id) -> SyncOperation | None:
        return await SyncOperation.objects.filter(pk=operation_id).afirst()

    async def select_due(
        self, limit: int | None = None, now: datetime | None = None
    ) -> list[SyncOperation]:
        """Pending operations whose backoff elapsed, in drain order."""
        now = now or timezone.now()
        qs = SyncOperation.objects.filter(status=SyncOperation.Status.PENDING).filter(
            Q(next_attempt_at__isnull=True) | Q(next_attempt_at__lte=now)
        )
        due = [op async for op in qs]
        due.sort(key=SyncOperation.sort_key)
        return due if limit is None else due[:limit]

    async def has_pending(self) -> bool:
        return await SyncOperation.objects.filter(status=SyncOperation.Status.PENDING).aexists()

    async def counts(self) -> dict[str, int]:
        """Number of operations per status."""
        counts = {status: 0 for status in SyncOperation.Status.values}
        rows = SyncOperation.objects.order_by().values("status").annotate(count=Count("id"))
        async for row in rows:
            counts[row["status"]] = row["count"]
        return counts

    async def purge_completed(self) -> int:
        async with self._write_lock:
            _, per_model = await SyncOperation.objects.filter(
                status=SyncOperation.Status.COMPLETED
            ).adelete()
        return per_model.get(SyncOperation._meta.label, 0)

    async def recover_interrupted(self) -> int:
        """Reset operations left in syncing by a crashed drain."""
        async with self._write_lock:
            recovered = await SyncOperation.objects.filter(
                status=SyncOperation.Status.SYNCING
            ).aupdate(status=SyncOperation.Status.PENDING, updated_at=timezone.now())
        if recovered:
            logger.warning("sync_operations_recovered", count=recovered)
        return recovered

    async def clear(self) -> int:
        """Delete every operation and conflict."""
        async with self._write_lock:
            await SyncConflict.objects.all().adelete()
            _, per_model = await SyncOperation.objects.all().adelete()
        return per_model.get(SyncOperation._meta.label, 0)


def _eviction_key(operation: SyncOperation) -> tuple[int, float]:
    # Lowest weight first, then newest first
    return (operation.priority_weight, -operation.timestamp.timestamp())
