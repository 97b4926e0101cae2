"""
Offline sync engine.

OfflineSyncManager owns the durable queue of mutations made while a device
is offline and drains it against the authoritative store once connectivity
allows:

- operations are drained in priority order (critical > high > medium > low),
  oldest first within a priority, in batches applied concurrently
- a failed apply is retried with exponential backoff until max_retries
  attempts were made, then the operation is parked as failed
- a divergence reported by an apply function opens a SyncConflict and
  parks the operation until the conflict is resolved
- completed operations are purged at the end of every drain

Only one drain runs at a time per engine. Drains are triggered by the
periodic timer, by enqueueing while online, by the offline->online
transition, by resolving a conflict and by force_sync().
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from django.db import IntegrityError
from django.utils import timezone
from uuid6 import uuid7

from apps.core.logging import bind_contextvars, get_logger, unbind_contextvars
from apps.sync.config import SyncEngineConfig
from apps.sync.conflicts import detect_conflict_type, resolution_data
from apps.sync.exceptions import (
    ApplyError,
    ConflictAlreadyResolvedError,
    ConflictError,
    ConflictNotFoundError,
    OperationNotFoundError,
)
from apps.sync.models import SyncConflict, SyncOperation
from apps.sync.network import NetworkMonitor
from apps.sync.queue import OperationQueue, compute_retry_delay
from apps.sync.registry import ApplyRegistry
from apps.sync.schemas import normalize_payload, parse_payload

logger = get_logger(__name__)


@dataclass
class OperationOutcome:
    operation_id: Any
    entity: str
    entity_id: str
    status: str
    retry_count: int
    error: str = ""
    conflict_id: Any = None


@dataclass
class SyncRunResult:
    """Summary of one drain. Outcomes survive the purge of completed rows."""

    started_at: datetime
    finished_at: datetime | None = None
    outcomes: list[OperationOutcome] = field(default_factory=list)
    purged: int = 0
    skipped_reason: str | None = None

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def outcome_for(self, operation_id) -> OperationOutcome | None:
        """Latest outcome recorded for an operation in this drain."""
        for outcome in reversed(self.outcomes):
            if str(outcome.operation_id) == str(operation_id):
                return outcome
        return None


@dataclass
class SyncStats:
    total_operations: int
    pending_operations: int
    syncing_operations: int
    completed_operations: int
    failed_operations: int
    conflict_operations: int
    pending_conflicts: int
    last_sync_time: datetime | None
    next_sync_time: datetime | None
    is_online: bool
    sync_in_progress: bool


class OfflineSyncManager:
    def __init__(
        self,
        config: SyncEngineConfig,
        registry: ApplyRegistry,
        network: NetworkMonitor,
        queue: OperationQueue | None = None,
    ):
        self.config = config
        self.registry = registry
        self.network = network
        self.queue = queue or OperationQueue(max_queue_size=config.max_queue_size)

        self._is_syncing = False
        self._drain_requested = False
        self._last_sync_at: datetime | None = None
        self._timer_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._unsubscribe_network = network.subscribe(self._on_network_change)

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Recover interrupted work and start the periodic timer."""
        await self.queue.recover_interrupted()
        if self.config.enable_background_sync and self._timer_task is None:
            self._timer_task = asyncio.create_task(self._periodic_sync())
        logger.info(
            "sync_engine_started",
            background_sync=self.config.enable_background_sync,
            interval=self.config.sync_interval,
        )
        if self.network.is_online:
            self._schedule_drain()

    async def stop(self) -> None:
        """Stop the timer and wait for in-flight drains."""
        if self._timer_task is not None:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None
        await self.join()
        self._unsubscribe_network()
        logger.info("sync_engine_stopped")

    async def join(self) -> None:
        """Wait until every background drain has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _periodic_sync(self) -> None:
        while True:
            await asyncio.sleep(self.config.sync_interval)
            if self.network.is_online:
                await self.sync_operations()

    def _on_network_change(self, online: bool) -> None:
        if online:
            self._schedule_drain()

    def _schedule_drain(self) -> None:
        if self._is_syncing:
            self._drain_requested = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("sync_drain_not_scheduled", reason="no_running_loop")
            return
        task = loop.create_task(self.sync_operations())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def queue_operation(
        self,
        *,
        type: str,
        entity: str,
        entity_id: str,
        data: dict[str, Any],
        user_id: str,
        user_role: str,
        priority: str = SyncOperation.Priority.MEDIUM,
        max_retries: int | None = None,
    ) -> str:
        """
        Persist a new pending operation and return its id.

        Raises:
            UnknownEntityTypeError: Entity type has no registered apply function
            InvalidPayloadError: Data fails the entity's payload schema
            QueueFullError: Queue is full and this operation has the lowest priority
            ValueError: Unknown type or priority, or max_retries below 1
        """
        self.registry.get(entity)
        if type not in SyncOperation.Type.values:
            raise ValueError(f"Unknown operation type: {type}")
        if priority not in SyncOperation.Priority.values:
            raise ValueError(f"Unknown priority: {priority}")
        if max_retries is not None and max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        operation = SyncOperation(
            type=type,
            entity=entity,
            entity_id=entity_id,
            data=normalize_payload(entity, data),
            user_id=user_id,
            user_role=user_role,
            priority=priority,
            max_retries=max_retries if max_retries is not None else self.config.max_retries,
        )
        await self.queue.enqueue(operation)

        logger.info(
            "sync_operation_queued",
            operation_id=operation.id,
            type=type,
            entity=entity,
            entity_id=entity_id,
            priority=priority,
        )

        if self.config.sync_on_enqueue and self.network.is_online:
            self._schedule_drain()

        return str(operation.id)

    async def queue_task_creation(
        self, task_data: dict[str, Any], user_id: str, user_role: str
    ) -> str:
        entity_id = task_data.get("id") or f"temp_{uuid7().hex}"
        return await self.queue_operation(
            type=SyncOperation.Type.CREATE,
            entity=SyncOperation.Entity.TASK,
            entity_id=entity_id,
            data=task_data,
            user_id=user_id,
            user_role=user_role,
            priority=SyncOperation.Priority.MEDIUM,
        )

    async def queue_task_update(
        self, task_id: str, updates: dict[str, Any], user_id: str, user_role: str
    ) -> str:
        return await self.queue_operation(
            type=SyncOperation.Type.UPDATE,
            entity=SyncOperation.Entity.TASK,
            entity_id=task_id,
            data=updates,
            user_id=user_id,
            user_role=user_role,
            priority=SyncOperation.Priority.MEDIUM,
        )

    async def queue_clock_operation(
        self, operation: str, data: dict[str, Any], user_id: str, user_role: str
    ) -> str:
        """Queue a clock_in/clock_out punch at high priority."""
        return await self.queue_operation(
            type=SyncOperation.Type.CREATE,
            entity=SyncOperation.Entity.CLOCK_IN,
            entity_id=f"clock_{uuid7().hex}",
            data={**data, "operation": operation},
            user_id=user_id,
            user_role=user_role,
            priority=SyncOperation.Priority.HIGH,
        )

    async def queue_photo_upload(
        self, photo_data: dict[str, Any], user_id: str, user_role: str
    ) -> str:
        """Queue photo metadata at low priority."""
        entity_id = photo_data.get("id") or f"photo_{uuid7().hex}"
        return await self.queue_operation(
            type=SyncOperation.Type.CREATE,
            entity=SyncOperation.Entity.PHOTO,
            entity_id=entity_id,
            data=photo_data,
            user_id=user_id,
            user_role=user_role,
            priority=SyncOperation.Priority.LOW,
        )

    # ------------------------------------------------------------------
    # Drain
    # ------------------------------------------------------------------

    async def sync_operations(self) -> SyncRunResult:
        """
        Drain due pending operations.

        No-op (skipped_reason set) when a drain is already running, the
        network is offline, or nothing is pending.
        """
        result = SyncRunResult(started_at=timezone.now())

        if self._is_syncing:
            self._drain_requested = True
            result.skipped_reason = "in_progress"
            return result
        if not self.network.is_online:
            result.skipped_reason = "offline"
            return result

        self._is_syncing = True
        self._drain_requested = False
        try:
            if not await self.queue.has_pending():
                result.skipped_reason = "empty"
                return result

            start = time.monotonic()
            logger.info("sync_run_started")

            attempts: dict[str, int] = {}
            while self.network.is_online:
                due = await self.queue.select_due()
                # Each operation gets at least one and at most max_retries attempts per drain
                batch = [
                    op for op in due if attempts.get(str(op.id), 0) < max(op.max_retries, 1)
                ]
                batch = batch[: self.config.batch_size]
                if not batch:
                    break
                for op in batch:
                    attempts[str(op.id)] = attempts.get(str(op.id), 0) + 1

                outcomes = await asyncio.gather(
                    *(self.process_operation(op) for op in batch),
                    return_exceptions=True,
                )
                for op, outcome in zip(batch, outcomes, strict=True):
                    if isinstance(outcome, BaseException):
                        logger.error(
                            "sync_operation_crashed",
                            operation_id=op.id,
                            error=str(outcome),
                        )
                        continue
                    result.outcomes.append(outcome)

            result.purged = await self.queue.purge_completed()
            self._last_sync_at = timezone.now()
            result.finished_at = self._last_sync_at

            logger.info(
                "sync_run_finished",
                processed=result.processed,
                completed=result.count(SyncOperation.Status.COMPLETED),
                failed=result.count(SyncOperation.Status.FAILED),
                conflicts=result.count(SyncOperation.Status.CONFLICT),
                retrying=result.count(SyncOperation.Status.PENDING),
                purged=result.purged,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            return result
        except Exception:
            logger.exception("sync_run_failed")
            result.finished_at = timezone.now()
            return result
        finally:
            self._is_syncing = False
            if self._drain_requested:
                self._drain_requested = False
                self._schedule_drain()

    async def process_operation(self, operation: SyncOperation) -> OperationOutcome:
        """Apply one operation and record its new state."""
        operation.status = SyncOperation.Status.SYNCING
        await self.queue.save(operation, ["status"])

        bind_contextvars(
            **{"sync.operation_id": str(operation.id), "sync.entity": operation.entity}
        )
        conflict = None
        try:
            payload = parse_payload(operation.entity, operation.data)
            apply = self.registry.get(operation.entity)
            applied = await asyncio.wait_for(
                apply(operation, payload), timeout=self.config.apply_timeout
            )
            if not applied:
                raise ApplyError("Apply function reported failure")
        except ConflictError as e:
            conflict = await self.handle_conflict(operation, e.server_data)
        except asyncio.TimeoutError:
            await self._record_failure(
                operation, f"Apply timed out after {self.config.apply_timeout}s"
            )
        except Exception as e:
            await self._record_failure(operation, str(e) or e.__class__.__name__)
        else:
            operation.status = SyncOperation.Status.COMPLETED
            operation.error = ""
            operation.next_attempt_at = None
            await self.queue.save(operation, ["status", "error", "next_attempt_at"])
            logger.info(
                "sync_operation_completed",
                entity_id=operation.entity_id,
                type=operation.type,
                retry_count=operation.retry_count,
            )
        finally:
            unbind_contextvars("sync.operation_id", "sync.entity")

        await operation.arefresh_from_db(fields=["status", "retry_count", "error"])
        return OperationOutcome(
            operation_id=operation.id,
            entity=operation.entity,
            entity_id=operation.entity_id,
            status=operation.status,
            retry_count=operation.retry_count,
            error=operation.error,
            conflict_id=conflict.id if conflict is not None else None,
        )

    async def _record_failure(self, operation: SyncOperation, error: str) -> None:
        delay = compute_retry_delay(
            operation.retry_count + 1,
            base=self.config.retry_backoff_base,
            cap=self.config.retry_backoff_max,
        )
        terminal = operation.record_failure(error, timezone.now(), delay)
        await self.queue.save(operation, ["status", "retry_count", "error", "next_attempt_at"])

        if terminal:
            logger.error(
                "sync_operation_failed",
                entity_id=operation.entity_id,
                retry_count=operation.retry_count,
                error=error,
            )
        else:
            logger.warning(
                "sync_operation_retry_scheduled",
                entity_id=operation.entity_id,
                retry_count=operation.retry_count,
                retry_in_seconds=round(delay, 3),
                error=error,
            )

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    async def handle_conflict(
        self, operation: SyncOperation, server_data: dict[str, Any]
    ) -> SyncConflict:
        """
        Open a conflict for an operation and park it.

        With a non-manual policy strategy configured, the conflict is
        resolved immediately and the operation re-queued.
        """
        conflict_type = detect_conflict_type(operation.data, server_data)
        try:
            conflict = await SyncConflict.objects.acreate(
                operation=operation,
                server_data=server_data,
                client_data=operation.data,
                conflict_type=conflict_type,
            )
        except IntegrityError:
            # One pending conflict per operation
            conflict = await SyncConflict.objects.aget(
                operation=operation, resolution=SyncConflict.Resolution.PENDING
            )

        operation.status = SyncOperation.Status.CONFLICT
        await self.queue.save(operation, ["status"])
        logger.warning(
            "sync_conflict_detected",
            conflict_id=conflict.id,
            entity_id=operation.entity_id,
            conflict_type=conflict_type,
        )

        strategy = self.config.conflict_resolution_strategy
        if self.config.enable_conflict_resolution and strategy != SyncOperation.Resolution.MANUAL:
            await self.resolve_conflict(conflict.id, strategy, resolved_by="policy")
            await conflict.arefresh_from_db()

        return conflict

    async def get_pending_conflicts(self) -> list[SyncConflict]:
        qs = SyncConflict.objects.filter(
            resolution=SyncConflict.Resolution.PENDING
        ).select_related("operation")
        return [conflict async for conflict in qs]

    async def resolve_conflict(
        self,
        conflict_id,
        resolution: str,
        resolved_data: dict[str, Any] | None = None,
        resolved_by: str = "user",
    ) -> SyncOperation:
        """
        Resolve a pending conflict and re-queue its operation.

        The operation goes back to pending with the chosen data and with
        conflict_resolution set, so the next apply skips divergence checks.

        Raises:
            ConflictNotFoundError: Unknown conflict id
            ConflictAlreadyResolvedError: Conflict was resolved before
            ConflictResolutionError: Bad strategy, or manual without data
            InvalidPayloadError: Resolved data fails the entity schema
        """
        conflict = (
            await SyncConflict.objects.select_related("operation")
            .filter(pk=conflict_id)
            .afirst()
        )
        if conflict is None:
            raise ConflictNotFoundError(f"Conflict {conflict_id} not found")
        if conflict.is_resolved:
            raise ConflictAlreadyResolvedError(f"Conflict {conflict_id} is already resolved")
        operation = conflict.operation
        if operation is None:
            raise OperationNotFoundError(f"Operation for conflict {conflict_id} no longer exists")

        data = normalize_payload(
            operation.entity, resolution_data(conflict, resolution, resolved_data)
        )

        conflict.resolution = SyncConflict.Resolution.RESOLVED
        conflict.strategy = resolution
        conflict.resolved_data = data
        conflict.resolved_by = resolved_by
        conflict.resolved_at = timezone.now()
        await conflict.asave(
            update_fields=["resolution", "strategy", "resolved_data", "resolved_by", "resolved_at"]
        )

        operation.data = data
        operation.status = SyncOperation.Status.PENDING
        operation.conflict_resolution = resolution
        operation.next_attempt_at = None
        operation.error = ""
        await self.queue.save(
            operation, ["data", "status", "conflict_resolution", "next_attempt_at", "error"]
        )

        logger.info(
            "sync_conflict_resolved",
            conflict_id=conflict.id,
            operation_id=operation.id,
            resolution=resolution,
            resolved_by=resolved_by,
        )

        if self.config.sync_on_enqueue and self.network.is_online:
            self._schedule_drain()
        return operation

    # ------------------------------------------------------------------
    # Operator calls
    # ------------------------------------------------------------------

    async def get_sync_stats(self) -> SyncStats:
        counts = await self.queue.counts()
        pending_conflicts = await SyncConflict.objects.filter(
            resolution=SyncConflict.Resolution.PENDING
        ).acount()

        next_sync_time = None
        if self.config.enable_background_sync and self.network.is_online:
            base = self._last_sync_at or timezone.now()
            next_sync_time = base + timedelta(seconds=self.config.sync_interval)

        return SyncStats(
            total_operations=sum(counts.values()),
            pending_operations=counts[SyncOperation.Status.PENDING],
            syncing_operations=counts[SyncOperation.Status.SYNCING],
            completed_operations=counts[SyncOperation.Status.COMPLETED],
            failed_operations=counts[SyncOperation.Status.FAILED],
            conflict_operations=counts[SyncOperation.Status.CONFLICT],
            pending_conflicts=pending_conflicts,
            last_sync_time=self._last_sync_at,
            next_sync_time=next_sync_time,
            is_online=self.network.is_online,
            sync_in_progress=self._is_syncing,
        )

    async def force_sync(self) -> SyncRunResult:
        """Drain now, ignoring the timer. Still a no-op while offline or mid-drain."""
        logger.info("sync_forced")
        return await self.sync_operations()

    async def retry_failed_operation(self, operation_id) -> SyncOperation:
        """
        Reset a failed operation to pending with a fresh retry budget.

        Raises:
            OperationNotFoundError: Unknown id, or the operation is not failed
        """
        operation = await self.queue.get(operation_id)
        if operation is None or operation.status != SyncOperation.Status.FAILED:
            raise OperationNotFoundError(f"No failed operation {operation_id}")

        operation.status = SyncOperation.Status.PENDING
        operation.retry_count = 0
        operation.error = ""
        operation.next_attempt_at = None
        await self.queue.save(operation, ["status", "retry_count", "error", "next_attempt_at"])
        logger.info("sync_operation_requeued", operation_id=operation.id)

        if self.config.sync_on_enqueue and self.network.is_online:
            self._schedule_drain()
        return operation

    async def clear_all_operations(self) -> int:
        deleted = await self.queue.clear()
        logger.warning("sync_operations_cleared", count=deleted)
        return deleted
