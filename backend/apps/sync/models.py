"""
Offline sync models.

SyncOperation is the durable mutation queue: every queued create/update/delete
is a row, and its status column is the only source of truth for where the
operation is in its lifecycle. SyncConflict records divergence between a
queued client mutation and the server copy it targeted.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from django.db import models
from django.utils import timezone
from uuid6 import uuid7

from apps.sync.constants import PRIORITY_WEIGHTS


class SyncOperation(models.Model):
    """
    A single queued mutation targeting one entity.

    Lifecycle: pending -> syncing -> completed | failed | pending (retry) | conflict.
    Completed rows are purged after each drain; failed rows are kept for
    operator inspection and manual replay.
    """

    class Type(models.TextChoices):
        CREATE = "create"
        UPDATE = "update"
        DELETE = "delete"

    class Entity(models.TextChoices):
        TASK = "task"
        WORKER = "worker"
        BUILDING = "building"
        CLOCK_IN = "clock_in"
        PHOTO = "photo"
        NOTE = "note"

    class Priority(models.TextChoices):
        LOW = "low"
        MEDIUM = "medium"
        HIGH = "high"
        CRITICAL = "critical"

    class Status(models.TextChoices):
        PENDING = "pending"
        SYNCING = "syncing"
        COMPLETED = "completed"
        FAILED = "failed"
        CONFLICT = "conflict"

    class Resolution(models.TextChoices):
        SERVER_WINS = "server_wins"
        CLIENT_WINS = "client_wins"
        MERGE = "merge"
        MANUAL = "manual"

    # UUIDv7 keeps ids time-ordered, which makes ties on timestamp stable
    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)

    type = models.CharField(max_length=16, choices=Type.choices)
    entity = models.CharField(max_length=16, choices=Entity.choices)
    entity_id = models.CharField(max_length=64)
    data = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    user_id = models.CharField(max_length=64)
    user_role = models.CharField(max_length=16)

    retry_count = models.PositiveSmallIntegerField(default=0)
    max_retries = models.PositiveSmallIntegerField(default=3)
    priority = models.CharField(max_length=16, choices=Priority.choices, default=Priority.MEDIUM)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    error = models.TextField(blank=True, default="")

    conflict_resolution = models.CharField(
        max_length=16,
        choices=Resolution.choices,
        null=True,
        blank=True,
        help_text="Strategy of the last resolved conflict; apply skips divergence checks when set",
    )
    next_attempt_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Earliest time a retry may run (exponential backoff)",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sync_operations"
        ordering = ["timestamp"]
        indexes = [
            # Drain query: due pending operations
            models.Index(fields=["status", "next_attempt_at"], name="sync_op_status_due_idx"),
            models.Index(fields=["entity", "entity_id"], name="sync_op_entity_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.type} {self.entity}:{self.entity_id} ({self.status})"

    @property
    def priority_weight(self) -> int:
        return PRIORITY_WEIGHTS[self.priority]

    def sort_key(self) -> tuple[int, datetime, str]:
        """Drain order: priority descending, then oldest first."""
        return (-self.priority_weight, self.timestamp, str(self.id))

    def record_failure(self, error: str, now: datetime, retry_delay: float) -> bool:
        """
        Count a failed apply attempt.

        Sets status to FAILED once retry_count reaches max_retries, otherwise
        back to PENDING with next_attempt_at pushed out by retry_delay.

        Returns:
            True if the operation is now terminally failed.
        """
        self.retry_count += 1
        self.error = error

        if self.retry_count >= self.max_retries:
            self.status = self.Status.FAILED
            self.next_attempt_at = None
            return True

        self.status = self.Status.PENDING
        self.next_attempt_at = now + timedelta(seconds=retry_delay)
        return False


class SyncConflict(models.Model):
    """
    Divergence between a queued client mutation and the server copy.

    While unresolved, the owning operation sits in CONFLICT status and is
    invisible to the drain.
    """

    class ConflictType(models.TextChoices):
        DATA_MISMATCH = "data_mismatch"
        CONCURRENT_EDIT = "concurrent_edit"
        DELETION_CONFLICT = "deletion_conflict"

    class Resolution(models.TextChoices):
        PENDING = "pending"
        RESOLVED = "resolved"

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    operation = models.ForeignKey(
        SyncOperation,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="conflicts",
        help_text="Cleared when the completed operation is purged",
    )
    server_data = models.JSONField(default=dict, blank=True)
    client_data = models.JSONField(default=dict, blank=True)
    conflict_type = models.CharField(max_length=24, choices=ConflictType.choices)
    resolution = models.CharField(
        max_length=16, choices=Resolution.choices, default=Resolution.PENDING
    )
    strategy = models.CharField(
        max_length=16,
        choices=SyncOperation.Resolution.choices,
        null=True,
        blank=True,
        help_text="How the conflict was resolved",
    )
    resolved_data = models.JSONField(null=True, blank=True)
    resolved_by = models.CharField(max_length=64, blank=True, default="")
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "sync_conflicts"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["operation"],
                condition=models.Q(resolution="pending"),
                name="uniq_pending_conflict_per_operation",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.conflict_type} on {self.operation_id} ({self.resolution})"

    @property
    def is_resolved(self) -> bool:
        return self.resolution == self.Resolution.RESOLVED
