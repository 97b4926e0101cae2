"""
Field-operations entities.

These are the authoritative server-side records that queued offline
mutations are applied to. Primary keys are client-generated strings so that
a device can create a task or clock-in while offline and replay the same id.
"""

from __future__ import annotations

from django.db import models

from apps.core.models import (
    SoftDeleteAllManager,
    SoftDeleteManager,
    SoftDeleteMixin,
    TimestampedModel,
)


class FieldEntity(SoftDeleteMixin, TimestampedModel):
    """
    Base for every entity that offline clients can mutate.

    Manager usage:
    - .objects: Excludes deleted records
    - .all_objects: Includes deleted records (REQUIRED for conflict checks)
    """

    id = models.CharField(primary_key=True, max_length=64)
    version = models.PositiveIntegerField(default=0)
    last_modified_by = models.CharField(max_length=64, blank=True, default="")

    objects = SoftDeleteManager()
    all_objects = SoftDeleteAllManager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """Increment version on every save."""
        self.version += 1
        super().save(*args, **kwargs)


class Building(FieldEntity):
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True, default="")
    borough = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        db_table = "facilities_buildings"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Worker(FieldEntity):
    class Role(models.TextChoices):
        WORKER = "worker"
        CLIENT = "client"
        ADMIN = "admin"

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.WORKER)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "facilities_workers"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Task(FieldEntity):
    class Status(models.TextChoices):
        PENDING = "pending"
        IN_PROGRESS = "in_progress"
        COMPLETED = "completed"
        CANCELLED = "cancelled"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=64, blank=True, default="")
    building_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    assigned_worker_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    due_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completion_notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "facilities_tasks"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"


class ClockEvent(FieldEntity):
    """A single clock-in or clock-out punch, keyed by the device-generated id."""

    class Action(models.TextChoices):
        CLOCK_IN = "clock_in"
        CLOCK_OUT = "clock_out"

    worker_id = models.CharField(max_length=64, db_index=True)
    building_id = models.CharField(max_length=64, blank=True, default="")
    action = models.CharField(max_length=16, choices=Action.choices)
    occurred_at = models.DateTimeField()
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    class Meta:
        db_table = "facilities_clock_events"
        ordering = ["-occurred_at"]
        indexes = [
            models.Index(fields=["worker_id", "occurred_at"], name="clock_worker_occurred_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.worker_id} {self.action} @ {self.occurred_at.isoformat()}"


class Photo(FieldEntity):
    """Photo evidence metadata. Binary upload happens out of band."""

    task_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    building_id = models.CharField(max_length=64, blank=True, default="")
    worker_id = models.CharField(max_length=64, blank=True, default="")
    uri = models.CharField(max_length=512)
    caption = models.CharField(max_length=255, blank=True, default="")
    taken_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "facilities_photos"
        ordering = ["-created_at"]


class Note(FieldEntity):
    building_id = models.CharField(max_length=64, blank=True, default="")
    task_id = models.CharField(max_length=64, blank=True, default="")
    author_id = models.CharField(max_length=64, blank=True, default="")
    body = models.TextField()

    class Meta:
        db_table = "facilities_notes"
        ordering = ["-created_at"]
