"""
Notification models.

Notification rows double as the deferred delivery queue: anything with
delivered=False is re-evaluated by the periodic processor until it is
delivered or expires.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone
from uuid6 import uuid7

from apps.core.models import TimestampedModel
from apps.notifications import constants


class Notification(models.Model):
    class Type(models.TextChoices):
        TASK = "task"
        EMERGENCY = "emergency"
        SYSTEM = "system"
        MESSAGE = "message"
        COMPLIANCE = "compliance"
        WEATHER = "weather"
        MAINTENANCE = "maintenance"

    class Priority(models.TextChoices):
        LOW = "low"
        MEDIUM = "medium"
        HIGH = "high"
        CRITICAL = "critical"

    id = models.UUIDField(primary_key=True, default=uuid7, editable=False)
    type = models.CharField(max_length=16, choices=Type.choices)
    priority = models.CharField(max_length=16, choices=Priority.choices, default=Priority.MEDIUM)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(null=True, blank=True)

    user_id = models.CharField(max_length=64)
    user_role = models.CharField(max_length=16)
    timestamp = models.DateTimeField(default=timezone.now)

    read = models.BooleanField(default=False)
    delivered = models.BooleanField(default=False)
    delivered_at = models.DateTimeField(null=True, blank=True)
    delivery_channels = models.JSONField(
        default=list,
        blank=True,
        help_text="Channels that reported a successful send",
    )
    expires_at = models.DateTimeField(null=True, blank=True)

    actions = models.JSONField(default=list, blank=True)
    category = models.CharField(max_length=64, blank=True, default="")
    sound = models.CharField(max_length=32, blank=True, default="")
    vibration = models.BooleanField(default=False)
    badge = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        db_table = "notifications"
        ordering = ["-timestamp"]
        indexes = [
            models.Index(fields=["user_id", "read"], name="notif_user_read_idx"),
            # Deferred queue scan
            models.Index(fields=["delivered", "timestamp"], name="notif_delivered_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.type}/{self.priority}: {self.title}"


class NotificationPreferences(TimestampedModel):
    """
    Per-user delivery preferences.

    No row means "use the documented defaults" for reads, but the delivery
    gate treats a missing row as opted out.
    """

    user_id = models.CharField(max_length=64, primary_key=True)
    user_role = models.CharField(max_length=16, default="worker")
    enabled = models.BooleanField(default=True)

    types = models.JSONField(default=constants.default_types)
    priorities = models.JSONField(default=constants.default_priorities, db_column="priority")
    delivery = models.JSONField(default=constants.default_delivery)
    quiet_hours = models.JSONField(default=constants.default_quiet_hours)

    sound = models.BooleanField(default=True)
    vibration = models.BooleanField(default=True)
    badge = models.BooleanField(default=True)

    # Channel addresses
    email_address = models.EmailField(blank=True, default="")
    phone_number = models.CharField(max_length=32, blank=True, default="")
    push_token = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "notification_preferences"
        verbose_name_plural = "notification preferences"

    def __str__(self) -> str:
        return f"Preferences for {self.user_id}"
