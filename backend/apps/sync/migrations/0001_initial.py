"""
Initial sync schema: the durable operation queue and conflict records.
"""

import django.db.models.deletion
import django.utils.timezone
import uuid6
from django.db import migrations, models

RESOLUTION_CHOICES = [
    ("server_wins", "Server Wins"),
    ("client_wins", "Client Wins"),
    ("merge", "Merge"),
    ("manual", "Manual"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SyncOperation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[("create", "Create"), ("update", "Update"), ("delete", "Delete")],
                        max_length=16,
                    ),
                ),
                (
                    "entity",
                    models.CharField(
                        choices=[
                            ("task", "Task"),
                            ("worker", "Worker"),
                            ("building", "Building"),
                            ("clock_in", "Clock In"),
                            ("photo", "Photo"),
                            ("note", "Note"),
                        ],
                        max_length=16,
                    ),
                ),
                ("entity_id", models.CharField(max_length=64)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("user_id", models.CharField(max_length=64)),
                ("user_role", models.CharField(max_length=16)),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
                ("max_retries", models.PositiveSmallIntegerField(default=3)),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("critical", "Critical"),
                        ],
                        default="medium",
                        max_length=16,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("syncing", "Syncing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("conflict", "Conflict"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("error", models.TextField(blank=True, default="")),
                (
                    "conflict_resolution",
                    models.CharField(
                        blank=True,
                        choices=RESOLUTION_CHOICES,
                        help_text="Strategy of the last resolved conflict; apply skips divergence checks when set",
                        max_length=16,
                        null=True,
                    ),
                ),
                (
                    "next_attempt_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Earliest time a retry may run (exponential backoff)",
                        null=True,
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "sync_operations",
                "ordering": ["timestamp"],
                "indexes": [
                    models.Index(
                        fields=["status", "next_attempt_at"], name="sync_op_status_due_idx"
                    ),
                    models.Index(fields=["entity", "entity_id"], name="sync_op_entity_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncConflict",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7, editable=False, primary_key=True, serialize=False
                    ),
                ),
                ("server_data", models.JSONField(blank=True, default=dict)),
                ("client_data", models.JSONField(blank=True, default=dict)),
                (
                    "conflict_type",
                    models.CharField(
                        choices=[
                            ("data_mismatch", "Data Mismatch"),
                            ("concurrent_edit", "Concurrent Edit"),
                            ("deletion_conflict", "Deletion Conflict"),
                        ],
                        max_length=24,
                    ),
                ),
                (
                    "resolution",
                    models.CharField(
                        choices=[("pending", "Pending"), ("resolved", "Resolved")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                (
                    "strategy",
                    models.CharField(
                        blank=True,
                        choices=RESOLUTION_CHOICES,
                        help_text="How the conflict was resolved",
                        max_length=16,
                        null=True,
                    ),
                ),
                ("resolved_data", models.JSONField(blank=True, null=True)),
                ("resolved_by", models.CharField(blank=True, default="", max_length=64)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "operation",
                    models.ForeignKey(
                        blank=True,
                        help_text="Cleared when the completed operation is purged",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="conflicts",
                        to="sync.syncoperation",
                    ),
                ),
            ],
            options={
                "db_table": "sync_conflicts",
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("resolution", "pending")),
                        fields=("operation",),
                        name="uniq_pending_conflict_per_operation",
                    )
                ],
            },
        ),
    ]
