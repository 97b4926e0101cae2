"""
Initial notifications schema.
"""

import django.utils.timezone
import uuid6
from django.db import migrations, models

import apps.notifications.constants

PRIORITY_CHOICES = [
    ("low", "Low"),
    ("medium", "Medium"),
    ("high", "High"),
    ("critical", "Critical"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Notification",
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
                        choices=[
                            ("task", "Task"),
                            ("emergency", "Emergency"),
                            ("system", "System"),
                            ("message", "Message"),
                            ("compliance", "Compliance"),
                            ("weather", "Weather"),
                            ("maintenance", "Maintenance"),
                        ],
                        max_length=16,
                    ),
                ),
                (
                    "priority",
                    models.CharField(choices=PRIORITY_CHOICES, default="medium", max_length=16),
                ),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("data", models.JSONField(blank=True, null=True)),
                ("user_id", models.CharField(max_length=64)),
                ("user_role", models.CharField(max_length=16)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("read", models.BooleanField(default=False)),
                ("delivered", models.BooleanField(default=False)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "delivery_channels",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Channels that reported a successful send",
                    ),
                ),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("actions", models.JSONField(blank=True, default=list)),
                ("category", models.CharField(blank=True, default="", max_length=64)),
                ("sound", models.CharField(blank=True, default="", max_length=32)),
                ("vibration", models.BooleanField(default=False)),
                ("badge", models.PositiveIntegerField(blank=True, null=True)),
            ],
            options={
                "db_table": "notifications",
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["user_id", "read"], name="notif_user_read_idx"),
                    models.Index(fields=["delivered", "timestamp"], name="notif_delivered_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationPreferences",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user_id",
                    models.CharField(max_length=64, primary_key=True, serialize=False),
                ),
                ("user_role", models.CharField(default="worker", max_length=16)),
                ("enabled", models.BooleanField(default=True)),
                ("types", models.JSONField(default=apps.notifications.constants.default_types)),
                (
                    "priorities",
                    models.JSONField(
                        db_column="priority",
                        default=apps.notifications.constants.default_priorities,
                    ),
                ),
                (
                    "delivery",
                    models.JSONField(default=apps.notifications.constants.default_delivery),
                ),
                (
                    "quiet_hours",
                    models.JSONField(default=apps.notifications.constants.default_quiet_hours),
                ),
                ("sound", models.BooleanField(default=True)),
                ("vibration", models.BooleanField(default=True)),
                ("badge", models.BooleanField(default=True)),
                ("email_address", models.EmailField(blank=True, default="", max_length=254)),
                ("phone_number", models.CharField(blank=True, default="", max_length=32)),
                ("push_token", models.CharField(blank=True, default="", max_length=255)),
            ],
            options={
                "db_table": "notification_preferences",
                "verbose_name_plural": "notification preferences",
            },
        ),
    ]
