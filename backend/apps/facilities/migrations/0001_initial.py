"""
Initial facilities schema: buildings, workers, tasks, clock events, photos, notes.
"""

from django.db import migrations, models


def _entity_fields():
    return [
        ("id", models.CharField(max_length=64, primary_key=True, serialize=False)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
        ("version", models.PositiveIntegerField(default=0)),
        ("last_modified_by", models.CharField(blank=True, default="", max_length=64)),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Building",
            fields=[
                *_entity_fields(),
                ("name", models.CharField(max_length=255)),
                ("address", models.CharField(blank=True, default="", max_length=255)),
                ("borough", models.CharField(blank=True, default="", max_length=32)),
            ],
            options={
                "db_table": "facilities_buildings",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Worker",
            fields=[
                *_entity_fields(),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("phone", models.CharField(blank=True, default="", max_length=32)),
                (
                    "role",
                    models.CharField(
                        choices=[("worker", "Worker"), ("client", "Client"), ("admin", "Admin")],
                        default="worker",
                        max_length=16,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "facilities_workers",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Task",
            fields=[
                *_entity_fields(),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("category", models.CharField(blank=True, default="", max_length=64)),
                ("building_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                (
                    "assigned_worker_id",
                    models.CharField(blank=True, db_index=True, default="", max_length=64),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("due_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("completion_notes", models.TextField(blank=True, default="")),
            ],
            options={
                "db_table": "facilities_tasks",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ClockEvent",
            fields=[
                *_entity_fields(),
                ("worker_id", models.CharField(db_index=True, max_length=64)),
                ("building_id", models.CharField(blank=True, default="", max_length=64)),
                (
                    "action",
                    models.CharField(
                        choices=[("clock_in", "Clock In"), ("clock_out", "Clock Out")],
                        max_length=16,
                    ),
                ),
                ("occurred_at", models.DateTimeField()),
                ("latitude", models.FloatField(blank=True, null=True)),
                ("longitude", models.FloatField(blank=True, null=True)),
            ],
            options={
                "db_table": "facilities_clock_events",
                "ordering": ["-occurred_at"],
                "indexes": [
                    models.Index(
                        fields=["worker_id", "occurred_at"], name="clock_worker_occurred_idx"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Photo",
            fields=[
                *_entity_fields(),
                ("task_id", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("building_id", models.CharField(blank=True, default="", max_length=64)),
                ("worker_id", models.CharField(blank=True, default="", max_length=64)),
                ("uri", models.CharField(max_length=512)),
                ("caption", models.CharField(blank=True, default="", max_length=255)),
                ("taken_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "facilities_photos",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Note",
            fields=[
                *_entity_fields(),
                ("building_id", models.CharField(blank=True, default="", max_length=64)),
                ("task_id", models.CharField(blank=True, default="", max_length=64)),
                ("author_id", models.CharField(blank=True, default="", max_length=64)),
                ("body", models.TextField()),
            ],
            options={
                "db_table": "facilities_notes",
                "ordering": ["-created_at"],
            },
        ),
    ]
