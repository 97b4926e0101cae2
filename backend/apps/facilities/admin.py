"""Django admin for field-operations entities."""

from django.contrib import admin

from apps.facilities.models import Building, ClockEvent, Note, Photo, Task, Worker


class FieldEntityAdmin(admin.ModelAdmin):
    readonly_fields = ["id", "version", "created_at", "updated_at", "last_modified_by"]
    list_filter = ["deleted_at"]

    def get_queryset(self, request):
        """Show tombstoned rows too, they matter when debugging conflicts."""
        return self.model.all_objects.all()


@admin.register(Building)
class BuildingAdmin(FieldEntityAdmin):
    list_display = ["id", "name", "borough", "version", "deleted_at"]
    search_fields = ["id", "name", "address"]


@admin.register(Worker)
class WorkerAdmin(FieldEntityAdmin):
    list_display = ["id", "name", "role", "is_active", "version"]
    search_fields = ["id", "name", "email"]


@admin.register(Task)
class TaskAdmin(FieldEntityAdmin):
    list_display = ["id", "title", "status", "building_id", "assigned_worker_id", "version"]
    list_filter = ["status", "deleted_at"]
    search_fields = ["id", "title"]


@admin.register(ClockEvent)
class ClockEventAdmin(FieldEntityAdmin):
    list_display = ["id", "worker_id", "action", "building_id", "occurred_at"]
    list_filter = ["action"]


@admin.register(Photo)
class PhotoAdmin(FieldEntityAdmin):
    list_display = ["id", "task_id", "worker_id", "taken_at"]


@admin.register(Note)
class NoteAdmin(FieldEntityAdmin):
    list_display = ["id", "building_id", "task_id", "author_id", "created_at"]
