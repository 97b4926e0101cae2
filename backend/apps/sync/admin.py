"""Django admin for inspecting the offline queue and its conflicts."""

from django.contrib import admin

from apps.sync.models import SyncConflict, SyncOperation


class SyncConflictInline(admin.TabularInline):
    model = SyncConflict
    extra = 0
    can_delete = False
    fields = ["conflict_type", "resolution", "strategy", "resolved_by", "resolved_at", "created_at"]
    readonly_fields = fields


@admin.register(SyncOperation)
class SyncOperationAdmin(admin.ModelAdmin):
    """Admin for viewing queued operations."""

    list_display = [
        "id",
        "type",
        "entity",
        "entity_id",
        "priority",
        "status",
        "retry_count",
        "user_id",
        "timestamp",
    ]
    list_filter = [
        "status",
        "priority",
        "type",
        "entity",
    ]
    search_fields = [
        "entity_id",
        "user_id",
        "error",
    ]
    readonly_fields = [
        "id",
        "type",
        "entity",
        "entity_id",
        "data",
        "timestamp",
        "user_id",
        "user_role",
        "retry_count",
        "max_retries",
        "priority",
        "status",
        "error",
        "conflict_resolution",
        "next_attempt_at",
        "updated_at",
    ]
    ordering = ["-timestamp"]
    date_hierarchy = "timestamp"
    inlines = [SyncConflictInline]

    def has_add_permission(self, request):
        """Operations are queued by devices, not admin."""
        return False

    def has_change_permission(self, request, obj=None):
        """Use replay_failed_operations to requeue instead of editing rows."""
        return False


@admin.register(SyncConflict)
class SyncConflictAdmin(admin.ModelAdmin):
    """Admin for viewing conflicts."""

    list_display = [
        "id",
        "operation",
        "conflict_type",
        "resolution",
        "strategy",
        "resolved_by",
        "created_at",
    ]
    list_filter = ["conflict_type", "resolution", "strategy"]
    readonly_fields = [
        "id",
        "operation",
        "server_data",
        "client_data",
        "conflict_type",
        "resolution",
        "strategy",
        "resolved_data",
        "resolved_by",
        "resolved_at",
        "created_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
