"""Django admin for notifications and preferences."""

from django.contrib import admin

from apps.notifications.models import Notification, NotificationPreferences


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "type",
        "priority",
        "user_id",
        "delivered",
        "read",
        "timestamp",
        "expires_at",
    ]
    list_filter = ["type", "priority", "delivered", "read"]
    search_fields = ["title", "message", "user_id"]
    readonly_fields = [
        "id",
        "type",
        "priority",
        "title",
        "message",
        "data",
        "user_id",
        "user_role",
        "timestamp",
        "delivered",
        "delivered_at",
        "delivery_channels",
        "actions",
    ]
    ordering = ["-timestamp"]
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        """Notifications are created by the manager, not admin."""
        return False


@admin.register(NotificationPreferences)
class NotificationPreferencesAdmin(admin.ModelAdmin):
    list_display = ["user_id", "user_role", "enabled", "updated_at"]
    list_filter = ["user_role", "enabled"]
    search_fields = ["user_id", "email_address", "phone_number"]
    readonly_fields = ["created_at", "updated_at"]
