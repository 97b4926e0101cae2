"""
Tests for notification schemas and normalization helpers.
"""

import pytest
from pydantic import ValidationError

from apps.notifications.exceptions import InvalidNotificationError
from apps.notifications.schemas import (
    NotificationPreferencesData,
    QuietHours,
    normalize_actions,
    normalize_notification_data,
)


class TestNormalizeNotificationData:
    def test_camel_case_keys_become_snake_case(self):
        data = normalize_notification_data("task", {"taskId": "task_1", "taskTitle": "Fix"})

        assert data == {"task_id": "task_1", "task_title": "Fix"}

    def test_datetimes_are_json_safe(self):
        data = normalize_notification_data(
            "compliance",
            {"buildingId": "b1", "complianceType": "fire", "dueDate": "2024-02-01T00:00:00Z"},
        )

        assert data["due_date"].startswith("2024-02-01T00:00:00")

    def test_missing_field_raises_with_errors(self):
        with pytest.raises(InvalidNotificationError) as exc_info:
            normalize_notification_data("task", {"taskId": "task_1"})

        assert exc_info.value.errors

    def test_freeform_types_keep_extra_keys(self):
        assert normalize_notification_data("system", {"window": "02:00"}) == {"window": "02:00"}

    def test_none_passes_through(self):
        assert normalize_notification_data("task", None) is None

    def test_unknown_type(self):
        with pytest.raises(InvalidNotificationError):
            normalize_notification_data("party", {})


class TestNormalizeActions:
    def test_defaults_filled(self):
        actions = normalize_actions([{"id": "ack", "title": "Acknowledge", "action": "ack"}])

        assert actions == [
            {
                "id": "ack",
                "title": "Acknowledge",
                "action": "ack",
                "destructive": False,
                "authentication_required": False,
            }
        ]

    def test_empty(self):
        assert normalize_actions(None) == []

    def test_invalid_action(self):
        with pytest.raises(InvalidNotificationError):
            normalize_actions([{"id": "ack"}])


class TestPreferencesData:
    def test_documented_defaults(self):
        prefs = NotificationPreferencesData.default("worker_1")

        assert prefs.enabled
        assert all(prefs.types.values())
        assert all(prefs.priority.values())
        assert prefs.enabled_channels() == ["push", "in_app"]
        assert not prefs.quiet_hours.enabled
        assert prefs.quiet_hours.start == "22:00"
        assert prefs.quiet_hours.end == "07:00"

    def test_in_app_camel_case_key(self):
        prefs = NotificationPreferencesData.model_validate(
            {"userId": "worker_1", "delivery": {"push": False, "inApp": True, "sms": True}}
        )

        assert prefs.enabled_channels() == ["in_app", "sms"]

    def test_unknown_type_is_disabled(self):
        prefs = NotificationPreferencesData.default("worker_1")

        assert not prefs.type_enabled("party")

    def test_quiet_hours_reject_bad_time(self):
        with pytest.raises(ValidationError):
            QuietHours(start="25:00")

    def test_quiet_hours_reject_unknown_timezone(self):
        with pytest.raises(ValidationError):
            QuietHours(timezone="Mars/Olympus_Mons")
