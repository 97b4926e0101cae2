"""
Quiet-hours window evaluation.

Windows are given as HH:MM in the user's timezone and are inclusive at
both ends. A window whose start is after its end spans midnight.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from django.utils import timezone

from apps.notifications.schemas import QuietHours


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_in_window(current: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= current <= end
    # Spans midnight
    return current >= start or current <= end


def local_minutes(now: datetime, tz_name: str) -> int:
    """Minutes since local midnight of ``now`` in ``tz_name``."""
    local = now.astimezone(ZoneInfo(tz_name))
    return local.hour * 60 + local.minute


def in_quiet_hours(quiet_hours: QuietHours, now: datetime | None = None) -> bool:
    """True if quiet hours are enabled and ``now`` falls inside the window."""
    if not quiet_hours.enabled:
        return False
    now = now or timezone.now()
    return minutes_in_window(
        local_minutes(now, quiet_hours.timezone),
        time_to_minutes(quiet_hours.start),
        time_to_minutes(quiet_hours.end),
    )
