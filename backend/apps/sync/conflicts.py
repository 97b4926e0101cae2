"""
Conflict classification and resolution data.

A conflict is opened when an apply function reports that the server copy
diverged from the one the client edited. The record keeps both sides so a
user (or the configured policy) can pick the data to re-apply.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.sync.exceptions import ConflictResolutionError
from apps.sync.models import SyncConflict, SyncOperation

ConflictType = SyncConflict.ConflictType
Resolution = SyncOperation.Resolution


def _parse_timestamp(data: dict[str, Any]) -> datetime | None:
    value = data.get("updated_at", data.get("updatedAt"))
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = parse_datetime(value)
    else:
        return None
    if parsed is not None and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_default_timezone())
    return parsed


def detect_conflict_type(client_data: dict[str, Any], server_data: dict[str, Any]) -> str:
    """
    Classify a divergence.

    - deletion_conflict: client marks the entity deleted, server copy is live
    - concurrent_edit: both sides carry an edit time and the client's is newer
    - data_mismatch: anything else
    """
    if client_data.get("deleted") and not server_data.get("deleted"):
        return ConflictType.DELETION_CONFLICT

    client_ts = _parse_timestamp(client_data)
    server_ts = _parse_timestamp(server_data)
    if client_ts is not None and server_ts is not None and client_ts > server_ts:
        return ConflictType.CONCURRENT_EDIT

    return ConflictType.DATA_MISMATCH


def resolution_data(
    conflict: SyncConflict,
    resolution: str,
    resolved_data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Pick the data the owning operation is re-applied with.

    Explicit resolved_data always wins. Otherwise client_wins keeps the
    client's payload, server_wins takes the server snapshot and merge
    overlays the client's fields on the server snapshot.

    Raises:
        ConflictResolutionError: Unknown strategy, or manual without data.
    """
    if resolution not in Resolution.values:
        raise ConflictResolutionError(f"Unknown resolution strategy: {resolution}")

    if resolved_data is not None:
        return dict(resolved_data)

    if resolution == Resolution.CLIENT_WINS:
        return dict(conflict.client_data)
    if resolution == Resolution.SERVER_WINS:
        return dict(conflict.server_data)
    if resolution == Resolution.MERGE:
        return {**conflict.server_data, **conflict.client_data}

    raise ConflictResolutionError("Manual resolution requires resolved_data")
