"""
Default apply functions.

Each function writes one queued operation through the facilities entity
services and translates their divergence errors into ConflictError so the
engine can open a conflict record. Missing rows on update are retryable:
the create for the same entity may still be waiting in the queue.
"""

from __future__ import annotations

from typing import Any

from django.utils import timezone

from apps.core.logging import get_logger
from apps.facilities.exceptions import EntityDivergedError, EntityNotFoundError
from apps.facilities.models import Building, ClockEvent, FieldEntity, Note, Photo, Task, Worker
from apps.facilities.services import (
    delete_entity,
    record_clock_event,
    update_entity,
    upsert_entity,
)
from apps.sync.exceptions import ApplyError, ConflictError
from apps.sync.models import SyncOperation
from apps.sync.schemas import ClockPayload, EntityPayload

logger = get_logger(__name__)


async def _apply_fields(
    model: type[FieldEntity],
    operation: SyncOperation,
    payload: EntityPayload,
    fields: dict[str, Any],
) -> bool:
    resolution = operation.conflict_resolution
    if resolution == SyncOperation.Resolution.SERVER_WINS:
        # Server copy is authoritative; the client's change is dropped
        logger.info(
            "sync_apply_skipped_server_wins",
            entity=operation.entity,
            entity_id=operation.entity_id,
        )
        return True

    force = resolution is not None

    try:
        if operation.type == SyncOperation.Type.CREATE:
            await upsert_entity(model, operation.entity_id, fields, actor_id=operation.user_id)
        elif operation.type == SyncOperation.Type.UPDATE:
            await update_entity(
                model,
                operation.entity_id,
                fields,
                actor_id=operation.user_id,
                base_version=payload.base_version,
                force=force,
            )
        else:
            await delete_entity(model, operation.entity_id)
    except EntityDivergedError as e:
        raise ConflictError(str(e), server_data=e.server_data) from e
    except EntityNotFoundError as e:
        raise ApplyError(str(e)) from e

    return True


async def apply_task(operation: SyncOperation, payload: EntityPayload) -> bool:
    fields = payload.entity_fields()
    fields.pop("id", None)

    if fields.get("status") == Task.Status.COMPLETED and "completed_at" not in fields:
        current = await Task.all_objects.filter(pk=operation.entity_id).afirst()
        if current is None or current.completed_at is None:
            fields["completed_at"] = timezone.now()

    return await _apply_fields(Task, operation, payload, fields)


async def apply_worker(operation: SyncOperation, payload: EntityPayload) -> bool:
    return await _apply_fields(Worker, operation, payload, payload.entity_fields())


async def apply_building(operation: SyncOperation, payload: EntityPayload) -> bool:
    return await _apply_fields(Building, operation, payload, payload.entity_fields())


async def apply_photo(operation: SyncOperation, payload: EntityPayload) -> bool:
    return await _apply_fields(Photo, operation, payload, payload.entity_fields())


async def apply_note(operation: SyncOperation, payload: EntityPayload) -> bool:
    return await _apply_fields(Note, operation, payload, payload.entity_fields())


async def apply_clock_event(operation: SyncOperation, payload: ClockPayload) -> bool:
    """
    Record a clock punch.

    Punches are append-only: creates are recorded once per event id and
    deletes tombstone the punch. Updates are rejected.
    """
    if operation.type == SyncOperation.Type.CREATE:
        await record_clock_event(
            event_id=operation.entity_id,
            worker_id=operation.user_id,
            action=payload.operation,
            occurred_at=payload.occurred_at or operation.timestamp,
            building_id=payload.building_id,
            latitude=payload.latitude,
            longitude=payload.longitude,
        )
        return True

    if operation.type == SyncOperation.Type.DELETE:
        await delete_entity(ClockEvent, operation.entity_id)
        return True

    raise ApplyError("Clock events cannot be updated")
