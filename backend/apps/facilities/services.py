"""
Entity services for buildings, workers, tasks, clock events, photos and notes.

Every primitive is keyed by the client-generated entity id and is safe to
replay: a create that already landed becomes an update, a delete of a
tombstone is a no-op, and an update whose values are already present is
accepted without touching the row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from django.db import IntegrityError

from apps.core.logging import get_logger
from apps.facilities.exceptions import (
    EntityDeletedError,
    EntityNotFoundError,
    StaleWriteError,
)
from apps.facilities.models import (
    Building,
    ClockEvent,
    FieldEntity,
    Note,
    Photo,
    Task,
    Worker,
)

logger = get_logger(__name__)

ENTITY_MODELS: dict[str, type[FieldEntity]] = {
    "task": Task,
    "worker": Worker,
    "building": Building,
    "clock_in": ClockEvent,
    "photo": Photo,
    "note": Note,
}

# Managed by the service layer, never written from client payloads
PROTECTED_FIELDS = {
    "id",
    "version",
    "created_at",
    "updated_at",
    "deleted_at",
    "last_modified_by",
}


def writable_fields(model: type[FieldEntity]) -> set[str]:
    """Return the concrete fields a client payload may set."""
    return {
        f.name
        for f in model._meta.get_fields()
        if f.concrete and f.name not in PROTECTED_FIELDS
    }


def _filter_fields(model: type[FieldEntity], data: dict[str, Any]) -> dict[str, Any]:
    allowed = writable_fields(model)
    return {key: value for key, value in data.items() if key in allowed}


def serialize_entity(entity: FieldEntity) -> dict[str, Any]:
    """Snapshot an entity as JSON-safe data (used as conflict server_data)."""
    result: dict[str, Any] = {}
    for field in entity._meta.get_fields():
        if not field.concrete:
            continue
        value = getattr(entity, field.name, None)
        if isinstance(value, datetime):
            value = value.isoformat()
        result[field.name] = value
    result["deleted"] = entity.is_deleted
    return result


def _already_applied(entity: FieldEntity, fields: dict[str, Any]) -> bool:
    return all(getattr(entity, key) == value for key, value in fields.items())


async def upsert_entity(
    model: type[FieldEntity],
    entity_id: str,
    data: dict[str, Any],
    actor_id: str = "",
) -> tuple[FieldEntity, bool]:
    """
    Create an entity, or update it if the id already exists.

    A tombstoned row is restored, matching what the creating client expects.

    Returns:
        (entity, created)
    """
    fields = _filter_fields(model, data)
    existing = await model.all_objects.filter(pk=entity_id).afirst()

    if existing is None:
        entity = model(id=entity_id, last_modified_by=actor_id, **fields)
        try:
            await entity.asave(force_insert=True)
        except IntegrityError:
            # Lost an insert race with a replay of the same operation
            existing = await model.all_objects.aget(pk=entity_id)
        else:
            logger.info("entity_created", entity=model.__name__.lower(), entity_id=entity_id)
            return entity, True

    if existing.is_deleted:
        existing.deleted_at = None
    elif _already_applied(existing, fields):
        return existing, False

    for key, value in fields.items():
        setattr(existing, key, value)
    existing.last_modified_by = actor_id
    await existing.asave()
    logger.info("entity_upserted", entity=model.__name__.lower(), entity_id=entity_id)
    return existing, False


async def update_entity(
    model: type[FieldEntity],
    entity_id: str,
    data: dict[str, Any],
    actor_id: str = "",
    base_version: int | None = None,
    force: bool = False,
) -> FieldEntity:
    """
    Apply a partial update.

    Args:
        base_version: Server version the client edited from. A mismatch raises
            StaleWriteError unless the row already holds the client's values.
        force: Skip divergence checks (used once a conflict was resolved).
            A forced update also restores a tombstoned row.

    Raises:
        EntityNotFoundError: No row with this id exists at all.
        EntityDeletedError: The row is tombstoned and force is False.
        StaleWriteError: base_version does not match and force is False.
    """
    fields = _filter_fields(model, data)
    entity = await model.all_objects.filter(pk=entity_id).afirst()
    if entity is None:
        raise EntityNotFoundError(f"{model.__name__} {entity_id} not found")

    if not force:
        if entity.is_deleted:
            raise EntityDeletedError(
                f"{model.__name__} {entity_id} was deleted", serialize_entity(entity)
            )
        if _already_applied(entity, fields):
            return entity
        if base_version is not None and entity.version != base_version:
            raise StaleWriteError(
                f"Version mismatch: expected {base_version}, got {entity.version}",
                serialize_entity(entity),
            )
    elif entity.is_deleted:
        entity.deleted_at = None

    for key, value in fields.items():
        setattr(entity, key, value)
    entity.last_modified_by = actor_id
    await entity.asave()
    return entity


async def delete_entity(model: type[FieldEntity], entity_id: str) -> bool:
    """
    Soft delete an entity.

    Returns:
        True if a live row was tombstoned, False if it was missing or already deleted.
    """
    entity = await model.all_objects.filter(pk=entity_id).afirst()
    if entity is None or entity.is_deleted:
        return False
    await entity.asoft_delete()
    logger.info("entity_deleted", entity=model.__name__.lower(), entity_id=entity_id)
    return True


async def record_clock_event(
    event_id: str,
    worker_id: str,
    action: str,
    occurred_at: datetime,
    building_id: str = "",
    latitude: float | None = None,
    longitude: float | None = None,
) -> tuple[ClockEvent, bool]:
    """
    Record a clock-in/clock-out punch once.

    Replaying the same event id returns the stored punch instead of adding a second one.
    """
    existing = await ClockEvent.all_objects.filter(pk=event_id).afirst()
    if existing is not None:
        return existing, False

    event = ClockEvent(
        id=event_id,
        worker_id=worker_id,
        building_id=building_id,
        action=action,
        occurred_at=occurred_at,
        latitude=latitude,
        longitude=longitude,
        last_modified_by=worker_id,
    )
    try:
        await event.asave(force_insert=True)
    except IntegrityError:
        return await ClockEvent.all_objects.aget(pk=event_id), False

    logger.info("clock_event_recorded", worker_id=worker_id, action=action, event_id=event_id)
    return event, True
