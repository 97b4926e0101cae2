"""
Pydantic schemas for queued operation payloads.

Each entity type has its own payload model. Payloads are validated when an
operation is queued and again when it is applied, so an apply function
always receives a typed object instead of a raw dict. Clients may send
either snake_case or camelCase keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from apps.sync.exceptions import InvalidPayloadError, UnknownEntityTypeError


class EntityPayload(BaseModel):
    """
    Fields shared by every entity payload.

    base_version: server version the client edited from (optimistic concurrency)
    updated_at: client-side edit time, used to classify conflicts
    deleted: client marks the entity as deleted
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    META_FIELDS: ClassVar[set[str]] = {"base_version", "updated_at", "deleted"}

    base_version: int | None = None
    updated_at: datetime | None = None
    deleted: bool = False

    def entity_fields(self) -> dict[str, Any]:
        """Return only the fields the client actually sent, minus sync metadata."""
        return self.model_dump(exclude_unset=True, exclude=self.META_FIELDS)


class TaskPayload(EntityPayload):
    id: str | None = None
    title: str | None = None
    description: str | None = None
    category: str | None = None
    building_id: str | None = None
    assigned_worker_id: str | None = None
    status: Literal["pending", "in_progress", "completed", "cancelled"] | None = None
    due_at: datetime | None = None
    completed_at: datetime | None = None
    completion_notes: str | None = None


class WorkerPayload(EntityPayload):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    role: Literal["worker", "client", "admin"] | None = None
    is_active: bool | None = None


class BuildingPayload(EntityPayload):
    name: str | None = None
    address: str | None = None
    borough: str | None = None


class ClockPayload(EntityPayload):
    operation: Literal["clock_in", "clock_out"] = "clock_in"
    building_id: str = ""
    occurred_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None


class PhotoPayload(EntityPayload):
    uri: str | None = None
    caption: str | None = None
    task_id: str | None = None
    building_id: str | None = None
    worker_id: str | None = None
    taken_at: datetime | None = None


class NotePayload(EntityPayload):
    body: str | None = None
    building_id: str | None = None
    task_id: str | None = None
    author_id: str | None = None


PAYLOAD_MODELS: dict[str, type[EntityPayload]] = {
    "task": TaskPayload,
    "worker": WorkerPayload,
    "building": BuildingPayload,
    "clock_in": ClockPayload,
    "photo": PhotoPayload,
    "note": NotePayload,
}


def parse_payload(entity: str, data: dict[str, Any]) -> EntityPayload:
    """
    Validate raw operation data against the entity's payload model.

    Raises:
        UnknownEntityTypeError: No payload model for this entity type
        InvalidPayloadError: Data fails validation
    """
    model = PAYLOAD_MODELS.get(entity)
    if model is None:
        raise UnknownEntityTypeError(f"Unknown entity type: {entity}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidPayloadError(
            f"Invalid {entity} payload: {e.error_count()} error(s)",
            errors=e.errors(include_url=False),
        ) from e


def normalize_payload(entity: str, data: dict[str, Any]) -> dict[str, Any]:
    """Validate and return JSON-safe snake_case data for storage."""
    payload = parse_payload(entity, data)
    return payload.model_dump(mode="json", exclude_unset=True)
