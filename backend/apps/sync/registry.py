"""
Apply function registry.

Maps entity types to the async functions that write a queued operation to
the authoritative store. The engine resolves appliers through a registry
instance it is given, so tests can swap in doubles per entity type.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from apps.sync.exceptions import UnknownEntityTypeError

if TYPE_CHECKING:
    from apps.sync.models import SyncOperation
    from apps.sync.schemas import EntityPayload

# Returns True on success. Raises ConflictError on divergence, anything else is retryable.
ApplyFunction = Callable[["SyncOperation", "EntityPayload"], Awaitable[bool]]


class ApplyRegistry:
    """Registry of apply functions keyed by entity type."""

    def __init__(self) -> None:
        self._appliers: dict[str, ApplyFunction] = {}

    def register(self, entity: str, apply: ApplyFunction) -> None:
        """
        Register (or replace) the apply function for an entity type.

        Args:
            entity: Entity type string (e.g., 'task', 'clock_in')
            apply: Async callable taking (operation, payload)
        """
        self._appliers[entity] = apply

    def get(self, entity: str) -> ApplyFunction:
        """
        Get the apply function for an entity type.

        Raises:
            UnknownEntityTypeError: If entity type is not registered
        """
        if entity not in self._appliers:
            raise UnknownEntityTypeError(f"Unknown entity type: {entity}")
        return self._appliers[entity]

    def is_registered(self, entity: str) -> bool:
        return entity in self._appliers

    def entities(self) -> list[str]:
        return list(self._appliers.keys())

    def clear(self) -> None:
        self._appliers.clear()


def build_default_registry() -> ApplyRegistry:
    """Registry wired to the facilities entity services."""
    from apps.sync import appliers

    registry = ApplyRegistry()
    registry.register("task", appliers.apply_task)
    registry.register("worker", appliers.apply_worker)
    registry.register("building", appliers.apply_building)
    registry.register("clock_in", appliers.apply_clock_event)
    registry.register("photo", appliers.apply_photo)
    registry.register("note", appliers.apply_note)
    return registry
