"""Facilities entity exceptions."""


class EntityError(Exception):
    """Base exception for entity service errors."""

    pass


class EntityNotFoundError(EntityError):
    """Raised when an update targets an entity that was never created."""

    pass


class EntityDivergedError(EntityError):
    """
    Base for writes refused because the server copy moved on.

    Carries a snapshot of the server row so callers can record a conflict.
    """

    def __init__(self, message: str, server_data: dict | None = None):
        super().__init__(message)
        self.server_data = server_data or {}


class EntityDeletedError(EntityDivergedError):
    """Raised when an update targets a soft-deleted entity."""

    pass


class StaleWriteError(EntityDivergedError):
    """Raised when the client's base_version no longer matches the server."""

    pass
