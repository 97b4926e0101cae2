"""Sync-specific exceptions."""


class SyncError(Exception):
    """Base exception for sync errors."""

    pass


class UnknownEntityTypeError(SyncError):
    """Raised when no apply function is registered for an entity type."""

    pass


class InvalidPayloadError(SyncError):
    """Raised when an operation's data does not match its entity payload schema."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class ApplyError(SyncError):
    """Raised by apply functions for a retryable failure."""

    pass


class ConflictError(SyncError):
    """Raised by apply functions when the server copy diverged from the client's."""

    def __init__(self, message: str, server_data: dict | None = None):
        super().__init__(message)
        self.server_data = server_data or {}


class QueueFullError(SyncError):
    """Raised when the queue is at capacity and the new operation has the lowest priority."""

    pass


class OperationNotFoundError(SyncError):
    """Raised when an operator call references an unknown operation."""

    pass


class ConflictNotFoundError(SyncError):
    """Raised when resolving a conflict id that does not exist."""

    pass


class ConflictAlreadyResolvedError(SyncError):
    """Raised when resolving a conflict twice."""

    pass


class ConflictResolutionError(SyncError):
    """Raised when a resolution cannot be applied (e.g. manual without data)."""

    pass
