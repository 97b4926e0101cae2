"""Notification-specific exceptions."""


class NotificationError(Exception):
    """Base exception for notification errors."""

    pass


class InvalidNotificationError(NotificationError):
    """Raised when notification data, actions or preferences fail validation."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class ChannelError(NotificationError):
    """Raised by a delivery channel when a send fails."""

    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel}: {message}")
        self.channel = channel
