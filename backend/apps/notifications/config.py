"""
Notification manager configuration, read from Django settings.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class NotificationConfig:
    process_interval: float = 5.0
    batch_size: int = 100
    enable_processor: bool = True
    push_backend: str = "local"
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    sms_backend: str = "local"
    email_from: str = "notifications@localhost"
    channel_timeout: float = 10.0

    @classmethod
    def from_settings(cls) -> NotificationConfig:
        return cls(
            process_interval=float(getattr(settings, "NOTIFICATION_PROCESS_INTERVAL_SECONDS", 5)),
            batch_size=int(getattr(settings, "NOTIFICATION_BATCH_SIZE", 100)),
            enable_processor=bool(getattr(settings, "NOTIFICATION_ENABLE_PROCESSOR", True)),
            push_backend=getattr(settings, "NOTIFICATION_PUSH_BACKEND", "local"),
            expo_push_url=getattr(
                settings, "NOTIFICATION_EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send"
            ),
            sms_backend=getattr(settings, "NOTIFICATION_SMS_BACKEND", "local"),
            email_from=getattr(settings, "NOTIFICATION_EMAIL_FROM", "notifications@localhost"),
            channel_timeout=float(getattr(settings, "NOTIFICATION_CHANNEL_TIMEOUT_SECONDS", 10)),
        )
