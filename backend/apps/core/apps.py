"""Core app configuration."""

from django.apps import AppConfig
from django.conf import settings


class CoreConfig(AppConfig):
    """Shared infrastructure: logging, realtime bus and the service container."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"
    verbose_name = "Core"

    def ready(self) -> None:
        from apps.core.logging import configure_logging

        configure_logging(
            json_format=getattr(settings, "LOG_JSON_FORMAT", True),
            log_level=getattr(settings, "LOG_LEVEL", "INFO"),
        )
