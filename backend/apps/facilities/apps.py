"""Facilities app configuration."""

from django.apps import AppConfig


class FacilitiesConfig(AppConfig):
    """Buildings, workers, tasks and field evidence written by offline clients."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.facilities"
    verbose_name = "Facilities"
