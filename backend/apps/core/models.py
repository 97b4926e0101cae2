"""
Core models - shared base classes and utilities.
"""

from django.db import models
from django.utils import timezone


class TimestampedModel(models.Model):
    """
    Abstract base model with created_at/updated_at timestamps.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class SoftDeleteQuerySet(models.QuerySet):
    """QuerySet with bulk soft delete."""

    def soft_delete(self) -> int:
        return self.update(deleted_at=timezone.now())


class SoftDeleteManager(models.Manager):
    """Default manager that hides soft-deleted rows."""

    def get_queryset(self) -> SoftDeleteQuerySet:
        return SoftDeleteQuerySet(self.model, using=self._db).filter(deleted_at__isnull=True)


class SoftDeleteAllManager(models.Manager):
    """Manager that includes soft-deleted rows (needed for conflict checks)."""

    def get_queryset(self) -> SoftDeleteQuerySet:
        return SoftDeleteQuerySet(self.model, using=self._db)


class SoftDeleteMixin(models.Model):
    """
    Abstract mixin for tombstoned deletes.

    Rows are never removed by sync deletes so that a late update from an
    offline client can be recognised as a deletion conflict instead of a
    missing entity.

    IMPORTANT: list this mixin before TimestampedModel in the bases so that
    soft_delete() also bumps updated_at.
    """

    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        abstract = True

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = timezone.now()
        self.save()

    async def asoft_delete(self) -> None:
        self.deleted_at = timezone.now()
        await self.asave()
