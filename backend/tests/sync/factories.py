"""
Factories for sync app models.

Used in tests to create test data.
"""

from typing import Any

import factory
from django.utils import timezone
from factory.django import DjangoModelFactory

from apps.sync.models import SyncConflict, SyncOperation


class SyncOperationFactory(DjangoModelFactory[SyncOperation]):
    """Factory for SyncOperation model."""

    class Meta:
        model = SyncOperation

    type = SyncOperation.Type.CREATE
    entity = SyncOperation.Entity.TASK
    entity_id: Any = factory.Sequence(lambda n: f"task_{n:06d}")
    data: Any = factory.LazyFunction(lambda: {"title": "Replace boiler filter"})
    timestamp: Any = factory.LazyFunction(timezone.now)

    user_id = "worker_1"
    user_role = "worker"

    priority = SyncOperation.Priority.MEDIUM
    status = SyncOperation.Status.PENDING
    retry_count = 0
    max_retries = 3


class SyncConflictFactory(DjangoModelFactory[SyncConflict]):
    """Factory for SyncConflict model."""

    class Meta:
        model = SyncConflict

    operation: Any = factory.SubFactory(
        SyncOperationFactory,
        type=SyncOperation.Type.UPDATE,
        status=SyncOperation.Status.CONFLICT,
        data={"title": "Client title"},
    )
    server_data: Any = factory.LazyFunction(lambda: {"title": "Server title", "version": 3})
    client_data: Any = factory.LazyFunction(lambda: {"title": "Client title"})
    conflict_type = SyncConflict.ConflictType.DATA_MISMATCH
    resolution = SyncConflict.Resolution.PENDING
