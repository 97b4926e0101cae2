"""
Shared pytest fixtures for all tests.

This module provides common fixtures used across multiple test modules.
Individual test modules can override these fixtures if needed.

Factories
---------
Import factories directly from their modules:

    from tests.facilities.factories import TaskFactory, BuildingFactory
    from tests.sync.factories import SyncOperationFactory, SyncConflictFactory
    from tests.notifications.factories import NotificationFactory, NotificationPreferencesFactory

Async tests
-----------
The engine and the notification manager use Django's async ORM. Async tests
that touch the database run with ``@pytest.mark.django_db(transaction=True)``
and create rows with ``Factory.build(...)`` followed by ``await obj.asave()``.
"""

from datetime import UTC, datetime

import pytest

from apps.core.bus import RealtimeBus
from apps.core.logging import clear_contextvars


@pytest.fixture
def bus() -> RealtimeBus:
    return RealtimeBus()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep structlog context from leaking between tests."""
    clear_contextvars()
    yield
    clear_contextvars()


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed instant: 2024-01-15 12:00 UTC (07:00 in New York)."""
    return datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
