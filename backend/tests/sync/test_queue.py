"""
Tests for the durable operation queue and retry backoff.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.sync.models import SyncConflict, SyncOperation
from apps.sync.queue import OperationQueue, compute_retry_delay
from tests.sync.factories import SyncOperationFactory


class TestComputeRetryDelay:
    """Tests for exponential backoff."""

    def test_doubles_per_attempt(self):
        assert compute_retry_delay(1, base=2, cap=300, rand=0) == 2
        assert compute_retry_delay(2, base=2, cap=300, rand=0) == 4
        assert compute_retry_delay(3, base=2, cap=300, rand=0) == 8

    def test_capped(self):
        assert compute_retry_delay(20, base=2, cap=300, rand=0) == 300

    def test_jitter_adds_up_to_twenty_percent(self):
        assert compute_retry_delay(1, base=10, cap=300, rand=1.0) == pytest.approx(12.0)

    def test_zero_base_disables_backoff(self):
        assert compute_retry_delay(3, base=0, cap=300) == 0.0


async def _save(**kwargs) -> SyncOperation:
    op = SyncOperationFactory.build(**kwargs)
    await op.asave()
    return op


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
class TestOperationQueue:
    """Tests for OperationQueue reads and maintenance."""

    async def test_select_due_orders_and_filters(self):
        queue = OperationQueue()
        now = timezone.now()
        low = await _save(priority="low", timestamp=now - timedelta(minutes=5))
        high = await _save(priority="high", timestamp=now)
        await _save(priority="critical", next_attempt_at=now + timedelta(minutes=1))
        await _save(priority="critical", status=SyncOperation.Status.FAILED)

        due = await queue.select_due(now=now)

        assert [op.pk for op in due] == [high.pk, low.pk]

    async def test_select_due_limit(self):
        queue = OperationQueue()
        for _ in range(3):
            await _save()

        assert len(await queue.select_due(limit=2)) == 2

    async def test_select_due_includes_backoff_ending_now(self):
        queue = OperationQueue()
        now = timezone.now()
        ready = await _save(next_attempt_at=now)
        await _save(next_attempt_at=now + timedelta(seconds=1))

        due = await queue.select_due(now=now)

        assert [op.pk for op in due] == [ready.pk]

    async def test_counts_by_status(self):
        queue = OperationQueue()
        await _save()
        await _save(status=SyncOperation.Status.FAILED)
        await _save(status=SyncOperation.Status.FAILED)

        counts = await queue.counts()

        assert counts["pending"] == 1
        assert counts["failed"] == 2
        assert counts["conflict"] == 0

    async def test_purge_completed_only(self):
        queue = OperationQueue()
        await _save(status=SyncOperation.Status.COMPLETED)
        kept = await _save(status=SyncOperation.Status.FAILED)

        purged = await queue.purge_completed()

        assert purged == 1
        assert [op.pk async for op in SyncOperation.objects.all()] == [kept.pk]

    async def test_recover_interrupted(self):
        queue = OperationQueue()
        op = await _save(status=SyncOperation.Status.SYNCING)

        recovered = await queue.recover_interrupted()

        assert recovered == 1
        await op.arefresh_from_db()
        assert op.status == SyncOperation.Status.PENDING

    async def test_clear_removes_conflicts_too(self):
        queue = OperationQueue()
        op = await _save(status=SyncOperation.Status.CONFLICT)
        await SyncConflict.objects.acreate(
            operation=op, conflict_type=SyncConflict.ConflictType.DATA_MISMATCH
        )

        assert await queue.clear() == 1
        assert await SyncConflict.objects.acount() == 0

    async def test_has_pending(self):
        queue = OperationQueue()
        assert not await queue.has_pending()

        await _save()

        assert await queue.has_pending()
