"""
Management command to put failed operations back in the queue.

Resets status to pending with a fresh retry budget. The next drain picks
them up; use --sync to drain immediately.
"""

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand, CommandError

from apps.core.container import build_container
from apps.sync.exceptions import OperationNotFoundError
from apps.sync.models import SyncOperation


class Command(BaseCommand):
    help = "Requeue failed sync operations"

    def add_arguments(self, parser):
        parser.add_argument(
            "--id",
            dest="operation_ids",
            action="append",
            default=[],
            help="Operation id to replay (repeatable)",
        )
        parser.add_argument(
            "--entity",
            type=str,
            choices=SyncOperation.Entity.values,
            default=None,
            help="Only replay failed operations for this entity type",
        )
        parser.add_argument(
            "--sync",
            action="store_true",
            help="Drain the queue after requeueing",
        )

    def handle(self, *args, **options):
        operation_ids = options["operation_ids"]
        entity = options["entity"]

        qs = SyncOperation.objects.filter(status=SyncOperation.Status.FAILED)
        if operation_ids:
            qs = qs.filter(id__in=operation_ids)
        if entity:
            qs = qs.filter(entity=entity)

        ids = [str(op_id) for op_id in qs.values_list("id", flat=True)]
        if operation_ids and len(ids) != len(set(operation_ids)):
            missing = sorted(set(operation_ids) - set(ids))
            raise CommandError(f"Not failed or not found: {', '.join(missing)}")

        if not ids:
            self.stdout.write("No failed operations to replay")
            return

        replayed, synced = async_to_sync(self._replay)(ids, options["sync"])

        self.stdout.write(self.style.SUCCESS(f"Requeued {replayed} operations"))
        if synced is not None:
            self.stdout.write(
                f"Drain processed {synced.processed} operations "
                f"({synced.count(SyncOperation.Status.COMPLETED)} completed, "
                f"{synced.count(SyncOperation.Status.FAILED)} failed)"
            )

    async def _replay(self, ids: list[str], drain: bool):
        container = build_container(sync_on_enqueue=False, enable_background_sync=False)
        engine = container.sync_manager

        replayed = 0
        for op_id in ids:
            try:
                await engine.retry_failed_operation(op_id)
            except OperationNotFoundError as e:
                self.stderr.write(str(e))
                continue
            replayed += 1

        result = await engine.force_sync() if drain else None
        await engine.join()
        return replayed, result
