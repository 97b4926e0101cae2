"""
Management command to delete old failed operations and resolved conflicts.

Completed operations are purged by the engine after every drain. Failed
operations and resolved conflicts are kept for inspection and replay;
after a retention period they can be permanently removed to prevent
unbounded table growth.
"""

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db.models import Count
from django.utils import timezone

from apps.sync.models import SyncConflict, SyncOperation


class Command(BaseCommand):
    """Delete failed SyncOperation and resolved SyncConflict rows older than retention."""

    help = "Remove failed sync operations and resolved conflicts past retention period"

    def add_arguments(self, parser):
        parser.add_argument(
            "--retention-days",
            type=int,
            default=getattr(settings, "SYNC_FAILED_RETENTION_DAYS", 30),
            help="Days to retain failed operations and resolved conflicts (default: 30)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=10000,
            help="Number of records to delete per batch (default: 10000)",
        )

    def handle(self, *args, **options):
        retention_days = options["retention_days"]
        dry_run = options["dry_run"]
        batch_size = options["batch_size"]

        cutoff = timezone.now() - timedelta(days=retention_days)

        self.stdout.write(
            f"Cleaning sync records older than {retention_days} days (before {cutoff.isoformat()})"
        )

        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN - no changes will be made"))

        operations = SyncOperation.objects.filter(
            status=SyncOperation.Status.FAILED, updated_at__lt=cutoff
        )
        conflicts = SyncConflict.objects.filter(
            resolution=SyncConflict.Resolution.RESOLVED, resolved_at__lt=cutoff
        )

        operation_count = operations.count()
        conflict_count = conflicts.count()

        if operation_count == 0 and conflict_count == 0:
            self.stdout.write("No sync records to remove")
            return

        self.stdout.write(
            f"Found {operation_count} failed operations and {conflict_count} resolved conflicts"
        )

        if dry_run:
            self._show_entity_breakdown(operations)
            self.stdout.write(
                self.style.SUCCESS(
                    f"\nTotal: {operation_count + conflict_count} records would be removed"
                )
            )
            return

        # Conflicts first so their operation rows are not referenced mid-delete
        deleted_conflicts = self._delete_in_batches(SyncConflict, conflicts, batch_size)
        deleted_operations = self._delete_in_batches(SyncOperation, operations, batch_size)

        self.stdout.write(
            self.style.SUCCESS(
                f"\nTotal: {deleted_operations} failed operations and "
                f"{deleted_conflicts} resolved conflicts removed"
            )
        )

    def _delete_in_batches(self, model, qs, batch_size: int) -> int:
        """Delete in batches to avoid long-running transactions."""
        total_deleted = 0
        while True:
            batch_ids = list(qs.values_list("id", flat=True)[:batch_size])
            if not batch_ids:
                break

            _, per_model = model.objects.filter(id__in=batch_ids).delete()
            total_deleted += per_model.get(model._meta.label, 0)
            self.stdout.write(f"  Deleted {total_deleted} {model._meta.verbose_name_plural}...")
        return total_deleted

    def _show_entity_breakdown(self, qs):
        """Show failed operation counts by entity for dry run."""
        breakdown = qs.order_by().values("entity").annotate(count=Count("id")).order_by("-count")

        self.stdout.write("\nFailed operations by entity:")
        for row in breakdown:
            self.stdout.write(f"  {row['entity']}: {row['count']}")
