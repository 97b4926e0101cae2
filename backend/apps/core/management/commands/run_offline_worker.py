"""
Run the offline worker.

Starts the sync timer, the notification processor and (when
SYNC_CONNECTIVITY_URL is set) the connectivity probe in one asyncio loop.
Stops gracefully on SIGINT/SIGTERM.
"""

import asyncio
import signal

from django.core.management.base import BaseCommand

from apps.core.container import build_container
from apps.core.logging import get_logger
from apps.sync.models import SyncOperation

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Run the offline sync engine and notification processor"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._shutdown: asyncio.Event | None = None

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Drain the sync queue and the notification queue once, then exit",
        )
        parser.add_argument(
            "--offline",
            action="store_true",
            help="Start with the network flagged offline (no drains until a probe succeeds)",
        )

    def handle(self, *args, **options):
        if options["once"]:
            asyncio.run(self._run_once())
        else:
            asyncio.run(self._run_forever(online=not options["offline"]))

    async def _run_once(self) -> None:
        container = build_container(enable_background_sync=False, sync_on_enqueue=False)
        sync_manager = container.sync_manager

        await sync_manager.queue.recover_interrupted()
        result = await sync_manager.force_sync()
        await sync_manager.join()
        processed = await container.notification_manager.process_notification_queue()
        await container.stop()

        if result.skipped_reason:
            self.stdout.write(f"Sync skipped: {result.skipped_reason}")
        else:
            self.stdout.write(
                f"Synced {result.processed} operations "
                f"({result.count(SyncOperation.Status.COMPLETED)} completed, "
                f"{result.count(SyncOperation.Status.CONFLICT)} conflicts, "
                f"{result.count(SyncOperation.Status.FAILED)} failed)"
            )
        self.stdout.write(
            f"Delivered {processed.delivered} notifications "
            f"({processed.deferred} deferred, {processed.expired} expired)"
        )

    async def _run_forever(self, online: bool) -> None:
        self._shutdown = asyncio.Event()
        self._setup_signal_handlers()

        container = build_container(online=online)
        await container.start()
        logger.info("offline_worker_started")

        try:
            await self._shutdown.wait()
        finally:
            await container.stop()
            logger.info("offline_worker_shutdown")

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, signum) -> None:
        logger.info("offline_worker_signal_received", signal=signum)
        if self._shutdown is not None:
            self._shutdown.set()
