import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ingestion.feed_poller import LocalFeedPoller
from ingestion.runner import FeedItemImportRunner
from services.interval_feeds import IntervalFeedEmitter

logger = logging.getLogger(__name__)

INTERVAL_FEED_EMIT_MINUTES = 5


class FeedPipelineScheduler:
    """
    Background jobs:

    - drain the import queue every ``import_poll_interval_seconds``
    - emit interval feed items every five minutes
    - poll registered feeds every ``feed_poll_interval_minutes`` (local provider only)
    - re-queue items due for refresh every ``refresh_scan_interval_minutes``
    """

    def __init__(
        self,
        runner: FeedItemImportRunner,
        interval_emitter: IntervalFeedEmitter,
        feed_poller: Optional[LocalFeedPoller] = None,
        import_batch_size: int = 50,
        import_poll_interval_seconds: int = 30,
        feed_poll_interval_minutes: int = 30,
        refresh_scan_interval_minutes: int = 60,
    ):
        self.scheduler = AsyncIOScheduler()
        self.runner = runner
        self.interval_emitter = interval_emitter
        self.feed_poller = feed_poller
        self.import_batch_size = import_batch_size
        self.import_poll_interval_seconds = import_poll_interval_seconds
        self.feed_poll_interval_minutes = feed_poll_interval_minutes
        self.refresh_scan_interval_minutes = refresh_scan_interval_minutes

    async def run_import_queue_job(self):
        """Job to process pending imports"""
        try:
            result = await self.runner.run_pending(self.import_batch_size)
            if result["status"] != "success":
                logger.warning(f"Scheduler: import run finished with status {result['status']}")
        except Exception as e:
            logger.error(f"Scheduler: import queue job failed - {e}")

    async def run_interval_feeds_job(self):
        """Job to emit due interval feed items"""
        try:
            result = await self.interval_emitter.emit_due_items()
            if not result.success:
                logger.error(f"Scheduler: interval feed job failed - {result.error}")
        except Exception as e:
            logger.error(f"Scheduler: interval feed job failed - {e}")

    async def run_feed_poll_job(self):
        """Job to poll registered feeds"""
        try:
            await self.feed_poller.poll_registered_feeds()
        except Exception as e:
            logger.error(f"Scheduler: feed poll job failed - {e}")

    async def run_refresh_job(self):
        """Job to re-queue feed items due for refresh"""
        try:
            result = await self.runner.enqueue_due_refreshes(self.import_batch_size)
            if not result.success:
                logger.error(f"Scheduler: refresh job failed - {result.error}")
        except Exception as e:
            logger.error(f"Scheduler: refresh job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_import_queue_job,
            trigger=IntervalTrigger(seconds=self.import_poll_interval_seconds),
            id="import_queue_job",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.run_interval_feeds_job,
            trigger=IntervalTrigger(minutes=INTERVAL_FEED_EMIT_MINUTES),
            id="interval_feeds_job",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.run_refresh_job,
            trigger=IntervalTrigger(minutes=self.refresh_scan_interval_minutes),
            id="refresh_job",
            replace_existing=True,
            max_instances=1,
        )
        if self.feed_poller is not None:
            self.scheduler.add_job(
                self.run_feed_poll_job,
                trigger=IntervalTrigger(minutes=self.feed_poll_interval_minutes),
                id="feed_poll_job",
                replace_existing=True,
                max_instances=1,
            )
        self.scheduler.start()
        logger.info("Feed pipeline scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Feed pipeline scheduler stopped")
