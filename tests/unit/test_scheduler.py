import pytest
from unittest.mock import AsyncMock, MagicMock

from core.exceptions import StoreError
from core.results import make_error_result, make_success_result
from ingestion.scheduler import FeedPipelineScheduler


def make_scheduler(feed_poller=None):
    runner = MagicMock()
    runner.run_pending = AsyncMock(return_value={"status": "success", "items_processed": 0})
    runner.enqueue_due_refreshes = AsyncMock(return_value=make_success_result(0))
    interval_emitter = MagicMock()
    interval_emitter.emit_due_items = AsyncMock(return_value=make_success_result({"total": 0}))
    return FeedPipelineScheduler(
        runner=runner,
        interval_emitter=interval_emitter,
        feed_poller=feed_poller,
        import_batch_size=25,
        import_poll_interval_seconds=10,
        feed_poll_interval_minutes=15,
        refresh_scan_interval_minutes=120,
    )


@pytest.mark.asyncio
async def test_import_queue_job_uses_batch_size():
    scheduler = make_scheduler()

    await scheduler.run_import_queue_job()

    scheduler.runner.run_pending.assert_awaited_once_with(25)


@pytest.mark.asyncio
async def test_refresh_job_uses_batch_size():
    scheduler = make_scheduler()

    await scheduler.run_refresh_job()

    scheduler.runner.enqueue_due_refreshes.assert_awaited_once_with(25)


@pytest.mark.asyncio
async def test_jobs_never_raise():
    poller = MagicMock()
    poller.poll_registered_feeds = AsyncMock(side_effect=RuntimeError("boom"))
    scheduler = make_scheduler(feed_poller=poller)
    scheduler.runner.run_pending.side_effect = RuntimeError("database gone")
    scheduler.runner.enqueue_due_refreshes.side_effect = RuntimeError("database gone")
    scheduler.interval_emitter.emit_due_items.return_value = make_error_result(
        StoreError("Failed to list interval subscriptions", context={"operation": "query"})
    )

    # Each job logs its failure and returns
    await scheduler.run_import_queue_job()
    await scheduler.run_interval_feeds_job()
    await scheduler.run_feed_poll_job()
    await scheduler.run_refresh_job()

    poller.poll_registered_feeds.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_registers_jobs():
    scheduler = make_scheduler()

    scheduler.start()
    try:
        assert scheduler.scheduler.get_job("import_queue_job") is not None
        assert scheduler.scheduler.get_job("interval_feeds_job") is not None
        assert scheduler.scheduler.get_job("refresh_job") is not None
        # Feed polling only runs with the local provider
        assert scheduler.scheduler.get_job("feed_poll_job") is None
    finally:
        scheduler.stop()


@pytest.mark.asyncio
async def test_start_registers_feed_poll_job_with_poller():
    scheduler = make_scheduler(feed_poller=MagicMock())

    scheduler.start()
    try:
        assert scheduler.scheduler.get_job("feed_poll_job") is not None
    finally:
        scheduler.stop()
