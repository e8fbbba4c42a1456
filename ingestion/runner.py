# ============================================================================
# File: ingestion/runner.py
# Description: Import queue consumer driving the feed item import state machine
# ============================================================================
"""
Import runner - claims queued feed items and runs their importer.

This module provides:
- Exclusive claims on queue items and feed items (losers skip, never fail)
- Importer dispatch by feed item type
- Local recovery: every importer failure becomes a FAILED import state with a
  readable message, never an exception escaping to the caller
- Reimport requests that re-enqueue completed or failed items
- A refresh scan that re-enqueues items left fetchable by their last import
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from core.exceptions import FeedPipelineException
from core.results import Result, make_success_result, prefix_error_result
from ingestion.import_queue import ImportQueue
from ingestion.import_state_machine import FeedItemImportStateMachine
from ingestion.importers.dispatcher import FeedItemImporterDispatcher
from schemas.event_log import FeedItemImportedEventData
from schemas.feed_items import FeedItem
from services.event_log import EventLogService

logger = logging.getLogger(__name__)

IMPORT_ERROR_PREFIX = "Error importing feed item"


class FeedItemImportRunner:
    """
    Import orchestrator

    Responsibilities:
    - Claim -> import -> COMPLETED / FAILED for a single feed item
    - Drain the import queue with bounded concurrency
    - Record a FEED_ITEM_IMPORTED event with every successful import
    """

    def __init__(
        self,
        state_machine: FeedItemImportStateMachine,
        import_queue: ImportQueue,
        dispatcher: FeedItemImporterDispatcher,
        event_log: EventLogService,
        concurrency: int = 5,
        refresh_after: timedelta = timedelta(hours=24),
    ):
        self.state_machine = state_machine
        self.import_queue = import_queue
        self.dispatcher = dispatcher
        self.event_log = event_log
        self.concurrency = concurrency
        self.refresh_after = refresh_after

    async def import_feed_item(self, feed_item_id: str) -> Result[Optional[FeedItem]]:
        """
        Import one feed item.

        Returns:
            The item in its final state, or None when another worker holds
            the claim or the item is not fetchable. Importer failures are
            recorded on the item and still return success; only store
            failures are returned as errors.
        """
        claim_result = await self.state_machine.claim(feed_item_id)
        if not claim_result.success:
            return prefix_error_result(claim_result, IMPORT_ERROR_PREFIX)
        feed_item = claim_result.value
        if feed_item is None:
            return make_success_result(None)

        try:
            outcome = await self.dispatcher.import_item(feed_item)
        except FeedPipelineException as e:
            error = e.with_prefix(IMPORT_ERROR_PREFIX)
            logger.error(
                f"Import of feed item {feed_item_id} failed: {error.message}",
                extra={"feed_item_id": feed_item_id, "error_context": e.to_dict()}
            )
            return await self.state_machine.mark_failed(feed_item, error.message)
        except Exception as e:
            message = f"{IMPORT_ERROR_PREFIX}: {type(e).__name__}: {e}"
            logger.exception(
                f"Unexpected error importing feed item {feed_item_id}",
                extra={"feed_item_id": feed_item_id}
            )
            return await self.state_machine.mark_failed(feed_item, message)

        event = self.event_log.make_event(
            feed_item.account_id,
            FeedItemImportedEventData(feed_item_id=feed_item.feed_item_id),
        )
        return await self.state_machine.mark_completed(feed_item, should_fetch=outcome.should_refresh, event=event)

    async def process_import_queue_item(self, import_queue_item_id: str) -> Result[str]:
        """
        Claim a queue item, import its feed item and drop the queue item.

        Returns one of ``"processed"``, ``"failed"`` or ``"skipped"``.
        """
        claim_result = await self.import_queue.claim(import_queue_item_id)
        if not claim_result.success:
            return claim_result
        queue_item = claim_result.value
        if queue_item is None:
            return make_success_result("skipped")

        import_result = await self.import_feed_item(queue_item.feed_item_id)
        if not import_result.success:
            logger.error(
                f"Import queue item {import_queue_item_id} failed: {import_result.error}",
                extra={"feed_item_id": queue_item.feed_item_id, "error_context": import_result.error.to_dict()}
            )
            await self.import_queue.mark_failed(import_queue_item_id)
            return import_result

        remove_result = await self.import_queue.remove(import_queue_item_id)
        if not remove_result.success:
            return remove_result

        feed_item = import_result.value
        if feed_item is None:
            return make_success_result("skipped")
        if feed_item.import_state.status == "FAILED":
            return make_success_result("failed")
        return make_success_result("processed")

    async def request_reimport(self, feed_item_id: str) -> Result[FeedItem]:
        """
        Mark a FAILED or COMPLETED item for import and enqueue it. NEW items
        already have a queue entry.
        """
        reimport_result = await self.state_machine.request_reimport(feed_item_id)
        if not reimport_result.success:
            return reimport_result
        feed_item = reimport_result.value
        if feed_item.import_state.status == "NEW" or not feed_item.import_state.should_fetch:
            return make_success_result(feed_item)

        enqueue_result = await self.import_queue.enqueue(feed_item)
        if not enqueue_result.success:
            return prefix_error_result(enqueue_result, "Error enqueuing reimport")
        return make_success_result(feed_item)

    async def enqueue_due_refreshes(self, limit: int) -> Result[int]:
        """Queue up to ``limit`` fetchable items last written ``refresh_after`` ago."""
        result = await self.import_queue.enqueue_due_refreshes(self.refresh_after, limit)
        if not result.success:
            return prefix_error_result(result, "Error enqueuing refreshes")
        return result

    async def run_pending(self, limit: int) -> Dict[str, Any]:
        """
        Process up to ``limit`` NEW queue items, ``concurrency`` at a time.

        Returns:
            Dictionary with run statistics:
            - status: "success", "partial_success" or "failed"
            - items_processed / items_failed / items_skipped
        """
        stats = {"items_processed": 0, "items_failed": 0, "items_skipped": 0}

        pending_result = await self.import_queue.list_pending(limit)
        if not pending_result.success:
            logger.error(f"Failed to read import queue: {pending_result.error}")
            return {"status": "failed", **stats, "error": pending_result.error.to_dict()}

        semaphore = asyncio.Semaphore(self.concurrency)

        async def process(queue_item_id: str):
            async with semaphore:
                return await self.process_import_queue_item(queue_item_id)

        results = await asyncio.gather(*[
            process(queue_item.import_queue_item_id) for queue_item in pending_result.value
        ])

        for result in results:
            if not result.success:
                stats["items_failed"] += 1
            elif result.value == "processed":
                stats["items_processed"] += 1
            elif result.value == "failed":
                stats["items_failed"] += 1
            else:
                stats["items_skipped"] += 1

        if stats["items_failed"] == 0:
            status = "success"
        elif stats["items_processed"] > 0:
            status = "partial_success"
        else:
            status = "failed"

        if results:
            logger.info(
                f"Import run: {stats['items_processed']} processed, {stats['items_failed']} failed, "
                f"{stats['items_skipped']} skipped"
            )
        return {"status": status, **stats}
