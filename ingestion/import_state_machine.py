"""
Persisted feed item import state machine.

Claiming an item is a single conditional UPDATE on ``should_fetch`` and the
row ``revision`` observed when the item was read:

    UPDATE feed_items SET import_state = <PROCESSING>, should_fetch = false,
                          revision = revision + 1
     WHERE feed_item_id = :id AND should_fetch AND revision = :observed

Exactly one of any number of concurrent claimers sees ``rowcount == 1``. The
others re-read; once ``should_fetch`` is false they abstain and report
"already claimed" as a successful no-op.
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.clock import Clock
from core.exceptions import ImportStateError, NotFoundError, StoreError
from core.results import Result, make_error_result, make_success_result
from models.base import FeedItemImportStatus
from models.event_log import EventLogRecord
from models.feed_items import FeedItemRecord
from schemas.event_log import EventLogItem
from schemas.feed_items import FeedItem
from schemas.import_states import (
    ProcessingImportState,
    make_completed_import_state,
    make_failed_import_state,
    make_processing_import_state,
    make_reimport_requested_state,
)

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3


class FeedItemImportStateMachine:
    def __init__(self, session_factory: async_sessionmaker, clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    def _store_error(self, message: str, feed_item_id: str, e: Exception) -> StoreError:
        return StoreError(
            message,
            context={"operation": "update", "table_name": "feed_items", "feed_item_id": feed_item_id},
            original_exception=e
        )

    def _not_found(self, feed_item_id: str) -> NotFoundError:
        return NotFoundError(
            f"Feed item {feed_item_id} not found",
            context={"entity": "feed_item", "entity_id": feed_item_id}
        )

    async def claim(self, feed_item_id: str) -> Result[Optional[FeedItem]]:
        """
        Move an item with ``should_fetch`` into PROCESSING.

        Returns the claimed item, or None if the item is not fetchable or
        another worker claimed it first.
        """
        try:
            for attempt in range(MAX_WRITE_ATTEMPTS):
                async with self.session_factory() as session:
                    record = await session.get(FeedItemRecord, feed_item_id)
                    if record is None:
                        return make_error_result(self._not_found(feed_item_id))
                    if not record.should_fetch:
                        logger.debug(f"Feed item {feed_item_id} not fetchable ({record.import_status.value}), skipping")
                        return make_success_result(None)

                    item = FeedItem.from_storage(record.to_dict())
                    now = self.clock.now()
                    processing = make_processing_import_state(item.import_state, now)

                    result = await session.execute(
                        update(FeedItemRecord)
                        .where(
                            FeedItemRecord.feed_item_id == feed_item_id,
                            FeedItemRecord.should_fetch.is_(True),
                            FeedItemRecord.revision == record.revision,
                        )
                        .values(
                            revision=FeedItemRecord.revision + 1,
                            last_updated_time=now,
                            **FeedItemRecord.import_state_values(processing),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        await session.commit()
                        logger.info(f"Claimed feed item {feed_item_id} for import")
                        return make_success_result(item.model_copy(update={
                            "import_state": processing,
                            "last_updated_time": now,
                        }))
                    await session.rollback()

                logger.debug(f"Claim of {feed_item_id} raced with another write (attempt {attempt + 1})")
        except SQLAlchemyError as e:
            return make_error_result(self._store_error("Failed to claim feed item", feed_item_id, e))

        return make_success_result(None)

    async def _finish(
        self,
        feed_item: FeedItem,
        new_state,
        event: Optional[EventLogItem] = None,
    ) -> Result[FeedItem]:
        now = self.clock.now()
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(FeedItemRecord)
                    .where(
                        FeedItemRecord.feed_item_id == feed_item.feed_item_id,
                        FeedItemRecord.import_status == FeedItemImportStatus.PROCESSING,
                    )
                    .values(
                        revision=FeedItemRecord.revision + 1,
                        last_updated_time=now,
                        **FeedItemRecord.import_state_values(new_state),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await session.rollback()
                    return make_error_result(ImportStateError(
                        f"Feed item {feed_item.feed_item_id} is no longer processing",
                        context={
                            "feed_item_id": feed_item.feed_item_id,
                            "expected_status": FeedItemImportStatus.PROCESSING.value,
                            "actual_status": "unknown",
                        }
                    ))
                if event is not None:
                    session.add(EventLogRecord.from_schema(event))
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(self._store_error("Failed to record import result", feed_item.feed_item_id, e))

        return make_success_result(feed_item.model_copy(update={
            "import_state": new_state,
            "last_updated_time": now,
        }))

    def _processing_state(self, feed_item: FeedItem) -> ProcessingImportState:
        if not isinstance(feed_item.import_state, ProcessingImportState):
            raise ImportStateError(
                f"Feed item {feed_item.feed_item_id} was not claimed",
                context={
                    "feed_item_id": feed_item.feed_item_id,
                    "expected_status": FeedItemImportStatus.PROCESSING.value,
                    "actual_status": feed_item.import_state.status,
                }
            )
        return feed_item.import_state

    async def mark_completed(
        self,
        feed_item: FeedItem,
        should_fetch: bool = False,
        event: Optional[EventLogItem] = None,
    ) -> Result[FeedItem]:
        """
        PROCESSING -> COMPLETED. ``should_fetch=True`` schedules a future
        refresh. ``event`` is written in the same transaction.
        """
        completed = make_completed_import_state(self._processing_state(feed_item), self.clock.now(), should_fetch)
        result = await self._finish(feed_item, completed, event)
        if result.success:
            logger.info(f"Feed item {feed_item.feed_item_id} imported")
        return result

    async def mark_failed(self, feed_item: FeedItem, error_message: str) -> Result[FeedItem]:
        """PROCESSING -> FAILED, keeping the item retryable."""
        failed = make_failed_import_state(self._processing_state(feed_item), self.clock.now(), error_message)
        result = await self._finish(feed_item, failed)
        if result.success:
            logger.warning(f"Feed item {feed_item.feed_item_id} import failed: {error_message}")
        return result

    async def request_reimport(self, feed_item_id: str) -> Result[FeedItem]:
        """
        Set ``should_fetch`` on a FAILED or COMPLETED item. A PROCESSING item
        is returned unchanged.
        """
        try:
            for attempt in range(MAX_WRITE_ATTEMPTS):
                async with self.session_factory() as session:
                    record = await session.get(FeedItemRecord, feed_item_id)
                    if record is None:
                        return make_error_result(self._not_found(feed_item_id))

                    item = FeedItem.from_storage(record.to_dict())
                    now = self.clock.now()
                    new_state = make_reimport_requested_state(item.import_state, now)
                    if new_state is item.import_state:
                        logger.info(f"Feed item {feed_item_id} is processing, reimport not needed")
                        return make_success_result(item)

                    result = await session.execute(
                        update(FeedItemRecord)
                        .where(
                            FeedItemRecord.feed_item_id == feed_item_id,
                            FeedItemRecord.revision == record.revision,
                        )
                        .values(
                            revision=FeedItemRecord.revision + 1,
                            last_updated_time=now,
                            **FeedItemRecord.import_state_values(new_state),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 1:
                        await session.commit()
                        logger.info(f"Reimport requested for feed item {feed_item_id}")
                        return make_success_result(item.model_copy(update={
                            "import_state": new_state,
                            "last_updated_time": now,
                        }))
                    await session.rollback()

                logger.debug(f"Reimport of {feed_item_id} raced with another write (attempt {attempt + 1})")
        except SQLAlchemyError as e:
            return make_error_result(self._store_error("Failed to request reimport", feed_item_id, e))

        return make_error_result(ImportStateError(
            f"Feed item {feed_item_id} kept changing, reimport not recorded",
            context={"feed_item_id": feed_item_id, "attempts": MAX_WRITE_ATTEMPTS}
        ))
