"""
Import queue: pending import work.

Queue items are created with their feed item (see ``FeedItemsService``), by
a reimport request or by the refresh scan, claimed NEW -> PROCESSING by
exactly one worker, and deleted once the import has run. A queue item
whose processing fails is kept as FAILED for inspection.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.clock import Clock
from core.exceptions import NotFoundError, StoreError
from core.results import Result, make_error_result, make_success_result
from models.base import FeedItemImportStatus, ImportQueueItemStatus
from models.feed_items import FeedItemRecord
from models.import_queue import ImportQueueRecord
from schemas.base import make_uuid
from schemas.feed_items import FeedItem
from schemas.import_queue import ImportQueueItem

logger = logging.getLogger(__name__)


class ImportQueue:
    def __init__(self, session_factory: async_sessionmaker, clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    def _store_error(self, message: str, operation: str, e: Exception, **context) -> StoreError:
        return StoreError(
            message,
            context={"operation": operation, "table_name": "import_queue", **context},
            original_exception=e
        )

    async def enqueue(self, feed_item: FeedItem) -> Result[ImportQueueItem]:
        now = self.clock.now()
        item = ImportQueueItem(
            import_queue_item_id=make_uuid(),
            feed_item_id=feed_item.feed_item_id,
            account_id=feed_item.account_id,
            url=feed_item.url,
            status=ImportQueueItemStatus.NEW,
            created_time=now,
            last_updated_time=now,
        )
        try:
            async with self.session_factory() as session:
                session.add(ImportQueueRecord.from_schema(item))
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(self._store_error(
                "Failed to enqueue import", "insert", e, feed_item_id=feed_item.feed_item_id
            ))
        logger.debug(f"Enqueued import of feed item {feed_item.feed_item_id}")
        return make_success_result(item)

    async def list_pending(self, limit: int) -> Result[List[ImportQueueItem]]:
        try:
            async with self.session_factory() as session:
                records = (await session.execute(
                    select(ImportQueueRecord)
                    .where(ImportQueueRecord.status == ImportQueueItemStatus.NEW)
                    .order_by(ImportQueueRecord.created_time)
                    .limit(limit)
                )).scalars().all()
        except SQLAlchemyError as e:
            return make_error_result(self._store_error("Failed to list import queue", "query", e))
        return make_success_result([ImportQueueItem.from_storage(r.to_dict()) for r in records])

    async def count_pending(self) -> Result[int]:
        try:
            async with self.session_factory() as session:
                count = (await session.execute(
                    select(func.count())
                    .select_from(ImportQueueRecord)
                    .where(ImportQueueRecord.status == ImportQueueItemStatus.NEW)
                )).scalar_one()
        except SQLAlchemyError as e:
            return make_error_result(self._store_error("Failed to count import queue", "query", e))
        return make_success_result(count)

    async def enqueue_due_refreshes(self, refresh_after: timedelta, limit: int) -> Result[int]:
        """
        Queue COMPLETED and FAILED feed items that still have ``should_fetch``
        set, were last written at least ``refresh_after`` ago and have no
        pending queue entry. Returns how many were queued.
        """
        now = self.clock.now()
        pending_feed_item_ids = select(ImportQueueRecord.feed_item_id).where(
            ImportQueueRecord.status.in_([ImportQueueItemStatus.NEW, ImportQueueItemStatus.PROCESSING])
        )
        stmt = (
            select(FeedItemRecord.feed_item_id, FeedItemRecord.account_id, FeedItemRecord.url)
            .where(
                FeedItemRecord.import_status.in_([FeedItemImportStatus.COMPLETED, FeedItemImportStatus.FAILED]),
                FeedItemRecord.should_fetch.is_(True),
                FeedItemRecord.last_updated_time <= now - refresh_after,
                FeedItemRecord.feed_item_id.not_in(pending_feed_item_ids),
            )
            .order_by(FeedItemRecord.last_updated_time)
            .limit(limit)
        )
        try:
            async with self.session_factory() as session:
                rows = (await session.execute(stmt)).all()
                for feed_item_id, account_id, url in rows:
                    session.add(ImportQueueRecord.from_schema(ImportQueueItem(
                        import_queue_item_id=make_uuid(),
                        feed_item_id=feed_item_id,
                        account_id=account_id,
                        url=url,
                        status=ImportQueueItemStatus.NEW,
                        created_time=now,
                        last_updated_time=now,
                    )))
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(self._store_error("Failed to enqueue refreshes", "insert", e))

        if rows:
            logger.info(f"Queued {len(rows)} feed items for refresh")
        return make_success_result(len(rows))

    async def _set_status(
        self,
        import_queue_item_id: str,
        from_status: Optional[ImportQueueItemStatus],
        to_status: ImportQueueItemStatus,
    ) -> int:
        stmt = update(ImportQueueRecord).where(ImportQueueRecord.import_queue_item_id == import_queue_item_id)
        if from_status is not None:
            stmt = stmt.where(ImportQueueRecord.status == from_status)
        async with self.session_factory() as session:
            result = await session.execute(
                stmt.values(status=to_status, last_updated_time=self.clock.now())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount

    async def claim(self, import_queue_item_id: str) -> Result[Optional[ImportQueueItem]]:
        """NEW -> PROCESSING. None if the item was already claimed."""
        try:
            async with self.session_factory() as session:
                record = await session.get(ImportQueueRecord, import_queue_item_id)
            if record is None:
                return make_error_result(NotFoundError(
                    f"Import queue item {import_queue_item_id} not found",
                    context={"entity": "import_queue_item", "entity_id": import_queue_item_id}
                ))
            claimed = await self._set_status(
                import_queue_item_id, ImportQueueItemStatus.NEW, ImportQueueItemStatus.PROCESSING
            )
        except SQLAlchemyError as e:
            return make_error_result(self._store_error(
                "Failed to claim import queue item", "update", e, import_queue_item_id=import_queue_item_id
            ))

        if claimed != 1:
            logger.debug(f"Import queue item {import_queue_item_id} already claimed")
            return make_success_result(None)

        item = ImportQueueItem.from_storage(record.to_dict())
        return make_success_result(item.model_copy(update={"status": ImportQueueItemStatus.PROCESSING}))

    async def mark_failed(self, import_queue_item_id: str) -> Result[None]:
        try:
            await self._set_status(import_queue_item_id, None, ImportQueueItemStatus.FAILED)
        except SQLAlchemyError as e:
            return make_error_result(self._store_error(
                "Failed to mark import queue item failed", "update", e, import_queue_item_id=import_queue_item_id
            ))
        return make_success_result()

    async def remove(self, import_queue_item_id: str) -> Result[None]:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    delete(ImportQueueRecord).where(ImportQueueRecord.import_queue_item_id == import_queue_item_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(self._store_error(
                "Failed to delete import queue item", "delete", e, import_queue_item_id=import_queue_item_id
            ))
        return make_success_result()
