"""
Feed items service.

Creates feed items (always together with their import queue entry), reads
them, and exposes the two narrow collaborators importers write through:
``update_feed_item`` and ``write_file_to_storage``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Union

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.clock import Clock
from core.database import dialect_insert
from core.exceptions import NotFoundError, StoreError
from core.results import Result, make_error_result, make_success_result
from models.base import ImportQueueItemStatus
from models.feed_items import FeedItemRecord
from models.import_queue import ImportQueueRecord
from schemas.base import make_uuid
from schemas.feed_items import UPDATABLE_FEED_ITEM_FIELDS, FeedItem, FeedItemDraft, XkcdComicDetails
from schemas.import_queue import ImportQueueItem
from schemas.import_states import make_new_import_state
from services.storage import ObjectStorage, get_feed_item_storage_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreatedFeedItem:
    feed_item: FeedItem
    # False when the draft's dedupe key already existed
    created: bool


class FeedItemsService:
    def __init__(self, session_factory: async_sessionmaker, storage: ObjectStorage, clock: Clock):
        self.session_factory = session_factory
        self.storage = storage
        self.clock = clock

    def make_feed_item(self, account_id: str, draft: FeedItemDraft) -> FeedItem:
        now = self.clock.now()
        return FeedItem(
            feed_item_id=make_uuid(),
            account_id=account_id,
            feed_item_type=draft.feed_item_type,
            feed_source=draft.feed_source,
            url=draft.url,
            title=draft.title,
            description=draft.description,
            external_item_id=draft.external_item_id,
            import_state=make_new_import_state(now),
            created_time=now,
            last_updated_time=now,
        )

    def make_import_queue_item(self, feed_item: FeedItem) -> ImportQueueItem:
        now = self.clock.now()
        return ImportQueueItem(
            import_queue_item_id=make_uuid(),
            feed_item_id=feed_item.feed_item_id,
            account_id=feed_item.account_id,
            url=feed_item.url,
            status=ImportQueueItemStatus.NEW,
            created_time=now,
            last_updated_time=now,
        )

    async def _insert_feed_item(self, session: AsyncSession, feed_item: FeedItem, dedupe_key) -> bool:
        """Insert unless the dedupe key exists. Returns whether a row was written."""
        values = FeedItemRecord.values_from_schema(feed_item, dedupe_key=dedupe_key)
        if dedupe_key is None:
            session.add(FeedItemRecord(**values))
            await session.flush()
            return True

        stmt = (
            dialect_insert(session, FeedItemRecord)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["dedupe_key"])
            .returning(FeedItemRecord.feed_item_id)
        )
        inserted_id = (await session.execute(stmt)).scalar_one_or_none()
        return inserted_id is not None

    async def create_feed_item(self, account_id: str, draft: FeedItemDraft) -> Result[CreatedFeedItem]:
        """
        Create a NEW feed item plus its import queue entry in one transaction.

        Idempotent on ``draft.dedupe_key``: a second call returns the existing
        item with ``created=False`` and enqueues nothing.
        """
        feed_item = self.make_feed_item(account_id, draft)
        try:
            async with self.session_factory() as session:
                created = await self._insert_feed_item(session, feed_item, draft.dedupe_key)
                if created:
                    session.add(ImportQueueRecord.from_schema(self.make_import_queue_item(feed_item)))
                    await session.commit()
                else:
                    await session.rollback()
                    existing = (await session.execute(
                        select(FeedItemRecord).where(FeedItemRecord.dedupe_key == draft.dedupe_key)
                    )).scalar_one()
                    feed_item = FeedItem.from_storage(existing.to_dict())
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to create feed item",
                context={
                    "operation": "insert",
                    "table_name": "feed_items",
                    "account_id": account_id,
                    "url": draft.url,
                },
                original_exception=e
            ))

        if created:
            logger.info(f"Created feed item {feed_item.feed_item_id} for account {account_id}")
        else:
            logger.debug(f"Feed item for {draft.dedupe_key} already exists, skipping")
        return make_success_result(CreatedFeedItem(feed_item=feed_item, created=created))

    async def create_feed_items(self, account_id: str, drafts: List[FeedItemDraft]) -> Dict[str, int]:
        """Create many feed items one by one. Returns created/skipped/failed counts."""
        stats = {"created": 0, "skipped": 0, "failed": 0}
        for draft in drafts:
            result = await self.create_feed_item(account_id, draft)
            if not result.success:
                logger.error(f"Failed to create feed item for {draft.url}: {result.error}")
                stats["failed"] += 1
            elif result.value.created:
                stats["created"] += 1
            else:
                stats["skipped"] += 1
        return stats

    async def get_feed_item(self, feed_item_id: str) -> Result[FeedItem]:
        try:
            async with self.session_factory() as session:
                record = await session.get(FeedItemRecord, feed_item_id)
        except SQLAlchemyError as e:
            return make_error_result(StoreError(
                "Failed to fetch feed item",
                context={"operation": "query", "table_name": "feed_items", "feed_item_id": feed_item_id},
                original_exception=e
            ))

        if record is None:
            return make_error_result(NotFoundError(
                f"Feed item {feed_item_id} not found",
                context={"entity": "feed_item", "entity_id": feed_item_id}
            ))
        return make_success_result(FeedItem.from_storage(record.to_dict()))

    async def update_feed_item(self, feed_item_id: str, updates: Dict[str, Any]) -> None:
        """
        Write importer output onto a feed item.

        Raises:
            ValueError: If ``updates`` names a field importers may not write
            NotFoundError: If the feed item no longer exists
            StoreError: If the write fails
        """
        unknown = set(updates) - UPDATABLE_FEED_ITEM_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable by importers: {sorted(unknown)}")

        values = dict(updates)
        if isinstance(values.get("xkcd"), XkcdComicDetails):
            values["xkcd"] = values["xkcd"].to_storage()
        if "outgoing_links" in values:
            values["outgoing_links"] = list(values["outgoing_links"])
        values["last_updated_time"] = self.clock.now()
        values["revision"] = FeedItemRecord.revision + 1

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(FeedItemRecord)
                    .where(FeedItemRecord.feed_item_id == feed_item_id)
                    .values(**values)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(
                "Failed to update feed item",
                context={"operation": "update", "table_name": "feed_items", "feed_item_id": feed_item_id},
                original_exception=e
            )

        if result.rowcount == 0:
            raise NotFoundError(
                f"Feed item {feed_item_id} not found",
                context={"entity": "feed_item", "entity_id": feed_item_id}
            )

    async def write_file_to_storage(self, path: str, content: Union[str, bytes], content_type: str) -> None:
        await self.storage.write_file(path, content, content_type)

    def get_storage_path(self, feed_item: FeedItem, filename: str) -> str:
        return get_feed_item_storage_path(feed_item.account_id, feed_item.feed_item_id, filename)
