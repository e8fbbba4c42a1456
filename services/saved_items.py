"""
Manually saved items: URLs saved from the PWA or browser extension, bulk
imports of a Pocket export, and the actions a user takes on their items.
"""

import logging
from pathlib import Path
from typing import Dict, Union

from core.exceptions import FeedPipelineException, NotFoundError, ValidationError
from core.results import Result, make_error_result, make_success_result, prefix_error_result
from ingestion.extractors.pocket_extractor import PocketExportExtractor
from ingestion.transformers.normalizer import FeedItemNormalizer
from models.base import FeedItemActionType, FeedSourceType
from schemas.event_log import EventLogItem
from schemas.ids import parse_account_id, parse_feed_item_id, parse_url
from schemas.feed_sources import ExtensionFeedSource, PwaFeedSource
from services.event_log import EventLogService
from services.feed_items import CreatedFeedItem, FeedItemsService

logger = logging.getLogger(__name__)

MANUAL_SAVE_SOURCES = {
    FeedSourceType.PWA: PwaFeedSource,
    FeedSourceType.EXTENSION: ExtensionFeedSource,
}


class SavedItemsService:
    def __init__(self, feed_items: FeedItemsService, event_log: EventLogService):
        self.feed_items = feed_items
        self.event_log = event_log
        self.normalizer = FeedItemNormalizer()

    async def save_url_for_account(
        self,
        account_id: str,
        url: str,
        source: Union[str, FeedSourceType] = FeedSourceType.PWA,
    ) -> Result[CreatedFeedItem]:
        account_id_result = parse_account_id(account_id)
        if not account_id_result.success:
            return account_id_result
        url_result = parse_url(url)
        if not url_result.success:
            return url_result

        try:
            source_type = FeedSourceType(source)
        except ValueError:
            source_type = None
        if source_type not in MANUAL_SAVE_SOURCES:
            return make_error_result(ValidationError(
                f"Items can only be saved from {', '.join(t.value for t in MANUAL_SAVE_SOURCES)}",
                context={"field_name": "source", "field_value": str(source)}
            ))

        draft = self.normalizer.draft_from_saved_url(url_result.value, MANUAL_SAVE_SOURCES[source_type]())
        result = await self.feed_items.create_feed_item(account_id_result.value, draft)
        if not result.success:
            return prefix_error_result(result, "Error saving URL")
        return result

    async def import_pocket_export(self, account_id: str, file_path: Union[str, Path]) -> Result[Dict[str, int]]:
        """
        Create a POCKET_EXPORT feed item for every row of the export.
        Re-importing the same file creates nothing new.
        """
        account_id_result = parse_account_id(account_id)
        if not account_id_result.success:
            return account_id_result
        account_id = account_id_result.value

        try:
            rows = await PocketExportExtractor(file_path).fetch_rows()
        except FeedPipelineException as e:
            return make_error_result(e.with_prefix("Error reading Pocket export"))

        drafts = []
        invalid = 0
        for row in rows:
            draft = self.normalizer.draft_from_pocket_row(account_id, row.model_dump())
            if draft is None:
                invalid += 1
            else:
                drafts.append(draft)

        stats = await self.feed_items.create_feed_items(account_id, drafts)
        stats["invalid"] = invalid
        logger.info(
            f"Pocket import for {account_id}: {stats['created']} created, {stats['skipped']} skipped, "
            f"{stats['failed']} failed, {invalid} invalid"
        )
        return make_success_result(stats)

    async def record_feed_item_action(
        self,
        account_id: str,
        feed_item_id: str,
        action_type: Union[str, FeedItemActionType],
    ) -> Result[EventLogItem]:
        """
        Log an action a user took on one of their feed items. Items belonging
        to another account are reported as not found.
        """
        account_id_result = parse_account_id(account_id)
        if not account_id_result.success:
            return account_id_result
        feed_item_id_result = parse_feed_item_id(feed_item_id)
        if not feed_item_id_result.success:
            return feed_item_id_result
        try:
            action_type = FeedItemActionType(action_type)
        except ValueError:
            return make_error_result(ValidationError(
                f"Unknown feed item action {action_type!r}",
                context={"field_name": "action_type", "field_value": str(action_type)}
            ))

        account_id = account_id_result.value
        feed_item_id = feed_item_id_result.value
        feed_item_result = await self.feed_items.get_feed_item(feed_item_id)
        if not feed_item_result.success:
            return feed_item_result
        if feed_item_result.value.account_id != account_id:
            return make_error_result(NotFoundError(
                f"Feed item {feed_item_id} not found for account {account_id}",
                context={"entity": "feed_item", "entity_id": feed_item_id}
            ))

        result = await self.event_log.log_feed_item_action(account_id, feed_item_id, action_type)
        if result.success:
            logger.info(f"Account {account_id} did {action_type.value} on feed item {feed_item_id}")
        return result
