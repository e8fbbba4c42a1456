from typing import Optional, assert_never

from ingestion.http_fetcher import HttpFetcher
from ingestion.importers.base import FeedItemImporter, ImportOutcome, UpdateFeedItemFn, WriteFileToStorageFn
from ingestion.importers.website import WebsiteFeedItemImporter
from ingestion.importers.xkcd import XkcdFeedItemImporter
from ingestion.importers.youtube import YouTubeFeedItemImporter
from ingestion.transformers.summarizer import HierarchicalSummarizer
from models.base import FeedItemType
from schemas.feed_items import FeedItem


class FeedItemImporterDispatcher:
    """Picks the importer for a feed item's type."""

    def __init__(
        self,
        update_feed_item: UpdateFeedItemFn,
        write_file_to_storage: WriteFileToStorageFn,
        fetcher: HttpFetcher,
        summarizer: Optional[HierarchicalSummarizer] = None,
    ):
        self.website = WebsiteFeedItemImporter(update_feed_item, write_file_to_storage, fetcher, summarizer)
        self.youtube = YouTubeFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)
        self.xkcd = XkcdFeedItemImporter(update_feed_item, write_file_to_storage, fetcher)

    def get_importer(self, feed_item_type: FeedItemType) -> FeedItemImporter:
        feed_item_type = FeedItemType(feed_item_type)
        if feed_item_type is FeedItemType.VIDEO:
            return self.youtube
        elif feed_item_type is FeedItemType.XKCD:
            return self.xkcd
        elif (
            feed_item_type is FeedItemType.ARTICLE
            or feed_item_type is FeedItemType.WEBSITE
            or feed_item_type is FeedItemType.TWEET
        ):
            return self.website
        else:
            assert_never(feed_item_type)

    async def import_item(self, feed_item: FeedItem) -> ImportOutcome:
        return await self.get_importer(feed_item.feed_item_type).import_item(feed_item)
