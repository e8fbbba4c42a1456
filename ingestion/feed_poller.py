"""
Local feed polling.

With the local push provider nothing pushes new entries to us, so every
registered feed URL is fetched on a schedule and its entries go through the
same ingestion path as a push webhook. Deduplication makes re-delivering old
entries harmless.
"""

import logging
from typing import Dict

from core.exceptions import FeedPipelineException
from ingestion.extractors.rss_extractor import RSSExtractor
from services.subscriptions import SubscriptionLifecycleManager
from services.webhooks import WebhookIngestionHandler

logger = logging.getLogger(__name__)


class LocalFeedPoller:
    def __init__(
        self,
        subscriptions: SubscriptionLifecycleManager,
        extractor: RSSExtractor,
        ingestion: WebhookIngestionHandler,
    ):
        self.subscriptions = subscriptions
        self.extractor = extractor
        self.ingestion = ingestion

    async def poll_registered_feeds(self) -> Dict[str, int]:
        stats = {"feeds_polled": 0, "feeds_failed": 0, "items_created": 0}

        urls_result = await self.subscriptions.list_registered_urls()
        if not urls_result.success:
            logger.error(f"Failed to list registered feeds: {urls_result.error}")
            return stats

        for url in urls_result.value:
            try:
                entries = await self.extractor.fetch_entries(url)
            except FeedPipelineException as e:
                logger.warning(f"Polling {url} failed: {e.message}", extra={"error_context": e.to_dict()})
                stats["feeds_failed"] += 1
                continue

            result = await self.ingestion.ingest_feed_entries(url, entries)
            if not result.success:
                logger.error(f"Ingesting entries from {url} failed: {result.error}")
                stats["feeds_failed"] += 1
                continue

            stats["feeds_polled"] += 1
            stats["items_created"] += result.value.created

        logger.info(
            f"Polled {stats['feeds_polled']} feeds ({stats['feeds_failed']} failed), "
            f"{stats['items_created']} new items"
        )
        return stats
