import logging
from typing import Any, Dict, Optional

from ingestion.http_fetcher import HttpFetcher
from ingestion.importers.base import FeedItemImporter, ImportOutcome, UpdateFeedItemFn, WriteFileToStorageFn
from ingestion.transformers.html import (
    extract_main_content,
    extract_meta_description,
    extract_outgoing_links,
    html_to_markdown,
    sanitize_html,
)
from ingestion.transformers.summarizer import HierarchicalSummarizer
from models.base import FeedItemType
from schemas.feed_items import FeedItem
from services.storage import LLM_CONTEXT_FILENAME, RAW_HTML_FILENAME

logger = logging.getLogger(__name__)


class WebsiteFeedItemImporter(FeedItemImporter):
    """
    Articles, websites and tweets.

    Stores the raw page as ``raw.html`` and the readable Markdown as
    ``llmContext.md``, then writes title, description, outgoing links and
    (when a summarizer is configured) a summary onto the item. Websites are
    left fetchable so the refresh scan picks them up again; articles and
    tweets do not change once saved.
    """

    def __init__(
        self,
        update_feed_item: UpdateFeedItemFn,
        write_file_to_storage: WriteFileToStorageFn,
        fetcher: HttpFetcher,
        summarizer: Optional[HierarchicalSummarizer] = None,
    ):
        super().__init__(update_feed_item, write_file_to_storage, fetcher)
        self.summarizer = summarizer

    async def import_item(self, feed_item: FeedItem) -> ImportOutcome:
        page = await self.fetcher.fetch(feed_item.url, headers={"Accept": "text/html"})

        await self.store_file(feed_item, RAW_HTML_FILENAME, page.text, "text/html")

        sanitized = sanitize_html(page.text)
        content = extract_main_content(sanitized)
        markdown = html_to_markdown(content.html)

        await self.store_file(feed_item, LLM_CONTEXT_FILENAME, markdown, "text/markdown")

        updates: Dict[str, Any] = {"outgoing_links": extract_outgoing_links(sanitized, page.url)}
        if content.title:
            updates["title"] = content.title
        description = extract_meta_description(sanitized)
        if description:
            updates["description"] = description

        if self.summarizer is not None and markdown:
            updates["summary"] = await self.summarizer.summarize(markdown)

        await self.update_feed_item(feed_item.feed_item_id, updates)
        logger.debug(f"Imported website {feed_item.url} ({len(markdown)} characters of Markdown)")
        return ImportOutcome(should_refresh=feed_item.feed_item_type == FeedItemType.WEBSITE)
