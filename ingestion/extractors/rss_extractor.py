"""
RSS Feed Extractor

Polls RSS/Atom feeds for the local push provider and returns their entries
as ``FeedEntry`` objects, the same shape a push webhook delivers.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, List, Optional

import feedparser

from core.exceptions import ContentParseError
from ingestion.http_fetcher import HttpFetcher
from schemas.webhooks import FeedEntry

logger = logging.getLogger(__name__)


class RSSExtractor:
    """Extract entries from RSS feeds"""

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher

    async def fetch_entries(self, feed_url: str) -> List[FeedEntry]:
        """
        Fetch and parse one feed.

        Raises:
            ExternalProviderError: If the feed cannot be fetched
            ContentParseError: If the response is not a parseable feed
        """
        page = await self.fetcher.fetch(
            feed_url,
            headers={"Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"},
        )

        # Parse RSS in thread pool
        feed = await asyncio.to_thread(feedparser.parse, page.text)

        if feed.bozo and not feed.entries:
            raise ContentParseError(
                f"Failed to parse RSS feed: {feed.bozo_exception}",
                context={"content_type": page.content_type, "url": feed_url},
                original_exception=feed.bozo_exception if isinstance(feed.bozo_exception, Exception) else None
            )

        entries = []
        for entry in feed.entries:
            parsed = self._parse_entry(entry)
            if parsed is not None:
                entries.append(parsed)

        logger.debug(f"Fetched {len(entries)} entries from {feed_url}")
        return entries

    @staticmethod
    def _parse_entry(entry: Any) -> Optional[FeedEntry]:
        link = entry.get("link", "")
        external_id = entry.get("id") or link
        if not link or not external_id:
            return None

        published = None
        if entry.get("published_parsed"):
            published = datetime(*entry.published_parsed[:6])
        elif entry.get("updated_parsed"):
            published = datetime(*entry.updated_parsed[:6])

        return FeedEntry(
            external_id=external_id,
            url=link,
            title=entry.get("title", ""),
            summary=entry.get("summary") or None,
            author=entry.get("author") or None,
            published=published,
        )
