"""
Normalize inbound content into feed item drafts.

Every way content enters the system (push webhook, local feed polling,
interval timers, manual saves, Pocket exports) is mapped here onto the same
``FeedItemDraft`` shape, including the dedupe key that keeps creation
once-only.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from core.urls import get_feed_item_type_from_url
from models.base import FeedSourceType
from schemas.feed_items import FeedItemDraft
from schemas.feed_sources import (
    ExtensionFeedSource,
    FeedSource,
    IntervalFeedSource,
    PocketExportFeedSource,
    PwaFeedSource,
)
from schemas.webhooks import FeedEntry, SuperfeedrWebhookBody

logger = logging.getLogger(__name__)


def make_subscription_dedupe_key(user_feed_subscription_id: str, external_id: str) -> str:
    return f"{user_feed_subscription_id}:{external_id}"


def make_account_url_dedupe_key(account_id: str, feed_source_type: str, url: str) -> str:
    return f"{account_id}:{feed_source_type}:{url}"


class FeedItemNormalizer:
    """
    Map inbound content onto ``FeedItemDraft``.

    Handles:
    - Superfeedr webhook items
    - Feed entries from any provider
    - Manually saved URLs
    - Pocket export rows
    - Interval timer ticks
    """

    @staticmethod
    def entries_from_superfeedr(body: SuperfeedrWebhookBody) -> List[FeedEntry]:
        entries = []
        for item in body.items:
            author = item.actor.display_name if item.actor else None
            entries.append(FeedEntry(
                external_id=item.id,
                url=item.permalink_url,
                title=item.title or "",
                summary=item.summary or None,
                author=author,
                published=FeedItemNormalizer._parse_timestamp(item.published),
            ))
        return entries

    @staticmethod
    def draft_from_feed_entry(entry: FeedEntry, feed_source: FeedSource) -> FeedItemDraft:
        """Draft for an entry delivered by a subscription-backed source."""
        return FeedItemDraft(
            feed_source=feed_source,
            feed_item_type=get_feed_item_type_from_url(entry.url, FeedSourceType(feed_source.feed_source_type)),
            url=entry.url,
            title=entry.title,
            description=entry.summary,
            external_item_id=entry.external_id,
            dedupe_key=make_subscription_dedupe_key(feed_source.user_feed_subscription_id, entry.external_id),
        )

    @staticmethod
    def draft_from_saved_url(
        url: str,
        feed_source: Union[PwaFeedSource, ExtensionFeedSource],
    ) -> FeedItemDraft:
        # Manual saves are never deduplicated; saving twice is two items
        return FeedItemDraft(
            feed_source=feed_source,
            feed_item_type=get_feed_item_type_from_url(url, FeedSourceType(feed_source.feed_source_type)),
            url=url,
        )

    @staticmethod
    def draft_from_pocket_row(account_id: str, row: Dict[str, Any]) -> Optional[FeedItemDraft]:
        url = str(row.get("url") or "").strip()
        if not url.startswith(("http://", "https://")):
            logger.warning(f"Skipping Pocket row without an http(s) URL: {url!r}")
            return None

        title = str(row.get("title") or "").strip()
        # Pocket falls back to the URL when it had no title
        if title == url:
            title = ""

        return FeedItemDraft(
            feed_source=PocketExportFeedSource(),
            feed_item_type=get_feed_item_type_from_url(url, FeedSourceType.POCKET_EXPORT),
            url=url,
            title=title,
            dedupe_key=make_account_url_dedupe_key(account_id, FeedSourceType.POCKET_EXPORT.value, url),
        )

    @staticmethod
    def draft_for_interval(feed_source: IntervalFeedSource, window_start: datetime, url: str) -> FeedItemDraft:
        external_id = window_start.isoformat()
        return FeedItemDraft(
            feed_source=feed_source,
            feed_item_type=get_feed_item_type_from_url(url, FeedSourceType.INTERVAL),
            url=url,
            title=f"Interval feed item for {external_id}",
            external_item_id=external_id,
            dedupe_key=make_subscription_dedupe_key(feed_source.user_feed_subscription_id, external_id),
        )

    @staticmethod
    def _parse_timestamp(value: Any) -> Optional[datetime]:
        """Unix seconds to naive UTC"""
        if value is None or value == "":
            return None
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
        except (ValueError, TypeError, OverflowError, OSError):
            return None
