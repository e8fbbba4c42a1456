"""
Interval feeds: timer-driven subscriptions that emit a feed item on a fixed
cadence.

The emitter runs every few minutes. A subscription emits when the current
time (UTC, minutes since midnight) is within ``window_minutes`` of a
multiple of its interval. The start of that window is the item's external
id, so ticks that land in the same window create the item only once.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.clock import Clock
from core.results import Result, make_success_result, prefix_error_result
from ingestion.transformers.normalizer import FeedItemNormalizer
from schemas.user_feed_subscriptions import make_feed_source
from services.feed_items import FeedItemsService
from services.subscriptions import SubscriptionLifecycleManager

logger = logging.getLogger(__name__)


def get_emission_window_start(now: datetime, interval_seconds: int, window_minutes: int) -> Optional[datetime]:
    """Start of the current emission window, or None if ``now`` is outside one."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    minutes_since_midnight = now.hour * 60 + now.minute
    interval_minutes = interval_seconds / 60
    offset = minutes_since_midnight % interval_minutes
    if offset > window_minutes:
        return None
    return midnight + timedelta(minutes=minutes_since_midnight - offset)


class IntervalFeedEmitter:
    def __init__(
        self,
        subscriptions: SubscriptionLifecycleManager,
        feed_items: FeedItemsService,
        clock: Clock,
        feed_item_url: str,
        window_minutes: int = 5,
    ):
        self.subscriptions = subscriptions
        self.feed_items = feed_items
        self.clock = clock
        self.feed_item_url = feed_item_url
        self.window_minutes = window_minutes
        self.normalizer = FeedItemNormalizer()

    async def emit_due_items(self) -> Result[Dict[str, int]]:
        subscriptions_result = await self.subscriptions.list_active_interval_subscriptions()
        if not subscriptions_result.success:
            return prefix_error_result(subscriptions_result, "Error fetching interval feed subscriptions")

        now = self.clock.now()
        pending = []
        for subscription in subscriptions_result.value:
            window_start = get_emission_window_start(now, subscription.interval_seconds, self.window_minutes)
            if window_start is None:
                logger.debug(f"Interval subscription {subscription.user_feed_subscription_id} not due")
                continue
            draft = self.normalizer.draft_for_interval(
                make_feed_source(subscription), window_start, self.feed_item_url
            )
            pending.append(self.feed_items.create_feed_item(subscription.account_id, draft))

        results = await asyncio.gather(*pending)

        stats = {"total": len(results), "created": 0, "duplicates": 0, "failed": 0}
        for result in results:
            if not result.success:
                logger.error(f"Error creating interval feed item: {result.error}")
                stats["failed"] += 1
            elif result.value.created:
                stats["created"] += 1
            else:
                stats["duplicates"] += 1

        logger.info(
            f"Interval feeds: {stats['created']} created, {stats['duplicates']} duplicates, "
            f"{stats['failed']} failed"
        )
        return make_success_result(stats)
