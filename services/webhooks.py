"""
Webhook handlers.

``handle_push_content`` receives new entries the push provider delivers for
a registered feed URL and fans them out to every account actively
subscribed to that URL. ``handle_subscription_state_changed`` reacts to a
subscription record changing and deregisters the feed when the record has
just gone inactive.

Both are safe to replay: feed items are deduplicated on
``{subscription id}:{external item id}`` and push registration is tracked
in ``push_registrations``.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, assert_never

from pydantic import TypeAdapter

from core.exceptions import ValidationError, WebhookSignatureError
from core.results import Result, make_error_result, make_success_result, prefix_error_result
from ingestion.transformers.normalizer import FeedItemNormalizer
from schemas.base import parse_with_adapter
from schemas.user_feed_subscriptions import (
    IntervalUserFeedSubscription,
    RssUserFeedSubscription,
    YouTubeChannelUserFeedSubscription,
    make_feed_source,
    parse_user_feed_subscription,
)
from schemas.webhooks import FeedEntry, SuperfeedrWebhookBody
from services.feed_items import FeedItemsService
from services.push_provider import SIGNATURE_HEADER, verify_webhook_signature
from services.subscriptions import SubscriptionLifecycleManager

logger = logging.getLogger(__name__)

_WEBHOOK_BODY_ADAPTER = TypeAdapter(SuperfeedrWebhookBody)


@dataclass
class IngestionSummary:
    feed_url: str
    subscriptions: int = 0
    entries: int = 0
    created: int = 0
    duplicates: int = 0
    failed: int = 0


class WebhookIngestionHandler:
    def __init__(
        self,
        subscriptions: SubscriptionLifecycleManager,
        feed_items: FeedItemsService,
        webhook_secret: Optional[str],
        concurrency: int = 10,
    ):
        self.subscriptions = subscriptions
        self.feed_items = feed_items
        self.webhook_secret = webhook_secret
        self.concurrency = concurrency
        self.normalizer = FeedItemNormalizer()

    async def handle_push_content(self, raw_body: bytes, signature: Optional[str]) -> Result[IngestionSummary]:
        """
        Verify, parse and ingest one push notification.

        The signature is checked against the raw body before anything is
        parsed.
        """
        if not verify_webhook_signature(self.webhook_secret or "", raw_body, signature):
            return make_error_result(WebhookSignatureError(
                "Webhook signature missing or invalid",
                context={"header": SIGNATURE_HEADER}
            ))

        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            return make_error_result(ValidationError(
                "Webhook body is not valid JSON",
                context={"field_name": "body"},
                original_exception=e
            ))

        body_result = parse_with_adapter(_WEBHOOK_BODY_ADAPTER, payload, "webhook body")
        if not body_result.success:
            return body_result
        body = body_result.value

        if body.status.code != 200:
            return make_error_result(ValidationError(
                f"Push notification reported feed status {body.status.code}",
                context={"field_name": "status.code", "field_value": body.status.code, "feed_url": body.status.feed}
            ))

        entries = self.normalizer.entries_from_superfeedr(body)
        return await self.ingest_feed_entries(body.status.feed, entries)

    async def ingest_feed_entries(self, feed_url: str, entries: List[FeedEntry]) -> Result[IngestionSummary]:
        """
        Create one NEW feed item per (active subscription, entry).

        Creation runs concurrently, at most ``concurrency`` at a time. If any
        item fails the whole delivery is reported as failed so it can be
        replayed; items already created are skipped on replay.
        """
        summary = IngestionSummary(feed_url=feed_url, entries=len(entries))

        subscriptions_result = await self.subscriptions.list_active_rss_subscriptions_for_url(feed_url)
        if not subscriptions_result.success:
            return subscriptions_result
        subscriptions = subscriptions_result.value
        summary.subscriptions = len(subscriptions)

        if not subscriptions:
            logger.warning(f"Received {len(entries)} entries for {feed_url} with no active subscriptions")
            return make_success_result(summary)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def create(subscription, entry):
            async with semaphore:
                draft = self.normalizer.draft_from_feed_entry(entry, make_feed_source(subscription))
                return await self.feed_items.create_feed_item(subscription.account_id, draft)

        results = await asyncio.gather(*[
            create(subscription, entry)
            for subscription in subscriptions
            for entry in entries
        ])

        first_error = None
        for result in results:
            if not result.success:
                summary.failed += 1
                first_error = first_error or result
            elif result.value.created:
                summary.created += 1
            else:
                summary.duplicates += 1

        logger.info(
            f"Ingested {feed_url}: {summary.created} created, {summary.duplicates} duplicates, "
            f"{summary.failed} failed across {summary.subscriptions} subscriptions"
        )

        if first_error is not None:
            return prefix_error_result(
                first_error, f"Failed to ingest {summary.failed} of {len(results)} feed items"
            )
        return make_success_result(summary)

    async def handle_subscription_state_changed(
        self,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
    ) -> Result[bool]:
        """
        React to a subscription record change.

        Only a fresh ``is_active`` true -> false transition does anything: the
        feed is deregistered from the push provider if nobody else still
        subscribes to it. Returns whether the transition was acted on.
        """
        if before is None or after is None:
            return make_error_result(ValidationError(
                "Subscription change is missing its before or after snapshot",
                context={"field_name": "before" if before is None else "after"}
            ))

        before_result = parse_user_feed_subscription(before)
        if not before_result.success:
            return prefix_error_result(before_result, "Error parsing subscription before change")
        after_result = parse_user_feed_subscription(after)
        if not after_result.success:
            return prefix_error_result(after_result, "Error parsing subscription after change")

        if not (before_result.value.is_active and not after_result.value.is_active):
            logger.debug(
                f"Ignoring change to subscription {after_result.value.user_feed_subscription_id}: "
                f"is_active {before_result.value.is_active} -> {after_result.value.is_active}"
            )
            return make_success_result(False)

        subscription = after_result.value
        if isinstance(subscription, RssUserFeedSubscription):
            result = await self.subscriptions.unsubscribe_from_url(subscription.url)
            if not result.success:
                return result
        elif isinstance(subscription, YouTubeChannelUserFeedSubscription):
            # No push registration exists for YouTube channels
            pass
        elif isinstance(subscription, IntervalUserFeedSubscription):
            pass
        else:
            assert_never(subscription)

        logger.info(f"Handled unsubscribe of {subscription.user_feed_subscription_id}")
        return make_success_result(True)
