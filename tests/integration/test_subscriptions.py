"""
Integration tests for the subscription lifecycle and push registration
"""

import asyncio
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import OTHER_ACCOUNT_ID, TEST_ACCOUNT_ID, TEST_FEED_URL
from core.exceptions import NotFoundError, PushProviderError, StoreError, ValidationError
from models.push_registrations import PushRegistrationRecord

CHANNEL_URL = "https://www.youtube.com/channel/UCabcdefghijklmnopqrstuv"


async def event_types(container, account_id=TEST_ACCOUNT_ID):
    events = (await container.event_log.list_for_account(account_id)).value
    return [e.event_type for e in events]


async def registration(container, url=TEST_FEED_URL):
    async with container.session_factory() as session:
        return (await session.execute(
            select(PushRegistrationRecord).where(PushRegistrationRecord.url == url)
        )).scalar_one_or_none()


class TestSubscribe:

    @pytest.mark.asyncio
    async def test_subscribe_registers_feed_and_logs_event(self, container, push_provider):
        result = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert result.success
        outcome = result.value
        assert outcome.feed_source.feed_source_type == "RSS"
        assert outcome.feed_source.user_feed_subscription_id == outcome.user_feed_subscription_id
        assert outcome.subscription.is_active
        assert outcome.subscription.delivery_schedule.type == "IMMEDIATE"
        assert outcome.is_resubscribe is False

        assert push_provider.subscribed == [TEST_FEED_URL]
        assert (await registration(container)).is_registered
        assert await event_types(container) == ["SUBSCRIBED_TO_FEED_SOURCE"]

    @pytest.mark.asyncio
    async def test_second_account_reuses_registration(self, container, push_provider):
        first = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        second = await container.subscriptions.subscribe_account_to_url(OTHER_ACCOUNT_ID, TEST_FEED_URL)

        assert first.success and second.success
        assert first.value.user_feed_subscription_id != second.value.user_feed_subscription_id
        assert push_provider.subscribed == [TEST_FEED_URL]

        active = (await container.subscriptions.list_active_rss_subscriptions_for_url(TEST_FEED_URL)).value
        assert {s.account_id for s in active} == {TEST_ACCOUNT_ID, OTHER_ACCOUNT_ID}

    @pytest.mark.asyncio
    async def test_subscribe_twice_is_a_no_op(self, container, push_provider):
        first = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        second = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert second.value.user_feed_subscription_id == first.value.user_feed_subscription_id
        assert push_provider.subscribed == [TEST_FEED_URL]
        assert await event_types(container) == ["SUBSCRIBED_TO_FEED_SOURCE"]

    @pytest.mark.asyncio
    async def test_resubscribe_reactivates_same_subscription(self, container, push_provider, clock):
        first = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        clock.advance(hours=1)
        await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        clock.advance(days=1)

        again = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert again.value.user_feed_subscription_id == first.value.user_feed_subscription_id
        assert again.value.is_resubscribe is True
        assert again.value.subscription.unsubscribed_time is None
        # Deregistered on unsubscribe, registered again now
        assert push_provider.subscribed == [TEST_FEED_URL, TEST_FEED_URL]
        assert await event_types(container) == [
            "SUBSCRIBED_TO_FEED_SOURCE",
            "UNSUBSCRIBED_FROM_FEED_SOURCE",
            "SUBSCRIBED_TO_FEED_SOURCE",
        ]
        events = (await container.event_log.list_for_account(TEST_ACCOUNT_ID)).value
        assert events[-1].data.is_resubscribe is True

    @pytest.mark.asyncio
    async def test_provider_rejection_writes_nothing(self, container, push_provider):
        push_provider.fail_subscribe = True

        result = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert not result.success
        assert isinstance(result.error, PushProviderError)
        assert result.error.message.startswith("Failed to register feed with push provider")
        assert (await container.subscriptions.list_for_account(TEST_ACCOUNT_ID)).value == []
        assert await registration(container) is None
        assert await event_types(container) == []

    @pytest.mark.asyncio
    async def test_concurrent_subscribes_register_once(self, container, push_provider):
        results = await asyncio.gather(
            container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL),
            container.subscriptions.subscribe_account_to_url(OTHER_ACCOUNT_ID, TEST_FEED_URL),
            container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL),
        )

        assert all(r.success for r in results)
        assert push_provider.subscribed == [TEST_FEED_URL]
        assert len((await container.subscriptions.list_active_rss_subscriptions_for_url(TEST_FEED_URL)).value) == 2

    @pytest.mark.asyncio
    async def test_youtube_channel(self, container, push_provider):
        result = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, CHANNEL_URL)

        assert result.success
        assert result.value.subscription.feed_source_type == "YOUTUBE_CHANNEL"
        assert result.value.subscription.channel_id == "UCabcdefghijklmnopqrstuv"
        assert push_provider.subscribed == []

    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://www.youtube.com/@somebody",
    ])
    @pytest.mark.asyncio
    async def test_youtube_non_channel_url_rejected(self, container, url):
        result = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, url)

        assert isinstance(result.error, ValidationError)

    @pytest.mark.parametrize("account_id,url", [
        ("", TEST_FEED_URL),
        (TEST_ACCOUNT_ID, "not a url"),
        (TEST_ACCOUNT_ID, "ftp://example.com/feed.xml"),
    ])
    @pytest.mark.asyncio
    async def test_invalid_input(self, container, push_provider, account_id, url):
        result = await container.subscriptions.subscribe_account_to_url(account_id, url)

        assert isinstance(result.error, ValidationError)
        assert push_provider.subscribed == []

    @pytest.mark.asyncio
    async def test_interval_subscription(self, container):
        result = await container.subscriptions.subscribe_account_to_interval(TEST_ACCOUNT_ID, 3600)

        assert result.success
        assert result.value.feed_source.feed_source_type == "INTERVAL"
        assert result.value.feed_source.interval_seconds == 3600
        active = (await container.subscriptions.list_active_interval_subscriptions()).value
        assert [s.interval_seconds for s in active] == [3600]

    @pytest.mark.parametrize("interval_seconds", [0, -60, 1.5, "3600", True, None])
    @pytest.mark.asyncio
    async def test_interval_must_be_positive_int(self, container, interval_seconds):
        result = await container.subscriptions.subscribe_account_to_interval(TEST_ACCOUNT_ID, interval_seconds)

        assert isinstance(result.error, ValidationError)


class TestUnsubscribe:

    @pytest.mark.asyncio
    async def test_last_subscriber_deregisters(self, container, push_provider):
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        await container.subscriptions.subscribe_account_to_url(OTHER_ACCOUNT_ID, TEST_FEED_URL)

        await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        assert push_provider.unsubscribed == []
        assert (await registration(container)).is_registered

        await container.subscriptions.unsubscribe_account_from_url(OTHER_ACCOUNT_ID, TEST_FEED_URL)
        assert push_provider.unsubscribed == [TEST_FEED_URL]
        assert not (await registration(container)).is_registered
        assert (await container.subscriptions.list_active_rss_subscriptions_for_url(TEST_FEED_URL)).value == []

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_logs_once(self, container, push_provider, clock):
        subscribed = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        clock.advance(hours=1)

        first = await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        second = await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert first.success and second.success
        assert push_provider.unsubscribed == [TEST_FEED_URL]
        assert await event_types(container) == ["SUBSCRIBED_TO_FEED_SOURCE", "UNSUBSCRIBED_FROM_FEED_SOURCE"]

        stored = (await container.subscriptions.get_subscription(subscribed.value.user_feed_subscription_id)).value
        assert stored.is_active is False
        assert stored.unsubscribed_time == clock.now()

    @pytest.mark.asyncio
    async def test_unsubscribe_never_subscribed(self, container):
        result = await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_provider_rejection_keeps_subscription(self, container, push_provider):
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        push_provider.fail_unsubscribe = True

        result = await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert isinstance(result.error, PushProviderError)
        active = (await container.subscriptions.list_for_account(TEST_ACCOUNT_ID, active_only=True)).value
        assert len(active) == 1
        assert (await registration(container)).is_registered is True
        assert await event_types(container) == ["SUBSCRIBED_TO_FEED_SOURCE"]

    @pytest.mark.asyncio
    async def test_failed_write_after_deregistration_keeps_provider_in_step(self, container, push_provider):
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with patch.object(AsyncSession, "commit", side_effect=failure):
            result = await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert isinstance(result.error, StoreError)
        active = (await container.subscriptions.list_for_account(TEST_ACCOUNT_ID, active_only=True)).value
        assert len(active) == 1
        assert (await registration(container)).is_registered is True
        assert await event_types(container) == ["SUBSCRIBED_TO_FEED_SOURCE"]
        # The feed was deregistered, then registered again
        assert push_provider.unsubscribed == [TEST_FEED_URL]
        assert push_provider.subscribed == [TEST_FEED_URL, TEST_FEED_URL]

    @pytest.mark.asyncio
    async def test_failed_write_before_deregistration_leaves_provider_alone(self, container, push_provider):
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        failure = OperationalError("UPDATE", {}, Exception("database is locked"))
        real_execute = AsyncSession.execute

        async def failing_update(session, statement, *args, **kwargs):
            if getattr(statement, "is_update", False):
                raise failure
            return await real_execute(session, statement, *args, **kwargs)

        with patch.object(AsyncSession, "execute", failing_update):
            result = await container.subscriptions.unsubscribe_account_from_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        assert isinstance(result.error, StoreError)
        assert push_provider.unsubscribed == []
        active = (await container.subscriptions.list_for_account(TEST_ACCOUNT_ID, active_only=True)).value
        assert len(active) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_interval_by_id(self, container):
        subscribed = await container.subscriptions.subscribe_account_to_interval(TEST_ACCOUNT_ID, 86400)

        result = await container.subscriptions.unsubscribe_subscription(
            TEST_ACCOUNT_ID, subscribed.value.user_feed_subscription_id
        )

        assert result.success
        assert (await container.subscriptions.list_active_interval_subscriptions()).value == []

    @pytest.mark.asyncio
    async def test_unsubscribe_other_accounts_subscription(self, container):
        subscribed = await container.subscriptions.subscribe_account_to_interval(OTHER_ACCOUNT_ID, 86400)

        result = await container.subscriptions.unsubscribe_subscription(
            TEST_ACCOUNT_ID, subscribed.value.user_feed_subscription_id
        )

        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_unsubscribe_from_url_keeps_registration_with_subscribers(self, container, push_provider):
        await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        result = await container.subscriptions.unsubscribe_from_url(TEST_FEED_URL)

        assert result.success
        assert push_provider.unsubscribed == []
        assert (await container.subscriptions.list_registered_urls()).value == [TEST_FEED_URL]


class TestDeliverySchedule:

    @pytest.mark.asyncio
    async def test_update_delivery_schedule(self, container):
        subscribed = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)
        subscription_id = subscribed.value.user_feed_subscription_id

        result = await container.subscriptions.update_delivery_schedule(
            TEST_ACCOUNT_ID,
            subscription_id,
            {"type": "DAYS_AND_TIMES_OF_WEEK", "days": ["MON"], "times": [{"hour": 8, "minute": 30}]},
        )

        assert result.success
        stored = (await container.subscriptions.get_subscription(subscription_id)).value
        assert stored.delivery_schedule.type == "DAYS_AND_TIMES_OF_WEEK"
        assert stored.delivery_schedule.times[0].hour == 8

    @pytest.mark.asyncio
    async def test_invalid_delivery_schedule(self, container):
        subscribed = await container.subscriptions.subscribe_account_to_url(TEST_ACCOUNT_ID, TEST_FEED_URL)

        result = await container.subscriptions.update_delivery_schedule(
            TEST_ACCOUNT_ID, subscribed.value.user_feed_subscription_id, {"type": "EVERY_N_HOURS", "hours": 0}
        )

        assert isinstance(result.error, ValidationError)
