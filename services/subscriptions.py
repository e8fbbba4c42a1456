"""
Subscription lifecycle manager.

Subscribes and unsubscribes accounts to feed sources and keeps push provider
registration in step with them. Registration is keyed by feed URL and
shared by every account subscribed to it:

- the first active subscription to a URL registers it with the provider
- the last subscription to go inactive deregisters it
- ``push_registrations`` records the current registration so repeated
  register/deregister requests are no-ops

All work on one external identity runs under a per-identity lock, so
concurrent subscribes to the same URL from different accounts cannot both
register it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.clock import Clock
from core.exceptions import NotFoundError, StoreError, ValidationError
from core.locks import KeyedLock
from core.results import Result, make_error_result, make_success_result, prefix_error_result
from core.urls import get_youtube_channel_id, is_youtube_handle_url, is_youtube_url
from models.base import FeedSourceType
from models.push_registrations import PushRegistrationRecord
from models.user_feed_subscriptions import UserFeedSubscriptionRecord
from schemas.base import make_uuid
from schemas.delivery_schedules import DEFAULT_DELIVERY_SCHEDULE, parse_delivery_schedule
from schemas.event_log import SubscribedToFeedSourceEventData, UnsubscribedFromFeedSourceEventData
from schemas.feed_sources import FeedSource
from schemas.ids import parse_account_id, parse_url, parse_user_feed_subscription_id
from schemas.user_feed_subscriptions import (
    IntervalUserFeedSubscription,
    RssUserFeedSubscription,
    UserFeedSubscription,
    YouTubeChannelUserFeedSubscription,
    get_identity_key,
    make_feed_source,
    make_interval_identity_key,
    make_rss_identity_key,
    make_youtube_channel_identity_key,
    user_feed_subscription_from_storage,
)
from services.event_log import EventLogService
from services.push_provider import PushProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscribeOutcome:
    feed_source: FeedSource
    user_feed_subscription_id: str
    subscription: UserFeedSubscription
    is_resubscribe: bool = False


def _store_error(message: str, operation: str, table_name: str, error: Exception, **context) -> StoreError:
    return StoreError(
        message,
        context={"operation": operation, "table_name": table_name, **context},
        original_exception=error
    )


class SubscriptionLifecycleManager:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        push_provider: PushProvider,
        event_log: EventLogService,
        clock: Clock,
        locks: Optional[KeyedLock] = None,
    ):
        self.session_factory = session_factory
        self.push_provider = push_provider
        self.event_log = event_log
        self.clock = clock
        self.locks = locks or KeyedLock()

    # ========================================================================
    # Queries
    # ========================================================================

    async def _query_subscriptions(self, stmt, description: str) -> Result[List[UserFeedSubscription]]:
        try:
            async with self.session_factory() as session:
                records = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            return make_error_result(_store_error(
                f"Failed to {description}", "query", "user_feed_subscriptions", e
            ))
        return make_success_result([user_feed_subscription_from_storage(r.to_dict()) for r in records])

    async def get_subscription(self, user_feed_subscription_id: str) -> Result[UserFeedSubscription]:
        id_result = parse_user_feed_subscription_id(user_feed_subscription_id)
        if not id_result.success:
            return id_result

        result = await self._query_subscriptions(
            select(UserFeedSubscriptionRecord)
            .where(UserFeedSubscriptionRecord.user_feed_subscription_id == id_result.value),
            "fetch user feed subscription",
        )
        if not result.success:
            return result
        if not result.value:
            return make_error_result(NotFoundError(
                f"User feed subscription {id_result.value} not found",
                context={"entity": "user_feed_subscription", "entity_id": id_result.value}
            ))
        return make_success_result(result.value[0])

    async def list_for_account(self, account_id: str, active_only: bool = False) -> Result[List[UserFeedSubscription]]:
        stmt = select(UserFeedSubscriptionRecord).where(UserFeedSubscriptionRecord.account_id == account_id)
        if active_only:
            stmt = stmt.where(UserFeedSubscriptionRecord.is_active.is_(True))
        return await self._query_subscriptions(
            stmt.order_by(UserFeedSubscriptionRecord.created_time), "list subscriptions for account"
        )

    async def list_active_rss_subscriptions_for_url(self, url: str) -> Result[List[RssUserFeedSubscription]]:
        return await self._query_subscriptions(
            select(UserFeedSubscriptionRecord).where(
                UserFeedSubscriptionRecord.identity_key == make_rss_identity_key(url),
                UserFeedSubscriptionRecord.is_active.is_(True),
            ),
            "list subscriptions for feed URL",
        )

    async def list_active_interval_subscriptions(self) -> Result[List[IntervalUserFeedSubscription]]:
        return await self._query_subscriptions(
            select(UserFeedSubscriptionRecord).where(
                UserFeedSubscriptionRecord.feed_source_type == FeedSourceType.INTERVAL,
                UserFeedSubscriptionRecord.is_active.is_(True),
            ),
            "list interval subscriptions",
        )

    async def list_registered_urls(self) -> Result[List[str]]:
        try:
            async with self.session_factory() as session:
                urls = (await session.execute(
                    select(PushRegistrationRecord.url).where(PushRegistrationRecord.is_registered.is_(True))
                )).scalars().all()
        except SQLAlchemyError as e:
            return make_error_result(_store_error("Failed to list push registrations", "query", "push_registrations", e))
        return make_success_result(list(urls))

    async def _find_by_identity(self, account_id: str, identity_key: str) -> Result[Optional[UserFeedSubscription]]:
        result = await self._query_subscriptions(
            select(UserFeedSubscriptionRecord).where(
                UserFeedSubscriptionRecord.account_id == account_id,
                UserFeedSubscriptionRecord.identity_key == identity_key,
            ),
            "look up subscription",
        )
        if not result.success:
            return result
        return make_success_result(result.value[0] if result.value else None)

    # ========================================================================
    # Push provider registration (callers hold the identity lock)
    # ========================================================================

    async def _ensure_registered(self, url: str) -> Result[None]:
        try:
            async with self.session_factory() as session:
                record = await session.get(PushRegistrationRecord, url)
        except SQLAlchemyError as e:
            return make_error_result(_store_error("Failed to read push registration", "query", "push_registrations", e, url=url))

        if record is not None and record.is_registered:
            logger.debug(f"{url} already registered with {self.push_provider.name}")
            return make_success_result()

        result = await self.push_provider.subscribe(url)
        if not result.success:
            return result

        now = self.clock.now()
        try:
            async with self.session_factory() as session:
                record = await session.get(PushRegistrationRecord, url)
                if record is None:
                    record = PushRegistrationRecord(url=url, provider=self.push_provider.name)
                    session.add(record)
                record.provider = self.push_provider.name
                record.is_registered = True
                record.registered_time = now
                record.last_updated_time = now
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(_store_error("Failed to record push registration", "update", "push_registrations", e, url=url))

        return make_success_result()

    async def _is_unused_registration(self, session: AsyncSession, url: str) -> bool:
        remaining = (await session.execute(
            select(func.count()).select_from(UserFeedSubscriptionRecord).where(
                UserFeedSubscriptionRecord.identity_key == make_rss_identity_key(url),
                UserFeedSubscriptionRecord.is_active.is_(True),
            )
        )).scalar_one()
        if remaining > 0:
            logger.info(f"Keeping push registration for {url}: {remaining} active subscriptions remain")
            return False

        record = await session.get(PushRegistrationRecord, url)
        if record is None or not record.is_registered:
            logger.debug(f"{url} is not registered with the push provider, nothing to deregister")
            return False
        return True

    async def _restore_registration(self, url: str) -> None:
        restored = await self.push_provider.subscribe(url)
        if restored.success:
            logger.warning(f"Re-registered {url} with {self.push_provider.name} after a failed write")
        else:
            logger.error(f"Could not re-register {url} with {self.push_provider.name}: {restored.error}")

    async def _commit_with_deregistration(self, session: AsyncSession, url: Optional[str]) -> Result[None]:
        """
        Commit ``session``, first deregistering ``url`` from the push provider
        when the session leaves it without active subscribers.

        A provider failure rolls the session back. If the store fails after
        the provider accepted, the URL is registered again so provider and
        store agree. Store errors are raised.
        """
        if url is None or not await self._is_unused_registration(session, url):
            await session.commit()
            return make_success_result()

        result = await self.push_provider.unsubscribe(url)
        if not result.success:
            await session.rollback()
            return result

        now = self.clock.now()
        try:
            await session.execute(
                update(PushRegistrationRecord)
                .where(PushRegistrationRecord.url == url)
                .values(is_registered=False, deregistered_time=now, last_updated_time=now)
            )
            await session.commit()
        except SQLAlchemyError:
            await self._restore_registration(url)
            raise

        logger.info(f"Deregistered {url} from {self.push_provider.name}")
        return make_success_result()

    async def _deregister_if_unused(self, url: str) -> Result[None]:
        try:
            async with self.session_factory() as session:
                return await self._commit_with_deregistration(session, url)
        except SQLAlchemyError as e:
            return make_error_result(_store_error("Failed to record push deregistration", "update", "push_registrations", e, url=url))

    # ========================================================================
    # Subscribe
    # ========================================================================

    async def subscribe_account_to_url(self, account_id: str, url: str) -> Result[SubscribeOutcome]:
        """
        Subscribe an account to a feed URL.

        YouTube channel URLs become YouTube channel subscriptions; any other
        http(s) URL is an RSS feed and is registered with the push provider
        before the subscription is written.
        """
        account_id_result = parse_account_id(account_id)
        if not account_id_result.success:
            return account_id_result
        url_result = parse_url(url)
        if not url_result.success:
            return url_result

        account_id = account_id_result.value
        url = url_result.value

        if is_youtube_url(url):
            channel_id = get_youtube_channel_id(url)
            if channel_id is None and is_youtube_handle_url(url):
                return make_error_result(ValidationError(
                    "YouTube handle URLs cannot be resolved to a channel; use the /channel/<id> URL",
                    context={"field_name": "url", "field_value": url}
                ))
            if channel_id is None:
                return make_error_result(ValidationError(
                    "Only YouTube channel URLs of the form /channel/<id> can be subscribed to",
                    context={"field_name": "url", "field_value": url}
                ))

            def build_youtube(subscription_id, now):
                return YouTubeChannelUserFeedSubscription(
                    user_feed_subscription_id=subscription_id,
                    account_id=account_id,
                    channel_id=channel_id,
                    is_active=True,
                    delivery_schedule=DEFAULT_DELIVERY_SCHEDULE,
                    created_time=now,
                    last_updated_time=now,
                )

            return await self._subscribe(
                account_id, make_youtube_channel_identity_key(channel_id), build_youtube, push_url=None
            )

        def build_rss(subscription_id, now):
            return RssUserFeedSubscription(
                user_feed_subscription_id=subscription_id,
                account_id=account_id,
                url=url,
                is_active=True,
                delivery_schedule=DEFAULT_DELIVERY_SCHEDULE,
                created_time=now,
                last_updated_time=now,
            )

        return await self._subscribe(account_id, make_rss_identity_key(url), build_rss, push_url=url)

    async def subscribe_account_to_interval(self, account_id: str, interval_seconds: Any) -> Result[SubscribeOutcome]:
        account_id_result = parse_account_id(account_id)
        if not account_id_result.success:
            return account_id_result
        if not isinstance(interval_seconds, int) or isinstance(interval_seconds, bool) or interval_seconds < 1:
            return make_error_result(ValidationError(
                "Interval must be a whole number of seconds, at least 1",
                context={"field_name": "interval_seconds", "field_value": repr(interval_seconds)}
            ))

        account_id = account_id_result.value

        def build_interval(subscription_id, now):
            return IntervalUserFeedSubscription(
                user_feed_subscription_id=subscription_id,
                account_id=account_id,
                interval_seconds=interval_seconds,
                is_active=True,
                delivery_schedule=DEFAULT_DELIVERY_SCHEDULE,
                created_time=now,
                last_updated_time=now,
            )

        return await self._subscribe(
            account_id, make_interval_identity_key(interval_seconds), build_interval, push_url=None
        )

    async def _subscribe(
        self,
        account_id: str,
        identity_key: str,
        build_subscription: Callable,
        push_url: Optional[str],
    ) -> Result[SubscribeOutcome]:
        async with self.locks.acquire(identity_key):
            existing_result = await self._find_by_identity(account_id, identity_key)
            if not existing_result.success:
                return existing_result
            existing = existing_result.value

            if existing is not None and existing.is_active:
                logger.info(f"Account {account_id} already subscribed to {identity_key}")
                return make_success_result(SubscribeOutcome(
                    feed_source=make_feed_source(existing),
                    user_feed_subscription_id=existing.user_feed_subscription_id,
                    subscription=existing,
                ))

            # Nothing is written unless the provider accepted the registration
            if push_url is not None:
                registration = await self._ensure_registered(push_url)
                if not registration.success:
                    return prefix_error_result(registration, "Failed to register feed with push provider")

            now = self.clock.now()
            is_resubscribe = existing is not None
            try:
                async with self.session_factory() as session:
                    if existing is not None:
                        await session.execute(
                            update(UserFeedSubscriptionRecord)
                            .where(UserFeedSubscriptionRecord.user_feed_subscription_id == existing.user_feed_subscription_id)
                            .values(is_active=True, unsubscribed_time=None, last_updated_time=now)
                        )
                        subscription = existing.model_copy(update={
                            "is_active": True,
                            "unsubscribed_time": None,
                            "last_updated_time": now,
                        })
                    else:
                        subscription = build_subscription(make_uuid(), now)
                        session.add(UserFeedSubscriptionRecord(
                            **UserFeedSubscriptionRecord.values_from_schema(subscription)
                        ))

                    self.event_log.add_to_session(session, self.event_log.make_event(
                        account_id,
                        SubscribedToFeedSourceEventData(
                            feed_source_type=FeedSourceType(subscription.feed_source_type),
                            user_feed_subscription_id=subscription.user_feed_subscription_id,
                            is_resubscribe=is_resubscribe,
                        ),
                    ))
                    await session.commit()
            except SQLAlchemyError as e:
                return make_error_result(_store_error(
                    "Failed to save subscription", "insert", "user_feed_subscriptions", e,
                    account_id=account_id, identity_key=identity_key,
                ))

        logger.info(
            f"Account {account_id} {'resubscribed' if is_resubscribe else 'subscribed'} "
            f"to {identity_key} ({subscription.user_feed_subscription_id})"
        )
        return make_success_result(SubscribeOutcome(
            feed_source=make_feed_source(subscription),
            user_feed_subscription_id=subscription.user_feed_subscription_id,
            subscription=subscription,
            is_resubscribe=is_resubscribe,
        ))

    # ========================================================================
    # Unsubscribe
    # ========================================================================

    async def _unsubscribe_locked(self, subscription: UserFeedSubscription) -> Result[None]:
        if not subscription.is_active:
            logger.info(f"Subscription {subscription.user_feed_subscription_id} already inactive")
            return make_success_result()

        push_url = subscription.url if isinstance(subscription, RssUserFeedSubscription) else None
        now = self.clock.now()
        # The flip, its event and any deregistration commit together or not at all
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(UserFeedSubscriptionRecord)
                    .where(
                        UserFeedSubscriptionRecord.user_feed_subscription_id == subscription.user_feed_subscription_id,
                        UserFeedSubscriptionRecord.is_active.is_(True),
                    )
                    .values(is_active=False, unsubscribed_time=now, last_updated_time=now)
                )
                if result.rowcount != 1:
                    logger.info(f"Subscription {subscription.user_feed_subscription_id} already inactive")
                    return make_success_result()

                self.event_log.add_to_session(session, self.event_log.make_event(
                    subscription.account_id,
                    UnsubscribedFromFeedSourceEventData(
                        feed_source_type=FeedSourceType(subscription.feed_source_type),
                        user_feed_subscription_id=subscription.user_feed_subscription_id,
                    ),
                ))
                deregistration = await self._commit_with_deregistration(session, push_url)
        except SQLAlchemyError as e:
            return make_error_result(_store_error(
                "Failed to deactivate subscription", "update", "user_feed_subscriptions", e,
                user_feed_subscription_id=subscription.user_feed_subscription_id,
            ))

        if not deregistration.success:
            return prefix_error_result(deregistration, "Failed to deregister feed from push provider")

        logger.info(f"Account {subscription.account_id} unsubscribed from {get_identity_key(subscription)}")
        return make_success_result()

    async def unsubscribe_account_from_url(self, account_id: str, url: str) -> Result[None]:
        """
        Deactivate the account's subscription to ``url``. Deregisters the URL
        from the push provider when no other account remains subscribed.
        Unsubscribing an inactive subscription is a no-op.
        """
        account_id_result = parse_account_id(account_id)
        if not account_id_result.success:
            return account_id_result
        url_result = parse_url(url)
        if not url_result.success:
            return url_result

        account_id = account_id_result.value
        url = url_result.value
        channel_id = get_youtube_channel_id(url)
        identity_key = make_youtube_channel_identity_key(channel_id) if channel_id else make_rss_identity_key(url)

        async with self.locks.acquire(identity_key):
            existing_result = await self._find_by_identity(account_id, identity_key)
            if not existing_result.success:
                return existing_result
            if existing_result.value is None:
                return make_error_result(NotFoundError(
                    f"Account {account_id} is not subscribed to {url}",
                    context={"entity": "user_feed_subscription", "account_id": account_id, "url": url}
                ))
            return await self._unsubscribe_locked(existing_result.value)

    async def unsubscribe_subscription(self, account_id: str, user_feed_subscription_id: str) -> Result[None]:
        """Deactivate a subscription of any source type by id."""
        subscription_result = await self.get_subscription(user_feed_subscription_id)
        if not subscription_result.success:
            return subscription_result
        subscription = subscription_result.value
        if subscription.account_id != account_id:
            return make_error_result(NotFoundError(
                f"User feed subscription {user_feed_subscription_id} not found for account {account_id}",
                context={"entity": "user_feed_subscription", "entity_id": user_feed_subscription_id}
            ))

        async with self.locks.acquire(get_identity_key(subscription)):
            # Re-read under the lock
            current_result = await self.get_subscription(user_feed_subscription_id)
            if not current_result.success:
                return current_result
            return await self._unsubscribe_locked(current_result.value)

    async def unsubscribe_from_url(self, url: str) -> Result[None]:
        """
        Deregister ``url`` from the push provider if no active subscription to
        it remains. Safe to call repeatedly.
        """
        url_result = parse_url(url)
        if not url_result.success:
            return url_result
        url = url_result.value

        async with self.locks.acquire(make_rss_identity_key(url)):
            result = await self._deregister_if_unused(url)
        if not result.success:
            return prefix_error_result(result, "Failed to deregister feed from push provider")
        return result

    # ========================================================================
    # Settings
    # ========================================================================

    async def update_delivery_schedule(
        self,
        account_id: str,
        user_feed_subscription_id: str,
        delivery_schedule: Any,
    ) -> Result[UserFeedSubscription]:
        schedule_result = parse_delivery_schedule(delivery_schedule)
        if not schedule_result.success:
            return schedule_result

        subscription_result = await self.get_subscription(user_feed_subscription_id)
        if not subscription_result.success:
            return subscription_result
        subscription = subscription_result.value
        if subscription.account_id != account_id:
            return make_error_result(NotFoundError(
                f"User feed subscription {user_feed_subscription_id} not found for account {account_id}",
                context={"entity": "user_feed_subscription", "entity_id": user_feed_subscription_id}
            ))

        now = self.clock.now()
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(UserFeedSubscriptionRecord)
                    .where(UserFeedSubscriptionRecord.user_feed_subscription_id == subscription.user_feed_subscription_id)
                    .values(delivery_schedule=schedule_result.value.to_storage(), last_updated_time=now)
                )
                await session.commit()
        except SQLAlchemyError as e:
            return make_error_result(_store_error(
                "Failed to update delivery schedule", "update", "user_feed_subscriptions", e,
                user_feed_subscription_id=user_feed_subscription_id,
            ))

        return make_success_result(subscription.model_copy(update={
            "delivery_schedule": schedule_result.value,
            "last_updated_time": now,
        }))
