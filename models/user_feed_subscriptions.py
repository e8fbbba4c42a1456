from typing import Any, Dict, assert_never
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, JSON, Enum, Index, UniqueConstraint
from models.base import Base, RecordMixin, FeedSourceType


class UserFeedSubscriptionRecord(Base, RecordMixin):
    """
    Account subscriptions to feed sources.

    ``identity_key`` is the external identity (``RSS:<url>``,
    ``YOUTUBE_CHANNEL:<id>``, ``INTERVAL:<seconds>``); each account has at
    most one row per identity, reactivated on resubscribe.
    """
    __tablename__ = "user_feed_subscriptions"

    user_feed_subscription_id = Column(String(36), primary_key=True)
    account_id = Column(String(128), nullable=False, index=True)
    feed_source_type = Column(Enum(FeedSourceType, native_enum=False, length=32), nullable=False)
    identity_key = Column(String(2100), nullable=False)

    # Source-specific identity
    url = Column(Text, nullable=True)
    title = Column(Text, nullable=True)
    channel_id = Column(String(64), nullable=True)
    interval_seconds = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    delivery_schedule = Column(JSON, nullable=False)
    unsubscribed_time = Column(DateTime, nullable=True)
    created_time = Column(DateTime, nullable=False)
    last_updated_time = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("account_id", "identity_key", name="uq_user_feed_subscription_identity"),
        Index("idx_user_feed_subscriptions_identity_active", "identity_key", "is_active"),
    )

    @classmethod
    def values_from_schema(cls, subscription) -> Dict[str, Any]:
        from schemas.user_feed_subscriptions import (
            RssUserFeedSubscription,
            YouTubeChannelUserFeedSubscription,
            IntervalUserFeedSubscription,
            get_identity_key,
        )

        values = {
            "user_feed_subscription_id": subscription.user_feed_subscription_id,
            "account_id": subscription.account_id,
            "feed_source_type": FeedSourceType(subscription.feed_source_type),
            "identity_key": get_identity_key(subscription),
            "is_active": subscription.is_active,
            "delivery_schedule": subscription.delivery_schedule.to_storage(),
            "unsubscribed_time": subscription.unsubscribed_time,
            "created_time": subscription.created_time,
            "last_updated_time": subscription.last_updated_time,
        }
        if isinstance(subscription, RssUserFeedSubscription):
            values.update(url=subscription.url, title=subscription.title)
        elif isinstance(subscription, YouTubeChannelUserFeedSubscription):
            values.update(channel_id=subscription.channel_id)
        elif isinstance(subscription, IntervalUserFeedSubscription):
            values.update(interval_seconds=subscription.interval_seconds)
        else:
            assert_never(subscription)
        return values
