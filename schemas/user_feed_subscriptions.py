"""
User feed subscription tagged union.

One subscription exists per (account, external identity). The identity is the
feed URL for RSS, the channel id for YouTube and the interval for interval
feeds.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union, assert_never

from pydantic import Field, TypeAdapter, model_validator

from core.results import Result
from models.base import FeedSourceType
from schemas.base import StorageModel, parse_with_adapter
from schemas.delivery_schedules import DeliverySchedule
from schemas.feed_sources import FeedSource, IntervalFeedSource, RssFeedSource, YouTubeChannelFeedSource
from schemas.ids import AccountIdStr, HttpUrlStr, UuidStr


class BaseUserFeedSubscription(StorageModel):
    user_feed_subscription_id: UuidStr
    account_id: AccountIdStr
    is_active: bool
    delivery_schedule: DeliverySchedule
    unsubscribed_time: Optional[datetime] = None
    created_time: datetime
    last_updated_time: datetime

    @model_validator(mode="after")
    def check_unsubscribed_time(self):
        if self.is_active == (self.unsubscribed_time is not None):
            raise ValueError("unsubscribed_time must be set if and only if the subscription is inactive")
        return self


class RssUserFeedSubscription(BaseUserFeedSubscription):
    feed_source_type: Literal["RSS"] = "RSS"
    url: HttpUrlStr
    title: str = ""


class YouTubeChannelUserFeedSubscription(BaseUserFeedSubscription):
    feed_source_type: Literal["YOUTUBE_CHANNEL"] = "YOUTUBE_CHANNEL"
    channel_id: str = Field(min_length=1)


class IntervalUserFeedSubscription(BaseUserFeedSubscription):
    feed_source_type: Literal["INTERVAL"] = "INTERVAL"
    interval_seconds: int = Field(ge=1)


UserFeedSubscription = Annotated[
    Union[
        RssUserFeedSubscription,
        YouTubeChannelUserFeedSubscription,
        IntervalUserFeedSubscription,
    ],
    Field(discriminator="feed_source_type"),
]

USER_FEED_SUBSCRIPTION_ADAPTER = TypeAdapter(UserFeedSubscription)


def parse_user_feed_subscription(data: Any) -> Result[UserFeedSubscription]:
    return parse_with_adapter(USER_FEED_SUBSCRIPTION_ADAPTER, data, "user feed subscription")


def user_feed_subscription_from_storage(data: Dict[str, Any]) -> UserFeedSubscription:
    return USER_FEED_SUBSCRIPTION_ADAPTER.validate_python(data)


def make_rss_identity_key(url: str) -> str:
    return f"{FeedSourceType.RSS.value}:{url}"


def make_youtube_channel_identity_key(channel_id: str) -> str:
    return f"{FeedSourceType.YOUTUBE_CHANNEL.value}:{channel_id}"


def make_interval_identity_key(interval_seconds: int) -> str:
    return f"{FeedSourceType.INTERVAL.value}:{interval_seconds}"


def get_identity_key(subscription: UserFeedSubscription) -> str:
    if isinstance(subscription, RssUserFeedSubscription):
        return make_rss_identity_key(subscription.url)
    elif isinstance(subscription, YouTubeChannelUserFeedSubscription):
        return make_youtube_channel_identity_key(subscription.channel_id)
    elif isinstance(subscription, IntervalUserFeedSubscription):
        return make_interval_identity_key(subscription.interval_seconds)
    else:
        assert_never(subscription)


def make_feed_source(subscription: UserFeedSubscription) -> FeedSource:
    subscription_id = subscription.user_feed_subscription_id
    if isinstance(subscription, RssUserFeedSubscription):
        return RssFeedSource(user_feed_subscription_id=subscription_id)
    elif isinstance(subscription, YouTubeChannelUserFeedSubscription):
        return YouTubeChannelFeedSource(user_feed_subscription_id=subscription_id)
    elif isinstance(subscription, IntervalUserFeedSubscription):
        return IntervalFeedSource(
            user_feed_subscription_id=subscription_id,
            interval_seconds=subscription.interval_seconds,
        )
    else:
        assert_never(subscription)
