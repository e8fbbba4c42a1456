"""
Feed source tagged union.

A feed source records where a feed item came from. Subscription-backed
sources carry the id of the subscription; manual and batch sources do not.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from core.results import Result
from models.base import FeedSourceType
from schemas.base import StorageModel, parse_with_adapter
from schemas.ids import UuidStr


class RssFeedSource(StorageModel):
    feed_source_type: Literal["RSS"] = "RSS"
    user_feed_subscription_id: UuidStr


class YouTubeChannelFeedSource(StorageModel):
    feed_source_type: Literal["YOUTUBE_CHANNEL"] = "YOUTUBE_CHANNEL"
    user_feed_subscription_id: UuidStr


class IntervalFeedSource(StorageModel):
    feed_source_type: Literal["INTERVAL"] = "INTERVAL"
    user_feed_subscription_id: UuidStr
    interval_seconds: int = Field(ge=1)


class PwaFeedSource(StorageModel):
    feed_source_type: Literal["PWA"] = "PWA"


class ExtensionFeedSource(StorageModel):
    feed_source_type: Literal["EXTENSION"] = "EXTENSION"


class PocketExportFeedSource(StorageModel):
    feed_source_type: Literal["POCKET_EXPORT"] = "POCKET_EXPORT"


FeedSource = Annotated[
    Union[
        RssFeedSource,
        YouTubeChannelFeedSource,
        IntervalFeedSource,
        PwaFeedSource,
        ExtensionFeedSource,
        PocketExportFeedSource,
    ],
    Field(discriminator="feed_source_type"),
]

FEED_SOURCE_ADAPTER = TypeAdapter(FeedSource)

SUBSCRIPTION_FEED_SOURCE_TYPES = {
    FeedSourceType.RSS,
    FeedSourceType.YOUTUBE_CHANNEL,
    FeedSourceType.INTERVAL,
}


def parse_feed_source(data: Any) -> Result[FeedSource]:
    return parse_with_adapter(FEED_SOURCE_ADAPTER, data, "feed source")


def feed_source_from_storage(data: Dict[str, Any]) -> FeedSource:
    return FEED_SOURCE_ADAPTER.validate_python(data)


def get_feed_source_subscription_id(feed_source: FeedSource) -> Optional[str]:
    return getattr(feed_source, "user_feed_subscription_id", None)
