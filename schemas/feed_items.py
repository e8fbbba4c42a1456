"""
Feed item schema: the normalized unit of ingested content.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, TypeAdapter

from core.results import Result
from models.base import FeedItemType
from schemas.base import StorageModel, parse_with_adapter
from schemas.feed_sources import FeedSource
from schemas.ids import AccountIdStr, UuidStr
from schemas.import_states import ImportState


class XkcdComicDetails(StorageModel):
    alt_text: str
    image_url_small: str
    image_url_large: str


class FeedItem(StorageModel):
    feed_item_id: UuidStr
    account_id: AccountIdStr
    feed_item_type: FeedItemType
    feed_source: FeedSource
    url: str
    title: str = ""
    description: Optional[str] = None
    summary: Optional[str] = None
    outgoing_links: List[str] = Field(default_factory=list)
    xkcd: Optional[XkcdComicDetails] = None
    external_item_id: Optional[str] = None
    import_state: ImportState
    created_time: datetime
    last_updated_time: datetime


class FeedItemDraft(BaseModel):
    """Everything needed to create a new feed item, before ids and state exist."""

    feed_source: FeedSource
    feed_item_type: FeedItemType
    url: str
    title: str = ""
    description: Optional[str] = None
    external_item_id: Optional[str] = None
    # Unique across all feed items; None disables deduplication
    dedupe_key: Optional[str] = None


# Fields importers may write back onto an item
UPDATABLE_FEED_ITEM_FIELDS = frozenset({
    "title",
    "description",
    "summary",
    "outgoing_links",
    "xkcd",
    "feed_item_type",
})

_FEED_ITEM_ADAPTER = TypeAdapter(FeedItem)


def parse_feed_item(data: Any) -> Result[FeedItem]:
    return parse_with_adapter(_FEED_ITEM_ADAPTER, data, "feed item")
