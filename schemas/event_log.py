"""
Event log entries.

Entries are append-only and ordered by ``created_time``; the payload is a
tagged union keyed by ``event_type``.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter, model_validator

from core.results import Result
from models.base import ActorType, FeedItemActionType, FeedSourceType
from schemas.base import StorageModel, parse_with_adapter
from schemas.ids import AccountIdStr, UuidStr


class Actor(StorageModel):
    actor_type: ActorType
    account_id: Optional[AccountIdStr] = None

    @model_validator(mode="after")
    def check_user_account(self):
        if self.actor_type == ActorType.USER and not self.account_id:
            raise ValueError("user actors must carry an account_id")
        return self


SYSTEM_ACTOR = Actor(actor_type=ActorType.SYSTEM)


class FeedItemActionEventData(StorageModel):
    event_type: Literal["FEED_ITEM_ACTION"] = "FEED_ITEM_ACTION"
    feed_item_id: UuidStr
    feed_item_action_type: FeedItemActionType


class FeedItemImportedEventData(StorageModel):
    event_type: Literal["FEED_ITEM_IMPORTED"] = "FEED_ITEM_IMPORTED"
    feed_item_id: UuidStr


class SubscribedToFeedSourceEventData(StorageModel):
    event_type: Literal["SUBSCRIBED_TO_FEED_SOURCE"] = "SUBSCRIBED_TO_FEED_SOURCE"
    feed_source_type: FeedSourceType
    user_feed_subscription_id: UuidStr
    is_resubscribe: bool


class UnsubscribedFromFeedSourceEventData(StorageModel):
    event_type: Literal["UNSUBSCRIBED_FROM_FEED_SOURCE"] = "UNSUBSCRIBED_FROM_FEED_SOURCE"
    feed_source_type: FeedSourceType
    user_feed_subscription_id: UuidStr


EventLogData = Annotated[
    Union[
        FeedItemActionEventData,
        FeedItemImportedEventData,
        SubscribedToFeedSourceEventData,
        UnsubscribedFromFeedSourceEventData,
    ],
    Field(discriminator="event_type"),
]


class EventLogItem(StorageModel):
    event_id: UuidStr
    account_id: AccountIdStr
    actor: Actor
    environment: str
    data: EventLogData
    created_time: datetime
    last_updated_time: datetime

    @property
    def event_type(self) -> str:
        return self.data.event_type


_EVENT_LOG_ITEM_ADAPTER = TypeAdapter(EventLogItem)


def parse_event_log_item(data: Any) -> Result[EventLogItem]:
    return parse_with_adapter(_EVENT_LOG_ITEM_ADAPTER, data, "event log item")
