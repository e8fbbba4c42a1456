from typing import Any, Dict
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


class RecordMixin:
    """Column values of a row keyed by column name, enums as their values."""

    def to_dict(self) -> Dict[str, Any]:
        values = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            values[column.name] = value.value if isinstance(value, enum.Enum) else value
        return values


# ============================================================================
# ENUMS
# ============================================================================

class FeedSourceType(str, enum.Enum):
    """Where a feed item came from"""
    RSS = "RSS"
    YOUTUBE_CHANNEL = "YOUTUBE_CHANNEL"
    INTERVAL = "INTERVAL"
    PWA = "PWA"
    EXTENSION = "EXTENSION"
    POCKET_EXPORT = "POCKET_EXPORT"


class FeedItemType(str, enum.Enum):
    """Kind of content a feed item points at"""
    ARTICLE = "ARTICLE"
    VIDEO = "VIDEO"
    WEBSITE = "WEBSITE"
    TWEET = "TWEET"
    XKCD = "XKCD"


class FeedItemImportStatus(str, enum.Enum):
    """Feed item import lifecycle"""
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    FAILED = "FAILED"
    COMPLETED = "COMPLETED"


class ImportQueueItemStatus(str, enum.Enum):
    """Import queue work record status"""
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    FAILED = "FAILED"


class DeliveryScheduleType(str, enum.Enum):
    NEVER = "NEVER"
    IMMEDIATE = "IMMEDIATE"
    DAYS_AND_TIMES_OF_WEEK = "DAYS_AND_TIMES_OF_WEEK"
    EVERY_N_HOURS = "EVERY_N_HOURS"


class DayOfWeek(str, enum.Enum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"


class EventType(str, enum.Enum):
    """Event log entry kinds"""
    FEED_ITEM_ACTION = "FEED_ITEM_ACTION"
    FEED_ITEM_IMPORTED = "FEED_ITEM_IMPORTED"
    SUBSCRIBED_TO_FEED_SOURCE = "SUBSCRIBED_TO_FEED_SOURCE"
    UNSUBSCRIBED_FROM_FEED_SOURCE = "UNSUBSCRIBED_FROM_FEED_SOURCE"


class FeedItemActionType(str, enum.Enum):
    MARK_DONE = "MARK_DONE"
    MARK_UNDONE = "MARK_UNDONE"
    SAVE = "SAVE"
    UNSAVE = "UNSAVE"
    STAR = "STAR"
    UNSTAR = "UNSTAR"
    DELETE = "DELETE"
    UNDELETE = "UNDELETE"


class ActorType(str, enum.Enum):
    """Who performed a logged action"""
    USER = "USER"
    SYSTEM = "SYSTEM"
