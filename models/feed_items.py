from typing import Any, Dict, Optional
from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, JSON, Enum, Index
from models.base import Base, RecordMixin, FeedItemType, FeedSourceType, FeedItemImportStatus


class FeedItemRecord(Base, RecordMixin):
    """
    Normalized feed items.

    ``import_state`` holds the full state document. ``import_status`` and
    ``should_fetch`` mirror it so claims can be conditional updates, and
    ``revision`` increments on every write for optimistic concurrency.
    """
    __tablename__ = "feed_items"

    feed_item_id = Column(String(36), primary_key=True)
    account_id = Column(String(128), nullable=False, index=True)

    feed_item_type = Column(Enum(FeedItemType, native_enum=False, length=32), nullable=False)
    feed_source = Column(JSON, nullable=False)
    feed_source_type = Column(Enum(FeedSourceType, native_enum=False, length=32), nullable=False)
    user_feed_subscription_id = Column(String(36), nullable=True, index=True)
    external_item_id = Column(Text, nullable=True)
    dedupe_key = Column(String(2300), nullable=True, unique=True)

    # Content
    url = Column(Text, nullable=False)
    title = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    outgoing_links = Column(JSON, nullable=False, default=list)
    xkcd = Column(JSON, nullable=True)

    # Import lifecycle
    import_state = Column(JSON, nullable=False)
    import_status = Column(Enum(FeedItemImportStatus, native_enum=False, length=32), nullable=False)
    should_fetch = Column(Boolean, nullable=False)
    revision = Column(Integer, nullable=False, default=0)

    created_time = Column(DateTime, nullable=False)
    last_updated_time = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_feed_items_account_status", "account_id", "import_status"),
    )

    @staticmethod
    def import_state_values(import_state) -> Dict[str, Any]:
        return {
            "import_state": import_state.to_storage(),
            "import_status": FeedItemImportStatus(import_state.status),
            "should_fetch": import_state.should_fetch,
        }

    @classmethod
    def values_from_schema(cls, item, dedupe_key: Optional[str] = None) -> Dict[str, Any]:
        return {
            "feed_item_id": item.feed_item_id,
            "account_id": item.account_id,
            "feed_item_type": FeedItemType(item.feed_item_type),
            "feed_source": item.feed_source.to_storage(),
            "feed_source_type": FeedSourceType(item.feed_source.feed_source_type),
            "user_feed_subscription_id": getattr(item.feed_source, "user_feed_subscription_id", None),
            "external_item_id": item.external_item_id,
            "dedupe_key": dedupe_key,
            "url": item.url,
            "title": item.title,
            "description": item.description,
            "summary": item.summary,
            "outgoing_links": list(item.outgoing_links),
            "xkcd": item.xkcd.to_storage() if item.xkcd else None,
            "revision": 0,
            "created_time": item.created_time,
            "last_updated_time": item.last_updated_time,
            **cls.import_state_values(item.import_state),
        }
