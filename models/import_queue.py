from sqlalchemy import Column, String, Text, DateTime, Enum, Index
from models.base import Base, RecordMixin, ImportQueueItemStatus


class ImportQueueRecord(Base, RecordMixin):
    """
    Pending import work.

    Rows are inserted together with their feed item and deleted once the
    import finishes.
    """
    __tablename__ = "import_queue"

    import_queue_item_id = Column(String(36), primary_key=True)
    feed_item_id = Column(String(36), nullable=False, index=True)
    account_id = Column(String(128), nullable=False, index=True)
    url = Column(Text, nullable=False)
    status = Column(
        Enum(ImportQueueItemStatus, native_enum=False, length=32),
        nullable=False,
        default=ImportQueueItemStatus.NEW,
    )
    created_time = Column(DateTime, nullable=False)
    last_updated_time = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_import_queue_status_created", "status", "created_time"),
    )

    @classmethod
    def from_schema(cls, item) -> "ImportQueueRecord":
        return cls(
            import_queue_item_id=item.import_queue_item_id,
            feed_item_id=item.feed_item_id,
            account_id=item.account_id,
            url=item.url,
            status=ImportQueueItemStatus(item.status),
            created_time=item.created_time,
            last_updated_time=item.last_updated_time,
        )
