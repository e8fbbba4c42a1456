from sqlalchemy import Column, String, DateTime, JSON, Enum, Index
from models.base import Base, RecordMixin, EventType


class EventLogRecord(Base, RecordMixin):
    """Append-only log of account-visible actions. Rows are only removed by wipeout."""
    __tablename__ = "event_log"

    event_id = Column(String(36), primary_key=True)
    account_id = Column(String(128), nullable=False)
    event_type = Column(Enum(EventType, native_enum=False, length=64), nullable=False)
    actor = Column(JSON, nullable=False)
    environment = Column(String(32), nullable=False)
    data = Column(JSON, nullable=False)
    created_time = Column(DateTime, nullable=False)
    last_updated_time = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_event_log_account_created", "account_id", "created_time"),
    )

    @classmethod
    def from_schema(cls, event) -> "EventLogRecord":
        return cls(
            event_id=event.event_id,
            account_id=event.account_id,
            event_type=EventType(event.data.event_type),
            actor=event.actor.to_storage(),
            environment=event.environment,
            data=event.data.to_storage(),
            created_time=event.created_time,
            last_updated_time=event.last_updated_time,
        )
