from sqlalchemy import Column, String, DateTime
from models.base import Base, RecordMixin


class AccountRecord(Base, RecordMixin):
    """An account. Owns every subscription, feed item and event log entry scoped to it."""
    __tablename__ = "accounts"

    account_id = Column(String(128), primary_key=True)
    email = Column(String(320), nullable=False)
    created_time = Column(DateTime, nullable=False)

    @classmethod
    def from_schema(cls, account) -> "AccountRecord":
        return cls(
            account_id=account.account_id,
            email=account.email,
            created_time=account.created_time,
        )
