from sqlalchemy import Column, String, Boolean, DateTime
from models.base import Base, RecordMixin


class PushRegistrationRecord(Base, RecordMixin):
    """
    Whether a feed URL is currently registered with the push provider.

    Shared by every account subscribed to the URL; makes register and
    deregister idempotent.
    """
    __tablename__ = "push_registrations"

    url = Column(String(2048), primary_key=True)
    provider = Column(String(32), nullable=False)
    is_registered = Column(Boolean, nullable=False, default=False, index=True)
    registered_time = Column(DateTime, nullable=True)
    deregistered_time = Column(DateTime, nullable=True)
    last_updated_time = Column(DateTime, nullable=False)
