"""
SQLAlchemy ORM models for database tables.

Models:
    base: Declarative base and shared enums (FeedSourceType, FeedItemImportStatus, ...)
    accounts: Accounts
    user_feed_subscriptions: Account subscriptions to RSS, YouTube and interval feeds
    feed_items: Normalized feed items with their import state
    import_queue: Pending import work records
    event_log: Append-only account event log
    push_registrations: Push provider registration per feed URL

Database Schema:
    Column types are portable (JSON, String ids) so the same models run on
    PostgreSQL in production and SQLite in tests.

Usage:
    from models import FeedItemRecord, UserFeedSubscriptionRecord
    from models.base import FeedSourceType, FeedItemImportStatus
"""

from models.base import Base
from models.accounts import AccountRecord
from models.user_feed_subscriptions import UserFeedSubscriptionRecord
from models.feed_items import FeedItemRecord
from models.import_queue import ImportQueueRecord
from models.event_log import EventLogRecord
from models.push_registrations import PushRegistrationRecord

__all__ = [
    "Base",
    "AccountRecord",
    "UserFeedSubscriptionRecord",
    "FeedItemRecord",
    "ImportQueueRecord",
    "EventLogRecord",
    "PushRegistrationRecord",
]
