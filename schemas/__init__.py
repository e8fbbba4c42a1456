"""
Pydantic schemas for validation and serialization.

Entity schemas are immutable ``StorageModel`` subclasses whose storage form
is JSON-compatible. Tagged unions (feed sources, subscriptions, import
states, delivery schedules, event data) are discriminated on their
``*_type``/``status`` field.

Schemas:
    base: StorageModel and parse helpers returning results
    ids: Account, feed item and subscription ids, URLs and emails
    feed_sources: Feed source tagged union
    delivery_schedules: Delivery schedule tagged union
    import_states: Feed item import state machine states and transitions
    feed_items: Feed items and drafts
    user_feed_subscriptions: Subscription tagged union and identity keys
    accounts: Accounts
    import_queue: Import queue items
    event_log: Event log items, actors and event data
    webhooks: Push provider payloads and provider-neutral feed entries
    api: API request/response models

Usage:
    from schemas.feed_items import FeedItem, FeedItemDraft
    from schemas.import_states import make_processing_import_state
    from schemas.api import HealthCheckResponse
"""

__all__ = [
    "base",
    "ids",
    "feed_sources",
    "delivery_schedules",
    "import_states",
    "feed_items",
    "user_feed_subscriptions",
    "accounts",
    "import_queue",
    "event_log",
    "webhooks",
    "api",
]
