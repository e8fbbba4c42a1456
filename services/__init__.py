"""
Feed pipeline services.

Modules:
    accounts: Account creation and lookup
    event_log: Append-only account event log
    feed_items: Feed item creation, updates and stored files
    subscriptions: Subscribe/unsubscribe lifecycle with push registration
    webhooks: Push webhook ingestion and subscription change handling
    wipeout: Batched deletion of everything an account owns
    interval_feeds: Scheduled interval feed items
    saved_items: Manually saved URLs and Pocket export imports
    push_provider: Push hub clients (Superfeedr, local polling)
    storage: Object storage for per-item files
    llm: LLM client used for summaries
    container: Wiring of all services for one process
"""

__all__ = [
    "accounts",
    "event_log",
    "feed_items",
    "subscriptions",
    "webhooks",
    "wipeout",
    "interval_feeds",
    "saved_items",
    "push_provider",
    "storage",
    "llm",
    "container",
]
