"""
Feed item ingestion and import.

Modules:
    http_fetcher: HTTP GET with retry, backoff and error classification
    import_state_machine: Persisted NEW/PROCESSING/COMPLETED/FAILED transitions
    import_queue: Import queue records and exclusive claims
    runner: Import orchestrator draining the queue with bounded concurrency
    feed_poller: Polls registered feeds when no push hub is configured
    scheduler: APScheduler integration for the background jobs

Subpackages:
    importers: Per feed item type importers (website, YouTube, XKCD)
    extractors: RSS/Atom feeds and Pocket CSV exports
    transformers: Feed entry normalization, HTML cleanup and summaries

Architecture:
    1. Feed entries, saved URLs and interval ticks become NEW feed items,
       each with an import queue entry
    2. The runner claims the queue entry, then the feed item
    3. The importer for the item type fetches and stores its content
    4. The item ends COMPLETED or FAILED; failures stay retryable

Usage:
    from ingestion.runner import FeedItemImportRunner
    from ingestion.scheduler import FeedPipelineScheduler
"""

__all__ = [
    "http_fetcher",
    "import_state_machine",
    "import_queue",
    "runner",
    "feed_poller",
    "scheduler",
]
