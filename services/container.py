"""
Service container: builds every service once, with its collaborators passed
in explicitly. The API, scheduler and scripts share one container per
process; tests build their own with fakes.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.clock import Clock, SystemClock
from core.config import Settings
from core.locks import KeyedLock
from ingestion.extractors.rss_extractor import RSSExtractor
from ingestion.feed_poller import LocalFeedPoller
from ingestion.http_fetcher import HttpFetcher
from ingestion.import_queue import ImportQueue
from ingestion.import_state_machine import FeedItemImportStateMachine
from ingestion.importers.dispatcher import FeedItemImporterDispatcher
from ingestion.runner import FeedItemImportRunner
from ingestion.scheduler import FeedPipelineScheduler
from ingestion.transformers.summarizer import HierarchicalSummarizer
from services.accounts import AccountsService
from services.event_log import EventLogService
from services.feed_items import FeedItemsService
from services.interval_feeds import IntervalFeedEmitter
from services.llm import LlmClient, OpenAILlmClient
from services.push_provider import LocalPollingPushProvider, PushProvider, SuperfeedrPushProvider
from services.saved_items import SavedItemsService
from services.storage import LocalObjectStorage, ObjectStorage
from services.subscriptions import SubscriptionLifecycleManager
from services.webhooks import WebhookIngestionHandler
from services.wipeout import WipeoutService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    session_factory: async_sessionmaker
    clock: Clock
    push_provider: PushProvider
    storage: ObjectStorage
    fetcher: HttpFetcher
    event_log: EventLogService
    accounts: AccountsService
    feed_items: FeedItemsService
    saved_items: SavedItemsService
    subscriptions: SubscriptionLifecycleManager
    webhooks: WebhookIngestionHandler
    wipeout: WipeoutService
    import_queue: ImportQueue
    state_machine: FeedItemImportStateMachine
    runner: FeedItemImportRunner
    interval_emitter: IntervalFeedEmitter
    feed_poller: Optional[LocalFeedPoller]

    def make_scheduler(self) -> FeedPipelineScheduler:
        return FeedPipelineScheduler(
            runner=self.runner,
            interval_emitter=self.interval_emitter,
            feed_poller=self.feed_poller,
            import_batch_size=self.settings.IMPORT_BATCH_SIZE,
            import_poll_interval_seconds=self.settings.IMPORT_POLL_INTERVAL_SECONDS,
            feed_poll_interval_minutes=self.settings.FEED_POLL_INTERVAL_MINUTES,
            refresh_scan_interval_minutes=self.settings.REFRESH_SCAN_INTERVAL_MINUTES,
        )


def make_push_provider(config: Settings) -> PushProvider:
    if config.FEED_PROVIDER == "superfeedr":
        return SuperfeedrPushProvider(
            user=config.SUPERFEEDR_USER,
            api_key=config.SUPERFEEDR_API_KEY,
            webhook_base_url=config.WEBHOOK_BASE_URL,
            webhook_secret=config.WEBHOOK_SECRET,
            hub_url=config.SUPERFEEDR_HUB_URL,
            timeout=config.FETCH_TIMEOUT_SECONDS,
        )
    return LocalPollingPushProvider()


def build_container(
    config: Settings,
    session_factory: async_sessionmaker,
    push_provider: Optional[PushProvider] = None,
    storage: Optional[ObjectStorage] = None,
    llm_client: Optional[LlmClient] = None,
    clock: Optional[Clock] = None,
    fetcher: Optional[HttpFetcher] = None,
) -> ServiceContainer:
    clock = clock or SystemClock()
    push_provider = push_provider or make_push_provider(config)
    storage = storage or LocalObjectStorage(config.STORAGE_ROOT)
    fetcher = fetcher or HttpFetcher(
        timeout=config.FETCH_TIMEOUT_SECONDS,
        max_retries=config.FETCH_MAX_RETRIES,
        retry_delay=config.FETCH_RETRY_DELAY_SECONDS,
        user_agent=config.FETCH_USER_AGENT,
    )
    if llm_client is None and config.OPENAI_API_KEY:
        llm_client = OpenAILlmClient(api_key=config.OPENAI_API_KEY, model=config.OPENAI_MODEL)
    summarizer = HierarchicalSummarizer(llm_client) if llm_client is not None else None

    event_log = EventLogService(session_factory, clock, config.ENVIRONMENT)
    accounts = AccountsService(session_factory, clock)
    feed_items = FeedItemsService(session_factory, storage, clock)
    subscriptions = SubscriptionLifecycleManager(session_factory, push_provider, event_log, clock, KeyedLock())
    webhooks = WebhookIngestionHandler(
        subscriptions, feed_items, config.WEBHOOK_SECRET, concurrency=config.WEBHOOK_CONCURRENCY
    )
    import_queue = ImportQueue(session_factory, clock)
    state_machine = FeedItemImportStateMachine(session_factory, clock)
    dispatcher = FeedItemImporterDispatcher(
        feed_items.update_feed_item, feed_items.write_file_to_storage, fetcher, summarizer
    )
    runner = FeedItemImportRunner(
        state_machine, import_queue, dispatcher, event_log,
        concurrency=config.IMPORT_CONCURRENCY,
        refresh_after=timedelta(hours=config.REFRESH_AFTER_HOURS),
    )

    feed_poller = None
    if isinstance(push_provider, LocalPollingPushProvider):
        feed_poller = LocalFeedPoller(subscriptions, RSSExtractor(fetcher), webhooks)

    logger.debug(f"Built service container (provider={push_provider.name}, summaries={summarizer is not None})")
    return ServiceContainer(
        settings=config,
        session_factory=session_factory,
        clock=clock,
        push_provider=push_provider,
        storage=storage,
        fetcher=fetcher,
        event_log=event_log,
        accounts=accounts,
        feed_items=feed_items,
        saved_items=SavedItemsService(feed_items, event_log),
        subscriptions=subscriptions,
        webhooks=webhooks,
        wipeout=WipeoutService(session_factory, subscriptions, storage, batch_size=config.WIPEOUT_BATCH_SIZE),
        import_queue=import_queue,
        state_machine=state_machine,
        runner=runner,
        interval_emitter=IntervalFeedEmitter(
            subscriptions,
            feed_items,
            clock,
            feed_item_url=config.INTERVAL_FEED_ITEM_URL,
            window_minutes=config.INTERVAL_EMIT_WINDOW_MINUTES,
        ),
        feed_poller=feed_poller,
    )
