"""
Pytest configuration and fixtures
"""

from datetime import datetime
from typing import Dict, List, Union
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from core.clock import FixedClock
from core.config import Settings
from core.database import create_all_tables, create_engine, create_session_factory
from core.exceptions import PushProviderError
from core.results import Result, make_error_result, make_success_result
from ingestion.http_fetcher import HttpFetcher
from models.base import FeedItemType
from schemas.feed_items import FeedItemDraft
from schemas.feed_sources import PwaFeedSource
from services.container import build_container
from services.push_provider import PushProvider
from services.storage import ObjectStorage

TEST_ACCOUNT_ID = "firebase-uid-alice"
OTHER_ACCOUNT_ID = "firebase-uid-bob"
TEST_FEED_URL = "https://example.com/feed.xml"
TEST_WEBHOOK_SECRET = "test-webhook-secret"


class FakePushProvider(PushProvider):
    """Records registrations; can be told to reject them."""

    name = "fake"

    def __init__(self):
        self.subscribed: List[str] = []
        self.unsubscribed: List[str] = []
        self.fail_subscribe = False
        self.fail_unsubscribe = False

    def _rejected(self, mode: str, feed_url: str):
        return make_error_result(PushProviderError(
            f"Push provider rejected {mode} with HTTP 500",
            context={"feed_url": feed_url, "mode": mode, "status_code": 500}
        ))

    async def subscribe(self, feed_url: str) -> Result[None]:
        if self.fail_subscribe:
            return self._rejected("subscribe", feed_url)
        self.subscribed.append(feed_url)
        return make_success_result()

    async def unsubscribe(self, feed_url: str) -> Result[None]:
        if self.fail_unsubscribe:
            return self._rejected("unsubscribe", feed_url)
        self.unsubscribed.append(feed_url)
        return make_success_result()


class InMemoryObjectStorage(ObjectStorage):
    def __init__(self):
        self.files: Dict[str, Union[str, bytes]] = {}

    async def write_file(self, path: str, content: Union[str, bytes], content_type: str) -> None:
        self.files[path] = content

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [path for path in self.files if path.startswith(prefix)]
        for path in doomed:
            del self.files[path]
        return len(doomed)


@pytest.fixture
def clock():
    """Clock pinned to 2024-01-15 10:00 UTC"""
    return FixedClock(datetime(2024, 1, 15, 10, 0))


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'feedpipe_test.db'}",
        ENVIRONMENT="test",
        LOG_LEVEL="DEBUG",
        FEED_PROVIDER="local",
        WEBHOOK_SECRET=TEST_WEBHOOK_SECRET,
        STORAGE_ROOT=str(tmp_path / "storage"),
        FETCH_RETRY_DELAY_SECONDS=0,
        OPENAI_API_KEY=None,
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine(test_settings):
    """Create test database engine"""
    engine = create_engine(test_settings.DATABASE_URL)
    await create_all_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture
def push_provider():
    return FakePushProvider()


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


@pytest.fixture
def fetcher():
    """HttpFetcher whose ``fetch`` is an AsyncMock; set its return value per test"""
    fetcher = HttpFetcher(timeout=5.0, max_retries=1, retry_delay=0)
    fetcher.fetch = AsyncMock()
    return fetcher


@pytest.fixture
def container(test_settings, session_factory, clock, push_provider, storage, fetcher):
    return build_container(
        test_settings,
        session_factory,
        push_provider=push_provider,
        storage=storage,
        clock=clock,
        fetcher=fetcher,
    )


@pytest_asyncio.fixture
async def account(container):
    result = await container.accounts.create_account(TEST_ACCOUNT_ID, "alice@example.com")
    assert result.success
    return result.value


def make_saved_draft(url: str = "https://example.com/articles/1") -> FeedItemDraft:
    return FeedItemDraft(
        feed_source=PwaFeedSource(),
        feed_item_type=FeedItemType.WEBSITE,
        url=url,
    )
