"""
Unit tests for configuration, results, locks and the interval window
"""

import asyncio
from datetime import datetime

import pytest

from core.clock import FixedClock
from core.config import Settings, validate_settings
from core.exceptions import FatalConfigurationError, NotFoundError, RateLimitError
from core.locks import KeyedLock
from core.results import make_error_result, prefix_error_result
from services.interval_feeds import get_emission_window_start


class TestSettings:

    def test_defaults_are_valid(self):
        config = Settings(FEED_PROVIDER="local")

        assert validate_settings(config) is config

    def test_unknown_provider(self):
        with pytest.raises(FatalConfigurationError) as exc_info:
            validate_settings(Settings(FEED_PROVIDER="pubsub"))

        assert exc_info.value.context["setting"] == "FEED_PROVIDER"

    def test_superfeedr_requires_credentials(self):
        config = Settings(
            FEED_PROVIDER="superfeedr",
            SUPERFEEDR_USER="feedpipe",
            SUPERFEEDR_API_KEY="key",
            WEBHOOK_BASE_URL="https://feeds.example.com",
            WEBHOOK_SECRET=None,
        )

        with pytest.raises(FatalConfigurationError) as exc_info:
            validate_settings(config)

        assert exc_info.value.context["setting"] == "WEBHOOK_SECRET"

    @pytest.mark.parametrize("name", ["WIPEOUT_BATCH_SIZE", "WEBHOOK_CONCURRENCY", "IMPORT_CONCURRENCY", "REFRESH_AFTER_HOURS"])
    def test_sizes_must_be_positive(self, name):
        with pytest.raises(FatalConfigurationError):
            validate_settings(Settings(FEED_PROVIDER="local", **{name: 0}))


class TestResults:

    def test_prefix_keeps_type_and_context(self):
        result = make_error_result(NotFoundError("Feed item x not found", context={"entity": "feed_item"}))

        prefixed = prefix_error_result(result, "Error importing feed item")

        assert isinstance(prefixed.error, NotFoundError)
        assert prefixed.error.message == "Error importing feed item: Feed item x not found"
        assert prefixed.error.context["entity"] == "feed_item"

    def test_prefix_keeps_retry_after(self):
        error = RateLimitError("Slow down", context={"url": "https://example.com"}, retry_after=30)

        assert error.with_prefix("Error").context["retry_after"] == 30


class TestKeyedLock:

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.acquire("RSS:https://example.com/feed.xml"):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.acquire("one"):
            assert locks.is_locked("one")
            assert not locks.is_locked("two")
            async with locks.acquire("two"):
                assert locks.is_locked("two")


class TestIntervalWindow:

    @pytest.mark.parametrize("now,interval_seconds,expected", [
        (datetime(2024, 1, 15, 10, 0), 3600, datetime(2024, 1, 15, 10, 0)),
        (datetime(2024, 1, 15, 10, 3, 59), 3600, datetime(2024, 1, 15, 10, 0)),
        (datetime(2024, 1, 15, 10, 5), 3600, datetime(2024, 1, 15, 10, 0)),
        (datetime(2024, 1, 15, 10, 6), 3600, None),
        (datetime(2024, 1, 15, 10, 32), 1800, datetime(2024, 1, 15, 10, 30)),
        (datetime(2024, 1, 15, 0, 2), 86400, datetime(2024, 1, 15, 0, 0)),
        (datetime(2024, 1, 15, 12, 0), 86400, None),
    ])
    def test_window_start(self, now, interval_seconds, expected):
        assert get_emission_window_start(now, interval_seconds, window_minutes=5) == expected

    def test_fixed_clock(self):
        clock = FixedClock(datetime(2024, 1, 15, 10, 0))

        assert clock.advance(minutes=90) == datetime(2024, 1, 15, 11, 30)
        assert clock.now() == datetime(2024, 1, 15, 11, 30)
