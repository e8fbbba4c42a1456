"""
Unit tests for the HTTP fetcher retry and error mapping
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from core.exceptions import (
    AuthenticationError,
    ContentFetchError,
    ExternalProviderError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
)
from ingestion.http_fetcher import HttpFetcher

URL = "https://example.com/post"


def make_response(status_code: int, text: str = "", headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.headers = headers or {"content-type": "text/html; charset=utf-8"}
    response.url = URL
    return response


@pytest.fixture
def mock_get():
    """Patch httpx.AsyncClient and asyncio.sleep; yields the client's get mock"""
    with patch("httpx.AsyncClient") as mock_client, \
            patch("ingestion.http_fetcher.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        get = AsyncMock()
        mock_client.return_value.__aenter__.return_value.get = get
        get.sleep = mock_sleep
        yield get


class TestHttpFetcher:

    @pytest.mark.asyncio
    async def test_success(self, mock_get):
        mock_get.return_value = make_response(200, "<html>hi</html>")

        page = await HttpFetcher(max_retries=3).fetch(URL)

        assert page.status_code == 200
        assert page.text == "<html>hi</html>"
        assert page.url == URL
        assert page.content_type.startswith("text/html")
        assert mock_get.call_count == 1

    @pytest.mark.asyncio
    async def test_sends_user_agent_and_extra_headers(self, mock_get):
        mock_get.return_value = make_response(200)

        await HttpFetcher(user_agent="feedpipe-test").fetch(URL, headers={"Accept": "text/html"})

        headers = mock_get.call_args.kwargs["headers"]
        assert headers["User-Agent"] == "feedpipe-test"
        assert headers["Accept"] == "text/html"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,error_class", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, ResourceNotFoundError),
        (410, ResourceNotFoundError),
        (418, ContentFetchError),
    ])
    async def test_permanent_errors_are_not_retried(self, mock_get, status_code, error_class):
        mock_get.return_value = make_response(status_code)

        with pytest.raises(error_class) as exc_info:
            await HttpFetcher(max_retries=3).fetch(URL)

        assert exc_info.value.context["status_code"] == status_code
        assert mock_get.call_count == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, mock_get):
        mock_get.side_effect = [make_response(500), make_response(502), make_response(200, "ok")]

        page = await HttpFetcher(max_retries=3, retry_delay=1.0).fetch(URL)

        assert page.text == "ok"
        assert mock_get.call_count == 3
        # Exponential backoff: 1s then 2s
        assert [c.args[0] for c in mock_get.sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self, mock_get):
        mock_get.return_value = make_response(503, "unavailable")

        with pytest.raises(NetworkError) as exc_info:
            await HttpFetcher(max_retries=3).fetch(URL)

        assert exc_info.value.context["retry_count"] == 3
        assert mock_get.call_count == 3

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self, mock_get):
        mock_get.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(NetworkError) as exc_info:
            await HttpFetcher(timeout=2.0, max_retries=2).fetch(URL)

        assert isinstance(exc_info.value, ExternalProviderError)
        assert exc_info.value.context["timeout"] == 2.0
        assert mock_get.call_count == 2

    @pytest.mark.asyncio
    async def test_connection_error_recovers(self, mock_get):
        mock_get.side_effect = [httpx.ConnectError("Connection refused"), make_response(200, "ok")]

        page = await HttpFetcher(max_retries=2).fetch(URL)

        assert page.text == "ok"

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self, mock_get):
        mock_get.side_effect = [
            make_response(429, headers={"Retry-After": "7"}),
            make_response(200, "ok"),
        ]

        await HttpFetcher(max_retries=2).fetch(URL)

        mock_get.sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_retries(self, mock_get):
        mock_get.return_value = make_response(429, headers={"Retry-After": "3"})

        with pytest.raises(RateLimitError) as exc_info:
            await HttpFetcher(max_retries=1).fetch(URL)

        assert exc_info.value.retry_after == 3.0
