"""
Unit tests for push providers and webhook signatures
"""

import hashlib
import hmac
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from core.exceptions import NetworkError, PushProviderError
from services.push_provider import (
    LocalPollingPushProvider,
    SuperfeedrPushProvider,
    make_webhook_signature,
    verify_webhook_signature,
)

SECRET = "shared-secret"
BODY = b'{"status": {"code": 200, "feed": "https://example.com/feed.xml"}, "items": []}'


class TestWebhookSignature:

    def test_signature_is_hmac_sha1_of_raw_body(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha1).hexdigest()

        assert make_webhook_signature(SECRET, BODY) == f"sha1={expected}"

    def test_verify(self):
        signature = make_webhook_signature(SECRET, BODY)

        assert verify_webhook_signature(SECRET, BODY, signature)
        assert verify_webhook_signature(SECRET, BODY, signature.upper().replace("SHA1=", "sha1="))

    @pytest.mark.parametrize("signature", [None, "", "sha1=deadbeef", "md5=abc"])
    def test_verify_rejects_bad_signatures(self, signature):
        assert not verify_webhook_signature(SECRET, BODY, signature)

    def test_verify_rejects_modified_body(self):
        signature = make_webhook_signature(SECRET, BODY)

        assert not verify_webhook_signature(SECRET, BODY + b" ", signature)

    def test_verify_without_secret_always_fails(self):
        assert not verify_webhook_signature("", BODY, make_webhook_signature("", BODY))


@pytest.fixture
def superfeedr():
    return SuperfeedrPushProvider(
        user="feedpipe",
        api_key="api-key",
        webhook_base_url="https://feeds.example.com/",
        webhook_secret=SECRET,
        hub_url="https://push.superfeedr.com/",
        timeout=5.0,
    )


def mock_hub(mock_client, status_code=204, side_effect=None):
    response = MagicMock(status_code=status_code, text="hub says no")
    post = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client.return_value.__aenter__.return_value.post = post
    return post


class TestSuperfeedrPushProvider:

    @pytest.mark.asyncio
    async def test_subscribe_posts_form(self, superfeedr):
        with patch("httpx.AsyncClient") as mock_client:
            post = mock_hub(mock_client)

            result = await superfeedr.subscribe("https://example.com/feed.xml")

        assert result.success
        form = post.call_args.kwargs["data"]
        assert form["hub.mode"] == "subscribe"
        assert form["hub.topic"] == "https://example.com/feed.xml"
        assert form["hub.callback"] == "https://feeds.example.com/webhooks/superfeedr"
        assert form["hub.secret"] == SECRET
        assert form["format"] == "json"
        assert post.call_args.kwargs["auth"] == ("feedpipe", "api-key")

    @pytest.mark.asyncio
    async def test_unsubscribe_mode(self, superfeedr):
        with patch("httpx.AsyncClient") as mock_client:
            post = mock_hub(mock_client)

            result = await superfeedr.unsubscribe("https://example.com/feed.xml")

        assert result.success
        assert post.call_args.kwargs["data"]["hub.mode"] == "unsubscribe"

    @pytest.mark.asyncio
    async def test_rejection(self, superfeedr):
        with patch("httpx.AsyncClient") as mock_client:
            mock_hub(mock_client, status_code=422)

            result = await superfeedr.subscribe("https://example.com/feed.xml")

        assert not result.success
        assert isinstance(result.error, PushProviderError)
        assert result.error.context["status_code"] == 422
        assert result.error.context["mode"] == "subscribe"

    @pytest.mark.asyncio
    async def test_unreachable_hub(self, superfeedr):
        with patch("httpx.AsyncClient") as mock_client:
            mock_hub(mock_client, side_effect=httpx.ConnectError("Connection refused"))

            result = await superfeedr.subscribe("https://example.com/feed.xml")

        assert not result.success
        assert isinstance(result.error, NetworkError)


class TestLocalPollingPushProvider:

    @pytest.mark.asyncio
    async def test_registration_is_bookkeeping_only(self):
        provider = LocalPollingPushProvider()

        assert provider.name == "local"
        assert (await provider.subscribe("https://example.com/feed.xml")).success
        assert (await provider.unsubscribe("https://example.com/feed.xml")).success
