"""
Push providers: external services that deliver new feed entries for
registered URLs.

``SuperfeedrPushProvider`` talks to a PubSubHubbub hub. With
``LocalPollingPushProvider`` registration is bookkeeping only and the
scheduler polls registered feeds itself.
"""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from core.exceptions import NetworkError, PushProviderError
from core.results import Result, make_error_result, make_success_result

logger = logging.getLogger(__name__)

SUPERFEEDR_WEBHOOK_PATH = "/webhooks/superfeedr"
SIGNATURE_HEADER = "X-Hub-Signature"


class PushProvider(ABC):
    name: str = "base"

    @abstractmethod
    async def subscribe(self, feed_url: str) -> Result[None]:
        pass

    @abstractmethod
    async def unsubscribe(self, feed_url: str) -> Result[None]:
        pass


class SuperfeedrPushProvider(PushProvider):
    """
    Registers topics with the Superfeedr hub.

    Requests are form-encoded POSTs authenticated with HTTP Basic auth. The hub
    posts new entries as JSON to ``{webhook_base_url}/webhooks/superfeedr``,
    signed with ``webhook_secret``.
    """

    name = "superfeedr"

    def __init__(
        self,
        user: str,
        api_key: str,
        webhook_base_url: str,
        webhook_secret: str,
        hub_url: str = "https://push.superfeedr.com/",
        timeout: float = 30.0,
    ):
        self.user = user
        self.api_key = api_key
        self.callback_url = webhook_base_url.rstrip("/") + SUPERFEEDR_WEBHOOK_PATH
        self.webhook_secret = webhook_secret
        self.hub_url = hub_url
        self.timeout = timeout

    def _form(self, mode: str, feed_url: str) -> dict:
        return {
            "hub.mode": mode,
            "hub.topic": feed_url,
            "hub.callback": self.callback_url,
            "hub.secret": self.webhook_secret,
            "format": "json",
        }

    async def _post(self, mode: str, feed_url: str) -> Result[None]:
        context = {"provider": self.name, "feed_url": feed_url, "mode": mode}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.hub_url,
                    data=self._form(mode, feed_url),
                    auth=(self.user, self.api_key),
                )
        except httpx.TimeoutException as e:
            return make_error_result(NetworkError(
                f"Push provider timed out during {mode}",
                context={**context, "timeout": self.timeout},
                original_exception=e
            ))
        except httpx.HTTPError as e:
            return make_error_result(NetworkError(
                f"Push provider unreachable during {mode}",
                context=context,
                original_exception=e
            ))

        if response.status_code >= 400:
            return make_error_result(PushProviderError(
                f"Push provider rejected {mode} with HTTP {response.status_code}",
                context={**context, "status_code": response.status_code, "response_body": response.text[:500]}
            ))

        logger.info(f"Push provider {mode} succeeded for {feed_url}")
        return make_success_result()

    async def subscribe(self, feed_url: str) -> Result[None]:
        return await self._post("subscribe", feed_url)

    async def unsubscribe(self, feed_url: str) -> Result[None]:
        return await self._post("unsubscribe", feed_url)


class LocalPollingPushProvider(PushProvider):
    """Registration is recorded locally; the feed poller job fetches registered URLs."""

    name = "local"

    async def subscribe(self, feed_url: str) -> Result[None]:
        logger.info(f"Registered {feed_url} for local polling")
        return make_success_result()

    async def unsubscribe(self, feed_url: str) -> Result[None]:
        logger.info(f"Stopped local polling for {feed_url}")
        return make_success_result()


def make_webhook_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha1).hexdigest()
    return f"sha1={digest}"


def verify_webhook_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """
    Check ``X-Hub-Signature: sha1=<hex HMAC-SHA1(secret, raw body)>`` in
    constant time.
    """
    if not signature or not secret:
        return False
    expected = make_webhook_signature(secret, body)
    return hmac.compare_digest(signature.strip().lower(), expected)
