"""
HTTP fetcher used by importers.

Every request has a bounded timeout. Transient failures (timeouts, connection
errors, HTTP 5xx, HTTP 429) are retried with exponential backoff; permanent
ones raise immediately:

- 401/403 -> AuthenticationError
- 404/410 -> ResourceNotFoundError
- 429     -> RateLimitError once retries are exhausted
- 5xx     -> NetworkError once retries are exhausted
- timeout -> NetworkError
- other 4xx -> ContentFetchError
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from core.exceptions import (
    AuthenticationError,
    ContentFetchError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedPage:
    url: str
    status_code: int
    text: str
    content_type: str = ""


class HttpFetcher:
    """
    Fetch pages with retry logic and exponential backoff.

    Attributes:
        timeout: Per-request timeout in seconds
        max_retries: Maximum number of attempts (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        user_agent: str = "feedpipe/1.0",
    ):
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.user_agent = user_agent

    def _backoff(self, attempt: int) -> float:
        return self.retry_delay * (2 ** attempt)

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> FetchedPage:
        """
        GET ``url`` following redirects.

        Raises:
            AuthenticationError: HTTP 401/403
            ResourceNotFoundError: HTTP 404/410
            RateLimitError: HTTP 429 after max retries
            NetworkError: Timeouts, connection failures, HTTP 5xx after max retries
            ContentFetchError: Any other non-2xx response
        """
        request_headers = {"User-Agent": self.user_agent, **(headers or {})}
        context = {"url": url}

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            for attempt in range(self.max_retries):
                is_last_attempt = attempt == self.max_retries - 1
                try:
                    logger.debug(f"Fetch attempt {attempt + 1}/{self.max_retries} for {url}")
                    response = await client.get(url, headers=request_headers)
                except httpx.TimeoutException as e:
                    if is_last_attempt:
                        raise NetworkError(
                            f"Request timeout after {self.max_retries} attempts",
                            context={**context, "timeout": self.timeout, "retry_count": attempt + 1},
                            original_exception=e
                        )
                    logger.warning(f"Timeout fetching {url}. Retrying in {self._backoff(attempt)} seconds")
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                except httpx.HTTPError as e:
                    if is_last_attempt:
                        raise NetworkError(
                            f"Network error after {self.max_retries} attempts",
                            context={**context, "retry_count": attempt + 1},
                            original_exception=e
                        )
                    logger.warning(f"Network error fetching {url}. Retrying in {self._backoff(attempt)} seconds")
                    await asyncio.sleep(self._backoff(attempt))
                    continue

                status = response.status_code
                if status in (401, 403):
                    raise AuthenticationError(
                        f"Access denied for {url}",
                        context={**context, "status_code": status}
                    )

                if status in (404, 410):
                    raise ResourceNotFoundError(
                        f"Resource not found: {url}",
                        context={**context, "status_code": status}
                    )

                if status == 429:
                    retry_after = self._parse_retry_after(response, attempt)
                    if is_last_attempt:
                        raise RateLimitError(
                            f"Rate limit exceeded for {url}",
                            context={**context, "status_code": status, "retry_count": attempt + 1},
                            retry_after=retry_after
                        )
                    logger.warning(f"Rate limited by {url}. Retrying after {retry_after} seconds")
                    await asyncio.sleep(retry_after)
                    continue

                if status >= 500:
                    if is_last_attempt:
                        raise NetworkError(
                            f"Server error after {self.max_retries} attempts",
                            context={
                                **context,
                                "status_code": status,
                                "retry_count": attempt + 1,
                                "response_body": response.text[:500],
                            }
                        )
                    logger.warning(
                        f"Server error {status} from {url}. "
                        f"Retrying in {self._backoff(attempt)} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(self._backoff(attempt))
                    continue

                if status >= 400:
                    raise ContentFetchError(
                        f"HTTP {status} fetching {url}",
                        context={**context, "status_code": status}
                    )

                return FetchedPage(
                    url=str(response.url),
                    status_code=status,
                    text=response.text,
                    content_type=response.headers.get("content-type", ""),
                )

        raise NetworkError("Max retries exceeded", context=context)

    def _parse_retry_after(self, response: httpx.Response, attempt: int) -> float:
        value = response.headers.get("Retry-After")
        try:
            return float(value) if value is not None else self._backoff(attempt)
        except ValueError:
            return self._backoff(attempt)
