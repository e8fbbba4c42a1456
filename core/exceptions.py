"""
Custom exceptions for the feed pipeline with structured error context.

Every error carries a human-readable message plus a context dictionary so
it can be logged, stored on a feed item, or returned inside an
``ErrorResult`` without losing debugging information.

Exception Hierarchy:
    FeedPipelineException (base)
    ├── ValidationError
    ├── NotFoundError
    ├── WebhookSignatureError
    ├── ExternalProviderError
    │   ├── NetworkError
    │   ├── RateLimitError
    │   ├── PushProviderError
    │   └── ContentFetchError
    │       ├── AuthenticationError
    │       └── ResourceNotFoundError
    ├── ContentParseError
    ├── ImportStateError
    ├── StoreError
    ├── PartialBatchFailure
    ├── FatalConfigurationError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class FeedPipelineException(Exception):
    """
    Base exception for all feed pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (entity ids, urls, counts)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = dict(context or {})
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def with_prefix(self, prefix: str) -> "FeedPipelineException":
        """Return a copy of this error whose message starts with ``prefix``."""
        context = {k: v for k, v in self.context.items() if k != "error_timestamp"}
        return type(self)(
            f"{prefix}: {self.message}",
            context=context,
            original_exception=self.original_exception
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(FeedPipelineException):
    """
    Mixin for errors that may succeed when attempted again.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Upstream server errors (HTTP 5xx)
    """
    pass


class NonRetryableError(FeedPipelineException):
    """
    Mixin for errors that will fail the same way on every attempt.

    Use this for permanent errors like:
    - Malformed ids, urls or emails
    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    """
    pass


# ============================================================================
# Caller Errors
# ============================================================================

class ValidationError(NonRetryableError):
    """
    Raised or returned when external input fails validation.

    Context should include:
        - field_name: Name of the field that failed validation
        - field_value: Value that failed validation (truncated if large)
    """
    pass


class NotFoundError(NonRetryableError):
    """
    Returned when a referenced entity does not exist.

    Context should include:
        - entity: Kind of entity (feed_item, user_feed_subscription, ...)
        - entity_id: Identifier that was looked up
    """
    pass


class WebhookSignatureError(NonRetryableError):
    """
    An inbound webhook was missing its signature or the signature did not
    match the shared secret.

    Context should include:
        - header: Name of the signature header
    """
    pass


# ============================================================================
# External Provider Errors
# ============================================================================

class ExternalProviderError(RetryableError):
    """
    Base exception for failures talking to a third party (push provider,
    website, transcript provider, LLM).

    Context should include:
        - url: The URL or endpoint that failed
        - provider: Name of the provider (if not a plain website)
    """
    pass


class NetworkError(ExternalProviderError):
    """Timeouts and connection failures. A timeout is always a NetworkError."""
    pass


class RateLimitError(ExternalProviderError):
    """Rate limiting errors (HTTP 429)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class PushProviderError(ExternalProviderError):
    """
    The push provider rejected a subscribe or unsubscribe request.

    Context should include:
        - feed_url: The topic URL
        - mode: subscribe or unsubscribe
        - status_code: HTTP status code returned by the hub
    """
    pass


class ContentFetchError(ExternalProviderError):
    """
    Fetching content for a feed item failed.

    Context should include:
        - url: The URL that was fetched
        - status_code: HTTP status code (if applicable)
    """
    pass


class AuthenticationError(NonRetryableError, ContentFetchError):
    """Authentication failures (HTTP 401, 403)."""
    pass


class ResourceNotFoundError(NonRetryableError, ContentFetchError):
    """Resource not found errors (HTTP 404)."""
    pass


# ============================================================================
# Pipeline Errors
# ============================================================================

class ContentParseError(NonRetryableError):
    """
    Fetched content could not be interpreted (missing comic image, empty
    transcript, empty summary).

    Context should include:
        - url: Source URL of the content
        - feed_item_id: The feed item being imported
    """
    pass


class ImportStateError(FeedPipelineException):
    """
    A feed item import state transition could not be applied because the
    persisted state no longer matches what the caller expected.

    Context should include:
        - feed_item_id: The feed item
        - expected_status: Status the caller required
    """
    pass


class StoreError(RetryableError):
    """
    The document store rejected a read or write.

    Context should include:
        - operation: Type of operation (insert, update, delete, query)
        - table_name: Name of the table
    """
    pass


class PartialBatchFailure(FeedPipelineException):
    """
    A sequence of batched deletes stopped part way through. Batches before the
    failing one are committed; re-running the operation deletes what remains.

    Context should include:
        - batches_completed: Number of batches committed before the failure
        - total_batches: Number of batches that were planned
        - documents_deleted: Number of documents deleted so far
    """

    @property
    def batches_completed(self) -> int:
        return int(self.context.get("batches_completed", 0))


class FatalConfigurationError(FeedPipelineException):
    """
    Required configuration is missing or invalid. The process must not start.

    Context should include:
        - setting: Name of the offending setting
    """
    pass
