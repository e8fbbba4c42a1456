"""
Typed identifiers, email addresses and URLs.

Every ``parse_*`` function accepts arbitrary input and returns a result; it
never raises for invalid input.
"""

import uuid
from typing import Annotated, Any, NewType

from pydantic import AfterValidator, EmailStr, HttpUrl, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from core.results import Result, make_success_result
from schemas.base import describe_validation_error, parse_with_adapter

AccountId = NewType("AccountId", str)
FeedItemId = NewType("FeedItemId", str)
UserFeedSubscriptionId = NewType("UserFeedSubscriptionId", str)
ImportQueueItemId = NewType("ImportQueueItemId", str)
EventId = NewType("EventId", str)

_HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)


def _canonical_uuid(value: str) -> str:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise ValueError("must be a UUID")


def _checked_http_url(value: str) -> str:
    value = value.strip()
    try:
        _HTTP_URL_ADAPTER.validate_python(value)
    except PydanticValidationError as e:
        raise ValueError(describe_validation_error(e))
    return value


# Firebase-style uids: 1-128 characters, no slashes, no surrounding whitespace
AccountIdStr = Annotated[
    str,
    StringConstraints(min_length=1, max_length=128, pattern=r"^[^/\s](?:[^/]*[^/\s])?$")
]
UuidStr = Annotated[str, AfterValidator(_canonical_uuid)]
HttpUrlStr = Annotated[str, AfterValidator(_checked_http_url)]

_ACCOUNT_ID_ADAPTER = TypeAdapter(AccountIdStr)
_UUID_ADAPTER = TypeAdapter(UuidStr)
_EMAIL_ADAPTER = TypeAdapter(EmailStr)
_URL_ADAPTER = TypeAdapter(HttpUrlStr)


def parse_account_id(maybe_account_id: Any) -> Result[AccountId]:
    result = parse_with_adapter(_ACCOUNT_ID_ADAPTER, maybe_account_id, "account ID")
    if not result.success:
        return result
    return make_success_result(AccountId(result.value))


def _parse_uuid(maybe_id: Any, description: str) -> Result[str]:
    return parse_with_adapter(_UUID_ADAPTER, maybe_id, description)


def parse_feed_item_id(maybe_feed_item_id: Any) -> Result[FeedItemId]:
    return _parse_uuid(maybe_feed_item_id, "feed item ID")


def parse_user_feed_subscription_id(maybe_id: Any) -> Result[UserFeedSubscriptionId]:
    return _parse_uuid(maybe_id, "user feed subscription ID")


def parse_import_queue_item_id(maybe_id: Any) -> Result[ImportQueueItemId]:
    return _parse_uuid(maybe_id, "import queue item ID")


def parse_event_id(maybe_id: Any) -> Result[EventId]:
    return _parse_uuid(maybe_id, "event ID")


def parse_email_address(maybe_email: Any) -> Result[str]:
    return parse_with_adapter(_EMAIL_ADAPTER, maybe_email, "email address")


def parse_url(maybe_url: Any) -> Result[str]:
    """Absolute http(s) URL. The caller's string is kept verbatim after trimming."""
    return parse_with_adapter(_URL_ADAPTER, maybe_url, "URL")
