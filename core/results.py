"""
Success/error result values.

Expected failures (bad input, missing entities, provider outages) are returned
as an ``ErrorResult`` wrapping a ``FeedPipelineException`` instead of being
raised, so callers decide how to surface them.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from core.exceptions import FeedPipelineException

T = TypeVar("T")


@dataclass(frozen=True)
class SuccessResult(Generic[T]):
    value: T
    success: bool = True


@dataclass(frozen=True)
class ErrorResult:
    error: FeedPipelineException
    success: bool = False


Result = Union[SuccessResult[T], ErrorResult]


def make_success_result(value: T = None) -> SuccessResult[T]:
    return SuccessResult(value=value)


def make_error_result(error: FeedPipelineException) -> ErrorResult:
    return ErrorResult(error=error)


def prefix_error_result(result: ErrorResult, prefix: str) -> ErrorResult:
    """Prefix the wrapped error's message, keeping its type and context."""
    return ErrorResult(error=result.error.with_prefix(prefix))
