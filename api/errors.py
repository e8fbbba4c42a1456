"""
Mapping of pipeline errors to HTTP responses.

Route handlers unwrap service results with ``unwrap``; an error result is
raised as its exception and turned into an ``ErrorResponse`` by the handler
registered in ``api.main``.
"""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.exceptions import (
    ExternalProviderError,
    FeedPipelineException,
    ImportStateError,
    NotFoundError,
    ValidationError,
    WebhookSignatureError,
)
from core.results import Result
from schemas.api import ErrorResponse

logger = logging.getLogger(__name__)

# First match wins
ERROR_STATUS_CODES = [
    (ValidationError, 400),
    (WebhookSignatureError, 403),
    (NotFoundError, 404),
    (ImportStateError, 409),
    (ExternalProviderError, 502),
]


def get_status_code(error: FeedPipelineException) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


def unwrap(result: Result):
    """Return the result's value or raise its error."""
    if not result.success:
        raise result.error
    return result.value


async def handle_pipeline_exception(request: Request, exc: FeedPipelineException) -> JSONResponse:
    status_code = get_status_code(exc)
    request_id = getattr(request.state, "request_id", "-")
    if status_code >= 500:
        logger.error(f"[{request_id}] {request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"[{request_id}] {request.method} {request.url.path} rejected: {exc.message}")

    body = ErrorResponse(error=exc.message, error_type=type(exc).__name__, context=exc.context)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
