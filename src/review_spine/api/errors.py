"""
Error handlers: map review-spine errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from review_spine.api.schemas import ProblemDetail
from review_spine.core.errors import (
    ArchiveInProgressError,
    ConfigError,
    ConflictError,
    NotFoundError,
    ParseError,
    ReviewSpineError,
    TransportError,
)
from review_spine.core.logging import get_logger

logger = get_logger(__name__)

# Most specific first.
ERROR_STATUS: list[tuple[type[ReviewSpineError], int]] = [
    (ArchiveInProgressError, 409),
    (ConflictError, 409),
    (NotFoundError, 404),
    (ParseError, 400),
    (TransportError, 503),
    (ConfigError, 500),
]


def status_for_error(exc: ReviewSpineError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    context: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build an RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, detail=detail, instance=instance, context=context or {})
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


async def review_error_handler(request: Request, exc: ReviewSpineError) -> JSONResponse:
    status = status_for_error(exc)
    logger.warning("api_request_failed", path=request.url.path, status=status, **exc.to_dict())
    return problem_response(
        status=status,
        title=exc.__class__.__name__,
        detail=exc.message,
        instance=str(request.url),
        context=exc.context.to_dict(),
    )


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return problem_response(status=400, title="Invalid request", detail=str(exc), instance=str(request.url))


__all__ = ["problem_response", "review_error_handler", "status_for_error", "value_error_handler"]
