"""Map AppError subclasses and unexpected exceptions to JSON responses.

Validation 400, authentication 403, rate limit 429, spreadsheet store 502,
anything else 500. Every body carries the request id of the call.
"""

import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitExceededError,
    SheetsAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_code_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, SheetsAppError):
        return 502
    return 400


def build_rate_limit_headers(exc: RateLimitExceededError) -> dict[str, str]:
    """Build Retry-After and RateLimit-* headers for a rejected call.

    Args:
        exc: Rejection carrying retry_after, limit and window_ms details.

    Returns:
        Header mapping (empty when headers are disabled by configuration).
    """
    if not settings.app.rate_limit_include_headers:
        return {}

    details = exc.details or {}
    limit = details.get("limit", settings.app.rate_limit_requests)
    window_ms = details.get("window_ms", settings.app.rate_limit_window_ms)
    return {
        "Retry-After": str(details.get("retry_after", 1)),
        "RateLimit-Policy": f"{limit};w={math.ceil(window_ms / 1000)}",
        "RateLimit-Limit": str(limit),
        "RateLimit-Remaining": "0",
    }


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    body = {"code": code, "message": message, "request_id": get_request_id()}
    if details:
        body["details"] = details
    return {"error": body}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` as ``{"error": {...}}`` with its mapped status.

    Throttled calls get 429 plus the Retry-After / RateLimit-* headers and
    are not logged again here; the rate limit dependency already did.
    """
    status_code = _status_code_for(exc)
    headers = None

    if isinstance(exc, RateLimitExceededError):
        headers = build_rate_limit_headers(exc) or None
    else:
        logger.warning(
            "app_error",
            extra={
                "error_code": exc.code,
                "status_code": status_code,
                "path": request.url.path,
                "spreadsheet_id": (exc.details or {}).get("spreadsheet_id"),
            },
        )

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, dict(exc.details) if exc.details else None),
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure, answer 500 without any internals."""
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register the AppError handler and the catch-all fallback on ``app``."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
