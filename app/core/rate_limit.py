"""Admission control for FastAPI routes.

Each route declares ``Depends(rate_limit("<route>"))`` with its own policy.
Callers are identified by their hashed API key, or by client address (first
X-Forwarded-For hop when forwarded headers are trusted). The limiter itself
lives on ``app.state.rate_limiter`` so each app instance owns its buckets.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated, Awaitable, Callable

from fastapi import Header, Request

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.core.auth import is_known_api_key
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)


def build_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter:
    """Build the process-wide limiter from configuration.

    Args:
        app_settings: Optional settings; defaults to global settings.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    cfg = app_settings or settings.app
    return InMemorySlidingWindowRateLimiter(
        limit=cfg.rate_limit_requests,
        window_ms=cfg.rate_limit_window_ms,
        sweep_interval_ms=cfg.rate_limit_sweep_interval_seconds * 1000,
        idle_multiplier=cfg.rate_limit_sweep_idle_multiplier,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application."""

    return request.app.state.rate_limiter


def identify_caller(request: Request, x_api_key: str | None) -> str:
    """Build a stable caller key for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        str: Namespaced caller key (``api_key:<hash>`` or ``ip:<address>``).
    """

    # Unknown keys are client-chosen, so they fall back to the network origin.
    if is_known_api_key(x_api_key):
        return f"api_key:{_hash_limiter_key(x_api_key)}"

    if settings.app.rate_limit_trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing secrets."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit(
    route: str,
    *,
    limit: int | None = None,
    window_ms: int | None = None,
) -> Callable[..., Awaitable[None]]:
    """Create a FastAPI dependency enforcing a route-scoped rate limit.

    Usage:
        @router.post("/things", dependencies=[Depends(rate_limit("things:POST"))])

    Args:
        route: Quota namespace for this route.
        limit: Max admissions per window (defaults to APP_RATE_LIMIT_REQUESTS).
        window_ms: Window length (defaults to APP_RATE_LIMIT_WINDOW_MS).

    Returns:
        Async dependency raising RateLimitExceededError when over quota.
    """

    async def enforce_rate_limit(
        request: Request,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    ) -> None:
        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiter(request)
        caller = identify_caller(request, x_api_key)
        key_hash = _hash_limiter_key(caller)
        key_type = caller.split(":", 1)[0]

        result = limiter.check(
            caller,
            route=route,
            window_ms=window_ms or settings.app.rate_limit_window_ms,
            limit=limit or settings.app.rate_limit_requests,
        )
        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "route": route,
                    "key_type": key_type,
                    "key_hash": key_hash,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "window_ms": result.window_ms,
                },
            )
            return

        retry_after = result.retry_after_seconds or 1
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "route": route,
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "window_ms": result.window_ms,
                "retry_after_s": retry_after,
            },
        )

        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message="Too many requests. Please slow down and try again.",
            details={
                "retry_after": retry_after,
                "limit": result.limit,
                "window_ms": result.window_ms,
                "route": route,
            },
        )

    return enforce_rate_limit
