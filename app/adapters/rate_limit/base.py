"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max admissions per window for this route.
        remaining: Admissions left in the current window (0 when rejected).
        window_ms: Sliding window length in milliseconds.
        retry_after_seconds: Suggested wait time in seconds when rejected.
    """

    allowed: bool
    limit: int
    remaining: int
    window_ms: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(
        self,
        key: str,
        *,
        route: str = "",
        window_ms: int | None = None,
        limit: int | None = None,
    ) -> RateLimitResult:
        """Decide whether a call from ``key`` on ``route`` is admitted.

        Args:
            key: Caller identifier (e.g., hashed API key, client IP).
            route: Namespace segmenting independent quotas for the same caller.
            window_ms: Window length override for this route.
            limit: Max admissions override for this route.

        Returns:
            RateLimitResult describing whether it was admitted.
        """
        raise NotImplementedError
