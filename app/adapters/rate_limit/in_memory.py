"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class _Bucket:
    window_ms: int
    created_at: float
    timestamps: list[float] = field(default_factory=list)


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping the recent hit timestamps of every caller and route.

    A call is admitted when fewer than ``limit`` hits were recorded for the
    same ``(route, key)`` pair during the last ``window_ms`` milliseconds.
    Rejected calls are not recorded, so they never extend their own wait.

    Buckets are created lazily and kept for the process lifetime unless a
    sweep interval is configured, in which case buckets that stayed empty for
    ``idle_multiplier`` windows are dropped.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        limit: int = 5,
        window_ms: int = 3000,
        sweep_interval_ms: int = 0,
        idle_multiplier: int = 10,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Default maximum number of admissions per window.
            window_ms: Default window length in milliseconds.
            sweep_interval_ms: Minimum interval between idle sweeps run from
                ``check()``; 0 disables automatic sweeping.
            idle_multiplier: Number of windows a bucket must stay empty
                before a sweep removes it.
            clock: Time source returning UNIX time in milliseconds.

        Raises:
            ValueError: If limit, window_ms or idle_multiplier are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        if idle_multiplier < 1:
            raise ValueError("idle_multiplier must be >= 1")

        self._limit = limit
        self._window_ms = window_ms
        self._sweep_interval_ms = sweep_interval_ms
        self._idle_multiplier = idle_multiplier
        self._clock = clock
        self._lock = threading.RLock()
        self._buckets: dict[tuple[str, str], _Bucket] = {}
        self._last_sweep = clock()

    @property
    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def check(
        self,
        key: str,
        *,
        route: str = "",
        window_ms: int | None = None,
        limit: int | None = None,
    ) -> RateLimitResult:
        """Admit or reject a call, recording it when admitted.

        Args:
            key: Caller identifier.
            route: Quota namespace; the same caller has independent quotas
                on distinct routes.
            window_ms: Window length for this route (defaults to the
                limiter's window).
            limit: Max admissions for this route (defaults to the limiter's
                limit).

        Returns:
            RateLimitResult with the admission decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        window_ms = window_ms or self._window_ms
        limit = limit or self._limit
        now = self._clock()

        with self._lock:
            self._maybe_sweep_locked(now)

            bucket = self._buckets.get((route, key))
            if bucket is None:
                bucket = _Bucket(window_ms=window_ms, created_at=now)
                self._buckets[(route, key)] = bucket
            bucket.window_ms = window_ms

            # Filter rather than pop: timestamps may be out of order.
            bucket.timestamps = [t for t in bucket.timestamps if now - t < window_ms]

            if len(bucket.timestamps) >= limit:
                oldest = min(bucket.timestamps)
                retry_after = math.ceil((window_ms - (now - oldest)) / 1000)
                return RateLimitResult(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    window_ms=window_ms,
                    retry_after_seconds=max(1, retry_after),
                )

            bucket.timestamps.append(now)
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit - len(bucket.timestamps),
                window_ms=window_ms,
                retry_after_seconds=None,
            )

    def sweep(self, now: float | None = None) -> int:
        """Remove buckets that have been empty for ``idle_multiplier`` windows.

        Args:
            now: Reference time in milliseconds (defaults to the clock).

        Returns:
            Number of buckets removed.
        """
        with self._lock:
            return self._sweep_locked(self._clock() if now is None else now)

    def _maybe_sweep_locked(self, now: float) -> None:
        if self._sweep_interval_ms <= 0:
            return
        if now - self._last_sweep < self._sweep_interval_ms:
            return
        self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        self._last_sweep = now
        idle_keys = []
        for bucket_key, bucket in self._buckets.items():
            newest = max(bucket.timestamps, default=bucket.created_at)
            emptied_at = newest + bucket.window_ms
            if now - emptied_at >= self._idle_multiplier * bucket.window_ms:
                idle_keys.append(bucket_key)
        for bucket_key in idle_keys:
            del self._buckets[bucket_key]
        return len(idle_keys)
