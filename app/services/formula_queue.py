"""Background queue coalescing payment formula refreshes per spreadsheet.

Refreshing the payment formulas of a spreadsheet is slow and counts against
the store's rate limits, while logging annotations can happen many times per
second. Callers signal "spreadsheet X changed" via ``schedule()`` and return
immediately; the queue performs at most one refresh per spreadsheet per flush
cycle, at least ``min_delay_ms`` after the first signal of the cycle.

Lifecycle of the whole queue (not per key):
- Idle: nothing pending, no timer armed.
- Armed: one timer armed; further signals overwrite their entry but never
  reset the timer, which bounds latency under continuous signal storms.
- Flushing: the timer fired; the pending map was snapshotted and cleared.
  Entries that arrived too close to the firing are re-submitted, the others
  are processed one by one. A new timer is armed if anything is pending.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from app.utils.deferred import DeferredTask

logger = logging.getLogger(__name__)

RecomputeFn = Callable[[str, str], Awaitable[None]]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class PendingEntry:
    """Most recent signal for a key: when it arrived and the credential to use."""

    enqueued_at: float
    credential: str | None


class FormulaUpdateQueue:
    """Debounced, coalescing work queue over an async recompute operation.

    Attributes:
        min_delay_ms: Delay between arming the timer and the flush.
        guard_ms: Slack under ``min_delay_ms``; entries younger than
            ``min_delay_ms - guard_ms`` at flush time are deferred.
    """

    def __init__(
        self,
        perform_recompute: RecomputeFn,
        *,
        min_delay_ms: int = 5000,
        guard_ms: int = 50,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        if min_delay_ms <= 0:
            raise ValueError("min_delay_ms must be > 0")
        if guard_ms < 0 or guard_ms >= min_delay_ms:
            raise ValueError("guard_ms must be >= 0 and < min_delay_ms")

        self.min_delay_ms = min_delay_ms
        self.guard_ms = guard_ms
        self._perform_recompute = perform_recompute
        self._clock = clock
        self._pending: dict[str, PendingEntry] = {}
        self._last_updates: dict[str, float] = {}
        self._timer = DeferredTask(self.flush, name="formula_queue.flush")
        self._stats = {
            "scheduled": 0,
            "coalesced": 0,
            "resubmitted": 0,
            "processed": 0,
            "failed": 0,
            "skipped": 0,
            "flushes": 0,
        }

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"FormulaUpdateQueue(min_delay_ms={self.min_delay_ms}, guard_ms={self.guard_ms}, "
            f"depth={self.depth}, armed={self.is_armed})"
        )

    @property
    def depth(self) -> int:
        return len(self._pending)

    @property
    def is_armed(self) -> bool:
        return self._timer.armed

    def schedule(self, key: str, credential: str | None) -> None:
        """Signal that ``key`` needs a refresh.

        The latest credential and timestamp for a key win. Arms the flush
        timer when none is armed; never resets an armed timer.

        Must be called from code running on the event loop. Outside of it
        ``RuntimeError`` is raised and the queue is left untouched.
        """
        self._arm()
        if key in self._pending:
            self._stats["coalesced"] += 1
        self._stats["scheduled"] += 1
        self._pending[key] = PendingEntry(enqueued_at=self._clock(), credential=credential)

    async def flush(self) -> None:
        """Run one flush cycle over every pending key."""
        self._timer.cancel()
        self._stats["flushes"] += 1

        now = self._clock()
        batch = self._pending
        self._pending = {}
        settle_after = self.min_delay_ms - self.guard_ms

        processed = 0
        for key, entry in batch.items():
            if now - entry.enqueued_at < settle_after:
                self._resubmit(key, entry)
                continue
            if await self._process(key, entry):
                processed += 1

        logger.info(
            "formula_queue.flushed",
            extra={
                "batch_size": len(batch),
                "processed": processed,
                "pending": len(self._pending),
            },
        )

        if self._pending:
            self._arm()

    def entries(self) -> list[dict[str, Any]]:
        """Pending keys with their enqueue time, oldest first."""
        return [
            {"key": key, "enqueued_at": entry.enqueued_at}
            for key, entry in sorted(self._pending.items(), key=lambda kv: kv[1].enqueued_at)
        ]

    def last_updates(self) -> list[dict[str, Any]]:
        """Last successful refresh time per key, most recent first."""
        return [
            {"key": key, "updated_at": updated_at}
            for key, updated_at in sorted(
                self._last_updates.items(), key=lambda kv: kv[1], reverse=True
            )
        ]

    def stats(self) -> dict[str, int]:
        return {"depth": self.depth, **self._stats}

    async def dispose(self) -> None:
        """Cancel the armed timer and any running flush, dropping pending work."""
        await self._timer.aclose()
        dropped = len(self._pending)
        self._pending.clear()
        if dropped:
            logger.warning("formula_queue.disposed", extra={"dropped": dropped})

    def _arm(self) -> None:
        if self._timer.arm(self.min_delay_ms / 1000):
            logger.debug(
                "formula_queue.armed",
                extra={"delay_ms": self.min_delay_ms},
            )

    def _resubmit(self, key: str, entry: PendingEntry) -> None:
        self._stats["resubmitted"] += 1
        if key in self._pending:
            # A newer signal arrived during this flush; it already carries
            # the latest credential.
            return
        logger.debug("formula_queue.resubmitted", extra={"spreadsheet_id": key})
        self._pending[key] = PendingEntry(enqueued_at=self._clock(), credential=entry.credential)
        self._arm()

    async def _process(self, key: str, entry: PendingEntry) -> bool:
        if not entry.credential:
            self._stats["skipped"] += 1
            logger.warning(
                "formula_queue.skipped_missing_credential",
                extra={"spreadsheet_id": key},
            )
            return False

        started = self._clock()
        try:
            await self._perform_recompute(key, entry.credential)
        except Exception as exc:
            self._stats["failed"] += 1
            logger.warning(
                "formula_queue.update_failed",
                extra={
                    "spreadsheet_id": key,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return False

        finished = self._clock()
        self._stats["processed"] += 1
        self._last_updates[key] = finished
        logger.info(
            "formula_queue.updated",
            extra={
                "spreadsheet_id": key,
                "duration_ms": round(finished - started, 2),
                "queued_ms": round(started - entry.enqueued_at, 2),
            },
        )
        return True
