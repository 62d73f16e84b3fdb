"""Cancellable, re-armable delayed task bound to the running event loop."""

from __future__ import annotations

import asyncio
import contextvars
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class DeferredTask:
    """Run a coroutine function once after a delay.

    ``arm()`` schedules a single firing; arming an already armed task is a
    no-op. Once fired the task can be armed again. The callback runs as its
    own asyncio task so the timer never blocks on it.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], *, name: str = "deferred") -> None:
        self._callback = callback
        self._name = name
        self._handle: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay_seconds: float) -> bool:
        """Arm the timer if it is not armed yet.

        Must be called from within a running event loop.

        Returns:
            True if a new firing was scheduled, False if one was pending.
        """
        if self._handle is not None:
            return False
        loop = asyncio.get_running_loop()
        # Fresh context: the firing must not inherit the arming request's state.
        self._handle = loop.call_later(
            max(0.0, delay_seconds), self._fire, context=contextvars.Context()
        )
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def aclose(self) -> None:
        """Cancel the pending firing and any callback still running."""
        self.cancel()
        tasks = list(self._running)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._running.clear()

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._callback(), name=self._name)
        self._running.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "deferred_task.failed",
                extra={
                    "task_name": self._name,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
