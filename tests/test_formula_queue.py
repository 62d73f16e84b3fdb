"""Unit tests for the coalescing formula update queue.

Most tests drive flush cycles by hand with a fake clock; the armed timer
itself is a real (long) asyncio timer that is cancelled on dispose.
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from app.services.formula_queue import FormulaUpdateQueue


def _queue(clock, recompute=None, **kwargs) -> FormulaUpdateQueue:
    kwargs.setdefault("min_delay_ms", 5000)
    kwargs.setdefault("guard_ms", 50)
    return FormulaUpdateQueue(recompute or AsyncMock(), clock=clock, **kwargs)


class TestScheduling:
    @pytest.mark.asyncio
    async def test_first_signal_arms_timer(self, fake_clock) -> None:
        queue = _queue(fake_clock)

        assert queue.is_armed is False
        queue.schedule("sheet-1", "token")

        assert queue.is_armed is True
        assert queue.depth == 1
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_settled_entry_runs_at_flush(self, fake_clock) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)

        queue.schedule("K", "token-t0")
        fake_clock.advance(4_999)
        recompute.assert_not_called()

        fake_clock.advance(1)
        await queue.flush()

        recompute.assert_awaited_once_with("K", "token-t0")
        assert queue.depth == 0
        assert queue.is_armed is False
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_burst_is_coalesced_into_one_call(self, fake_clock) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)

        for _ in range(50):
            queue.schedule("K", "token")
            fake_clock.advance(0.2)

        fake_clock.advance(5_000)
        await queue.flush()

        assert recompute.await_count == 1
        stats = queue.stats()
        assert stats["scheduled"] == 50
        assert stats["coalesced"] == 49
        assert stats["processed"] == 1
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_latest_credential_wins(self, fake_clock) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)

        queue.schedule("K", "A")
        fake_clock.advance(10)
        queue.schedule("K", "B")
        fake_clock.advance(5_000)
        await queue.flush()

        recompute.assert_awaited_once_with("K", "B")
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_later_signals_do_not_reset_armed_timer(self, fake_clock) -> None:
        queue = _queue(fake_clock)

        queue.schedule("K", "token")
        handle = queue._timer._handle
        fake_clock.advance(3_000)
        queue.schedule("K", "token")
        queue.schedule("other", "token")

        assert queue._timer._handle is handle
        await queue.dispose()


class TestEarlyArrival:
    @pytest.mark.asyncio
    async def test_unsettled_entry_is_resubmitted(self, fake_clock) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)

        queue.schedule("K", "token")
        fake_clock.advance(4_980)
        queue.schedule("K", "token")
        fake_clock.advance(20)
        await queue.flush()

        # 20ms old < 5000 - 50: deferred to the next cycle
        recompute.assert_not_called()
        assert queue.depth == 1
        assert queue.is_armed is True
        assert queue.stats()["resubmitted"] == 1

        fake_clock.advance(5_000)
        await queue.flush()

        recompute.assert_awaited_once_with("K", "token")
        assert queue.depth == 0
        assert queue.is_armed is False
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_entry_at_guard_boundary_is_settled(self, fake_clock) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)

        queue.schedule("K", "token")
        fake_clock.advance(4_950)
        await queue.flush()

        recompute.assert_awaited_once()
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_signal_during_flush_beats_resubmission(self, fake_clock) -> None:
        calls: list[tuple[str, str]] = []

        async def recompute(key: str, credential: str) -> None:
            calls.append((key, credential))
            if key == "K1":
                queue.schedule("K2", "new")

        queue = _queue(fake_clock, recompute)
        queue.schedule("K1", "t1")
        fake_clock.advance(4_990)
        queue.schedule("K2", "old")
        fake_clock.advance(10)

        await queue.flush()
        assert calls == [("K1", "t1")]
        assert queue.is_armed is True

        fake_clock.advance(5_000)
        await queue.flush()
        assert calls == [("K1", "t1"), ("K2", "new")]
        await queue.dispose()


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_is_isolated_per_key(self, fake_clock, caplog) -> None:
        async def recompute(key: str, credential: str) -> None:
            if key == "K1":
                raise RuntimeError("sheets unavailable")

        queue = _queue(fake_clock, recompute)
        queue.schedule("K1", "token")
        queue.schedule("K2", "token")
        fake_clock.advance(5_000)

        with caplog.at_level(logging.WARNING, logger="app.services.formula_queue"):
            await queue.flush()

        assert [u["key"] for u in queue.last_updates()] == ["K2"]
        stats = queue.stats()
        assert stats["failed"] == 1
        assert stats["processed"] == 1
        # not retried automatically
        assert queue.depth == 0
        assert queue.is_armed is False
        assert any(r.message == "formula_queue.update_failed" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_missing_credential_is_skipped(self, fake_clock, caplog) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)
        queue.schedule("K", None)
        queue.schedule("K-empty", "")
        fake_clock.advance(5_000)

        with caplog.at_level(logging.WARNING, logger="app.services.formula_queue"):
            await queue.flush()

        recompute.assert_not_called()
        assert queue.stats()["skipped"] == 2
        assert any(r.message == "formula_queue.skipped_missing_credential" for r in caplog.records)
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_timer_rearms_when_whole_batch_fails(self, fake_clock) -> None:
        recompute = AsyncMock(side_effect=RuntimeError("down"))
        queue = _queue(fake_clock, recompute)
        queue.schedule("K1", "token")
        fake_clock.advance(5_000)
        queue.schedule("K2", "token")

        await queue.flush()

        assert queue.depth == 1
        assert queue.is_armed is True
        await queue.dispose()


class TestIntrospection:
    @pytest.mark.asyncio
    async def test_entries_sorted_by_enqueue_time(self, fake_clock) -> None:
        queue = _queue(fake_clock)
        queue.schedule("b", "t")
        fake_clock.advance(5)
        queue.schedule("a", "t")
        fake_clock.advance(5)
        queue.schedule("b", "t")

        entries = queue.entries()
        assert [e["key"] for e in entries] == ["a", "b"]
        assert entries[1]["enqueued_at"] == fake_clock()
        await queue.dispose()

    @pytest.mark.asyncio
    async def test_dispose_drops_pending_work(self, fake_clock) -> None:
        recompute = AsyncMock()
        queue = _queue(fake_clock, recompute)
        queue.schedule("K", "token")

        await queue.dispose()

        assert queue.depth == 0
        assert queue.is_armed is False
        recompute.assert_not_called()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_delay_ms": 0, "guard_ms": 0},
        {"min_delay_ms": 100, "guard_ms": -1},
        {"min_delay_ms": 100, "guard_ms": 100},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        FormulaUpdateQueue(AsyncMock(), **kwargs)


def test_schedule_outside_event_loop_leaves_queue_untouched(fake_clock) -> None:
    queue = _queue(fake_clock)

    with pytest.raises(RuntimeError):
        queue.schedule("K", "token")

    assert queue.depth == 0
    assert queue.is_armed is False
    assert queue.stats()["scheduled"] == 0


@pytest.mark.asyncio
async def test_timer_drives_flush_end_to_end() -> None:
    recompute = AsyncMock()
    queue = FormulaUpdateQueue(recompute, min_delay_ms=30, guard_ms=5)

    queue.schedule("K", "A")
    queue.schedule("K", "B")
    queue.schedule("K", "C")
    await asyncio.sleep(0.15)

    recompute.assert_awaited_once_with("K", "C")
    assert queue.depth == 0
    assert queue.is_armed is False
    await queue.dispose()
