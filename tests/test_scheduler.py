"""Tests for the RefreshScheduler."""

import asyncio

import pytest

from systop.models import CpuMetrics, Failed, MemoryMetrics, Pending, Ready, SystemSnapshot
from systop.provider import FetchError
from systop.scheduler import RefreshScheduler


def make_snapshot(total: float) -> SystemSnapshot:
    return SystemSnapshot(
        cpu=CpuMetrics(total=total, per_core=(total,), load_averages=(0.0, 0.0, 0.0)),
        memory=MemoryMetrics(used=1, total=2, swap_used=0, swap_total=0),
        processes=(),
        uptime_seconds=1.0,
    )


class GatedFetch:
    """Fetch function whose calls resolve only when the test says so."""

    def __init__(self):
        self.calls: list[list] = []

    async def __call__(self):
        entry = [asyncio.Event(), None]
        self.calls.append(entry)
        await entry[0].wait()
        if isinstance(entry[1], Exception):
            raise entry[1]
        return entry[1]

    def resolve(self, index, result):
        self.calls[index][1] = result
        self.calls[index][0].set()


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestSchedulerBasics:
    """Tests for scheduler construction and lifecycle."""

    def test_initial_state_is_pending(self):
        scheduler = RefreshScheduler(GatedFetch())

        assert scheduler.state == Pending()
        assert scheduler.last_error is None
        assert not scheduler.is_running
        assert scheduler.interval == 1.0

    def test_interval_minimum(self):
        scheduler = RefreshScheduler(GatedFetch(), interval=0.001)
        assert scheduler.interval >= 0.1

    @pytest.mark.asyncio
    async def test_start_runs_first_cycle_immediately(self):
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)

        scheduler.start()
        await settle()

        assert scheduler.is_running
        assert len(fetch.calls) == 1
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_idempotent(self):
        """Test starting an already running scheduler is safe."""
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)

        scheduler.start()
        ticker = scheduler._ticker
        scheduler.start()
        await settle()

        assert scheduler._ticker is ticker
        assert len(fetch.calls) == 1
        scheduler.stop()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_cycles_repeat_on_interval(self):
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return make_snapshot(float(calls))

        scheduler = RefreshScheduler(fetch, interval=0.1)
        scheduler.start()
        await asyncio.sleep(0.35)
        scheduler.stop()
        await scheduler._wait_for_cycles()

        assert calls >= 3
        assert isinstance(scheduler.state, Ready)

    @pytest.mark.asyncio
    async def test_slow_cycles_do_not_block_new_ones(self):
        """Cycles are started on schedule even while earlier ones are in flight."""
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=0.1)

        scheduler.start()
        await asyncio.sleep(0.35)
        scheduler.stop()

        assert len(fetch.calls) >= 3
        assert scheduler.state == Pending()

        for index in range(len(fetch.calls)):
            fetch.resolve(index, make_snapshot(1.0))
        await scheduler._wait_for_cycles()


class TestSchedulerStates:
    """Tests for state transitions published by cycles."""

    @pytest.mark.asyncio
    async def test_success_then_failure_then_success(self):
        updates = []
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600, on_update=updates.append)
        scheduler.start()
        await settle()

        first = make_snapshot(10.0)
        fetch.resolve(0, first)
        await scheduler._wait_for_cycles()
        assert scheduler.state == Ready(first)
        assert scheduler.last_error is None

        failing = asyncio.create_task(scheduler.run_cycle())
        await settle()
        fetch.resolve(1, FetchError("provider down"))
        await failing
        assert scheduler.state == Failed("provider down")
        assert scheduler.last_error == "provider down"

        recovering = asyncio.create_task(scheduler.run_cycle())
        await settle()
        second = make_snapshot(20.0)
        fetch.resolve(2, second)
        await recovering
        assert scheduler.state == Ready(second)
        assert scheduler.last_error is None

        assert updates == [Ready(first), Failed("provider down"), Ready(second)]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_failure_replaces_snapshot(self):
        """A failed cycle leaves no stale snapshot in the state."""
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)
        scheduler.start()
        await settle()
        fetch.resolve(0, make_snapshot(1.0))
        await scheduler._wait_for_cycles()

        cycle = asyncio.create_task(scheduler.run_cycle())
        await settle()
        fetch.resolve(1, FetchError("boom"))
        await cycle

        assert isinstance(scheduler.state, Failed)
        assert not hasattr(scheduler.state, "snapshot")
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_last_completed_cycle_wins(self):
        """An earlier-started cycle that finishes last overwrites a faster later one."""
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)
        scheduler.start()
        await settle()

        later = asyncio.create_task(scheduler.run_cycle())
        await settle()
        assert len(fetch.calls) == 2

        late_started = make_snapshot(2.0)
        fetch.resolve(1, late_started)
        await later
        assert scheduler.state == Ready(late_started)

        early_started = make_snapshot(1.0)
        fetch.resolve(0, early_started)
        await scheduler._wait_for_cycles()
        assert scheduler.state == Ready(early_started)
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_the_cycle(self):
        """Errors other than FetchError still end in the Failed state."""
        updates = []
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600, on_update=updates.append)
        scheduler.start()
        await settle()

        fetch.resolve(0, TypeError("unsupported operand"))
        await scheduler._wait_for_cycles()

        assert scheduler.state == Failed("unsupported operand")
        assert scheduler.last_error == "unsupported operand"
        assert updates == [Failed("unsupported operand")]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_error_without_message_uses_type_name(self):
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)
        scheduler.start()
        await settle()

        fetch.resolve(0, RuntimeError())
        await scheduler._wait_for_cycles()

        assert scheduler.state == Failed("RuntimeError")
        scheduler.stop()


class TestSchedulerTeardown:
    """Tests for discarding results after stop()."""

    @pytest.mark.asyncio
    async def test_results_after_stop_are_discarded(self):
        updates = []
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600, on_update=updates.append)
        scheduler.start()
        await settle()
        second = asyncio.create_task(scheduler.run_cycle())
        await settle()

        scheduler.stop()
        fetch.resolve(1, make_snapshot(2.0))
        fetch.resolve(0, make_snapshot(1.0))
        await second
        await scheduler._wait_for_cycles()

        assert scheduler.state == Pending()
        assert updates == []

    @pytest.mark.asyncio
    async def test_failures_after_stop_are_discarded(self):
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)
        scheduler.start()
        await settle()

        scheduler.stop()
        fetch.resolve(0, FetchError("late"))
        await scheduler._wait_for_cycles()

        assert scheduler.state == Pending()
        assert scheduler.last_error is None

    @pytest.mark.asyncio
    async def test_no_new_cycles_after_stop(self):
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=0.1)
        scheduler.start()
        await settle()
        scheduler.stop()

        await asyncio.sleep(0.25)

        assert len(fetch.calls) == 1
        fetch.resolve(0, make_snapshot(1.0))
        await scheduler._wait_for_cycles()

    @pytest.mark.asyncio
    async def test_restart_ignores_cycles_from_before_stop(self):
        updates = []
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600, on_update=updates.append)
        scheduler.start()
        await settle()

        scheduler.stop()
        scheduler.start()
        await settle()
        assert len(fetch.calls) == 2

        fetch.resolve(0, make_snapshot(1.0))
        await settle()
        assert scheduler.state == Pending()

        current = make_snapshot(2.0)
        fetch.resolve(1, current)
        await scheduler._wait_for_cycles()
        assert scheduler.state == Ready(current)
        assert updates == [Ready(current)]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_restart_ignores_failures_from_before_stop(self):
        fetch = GatedFetch()
        scheduler = RefreshScheduler(fetch, interval=3600)
        scheduler.start()
        await settle()
        scheduler.stop()
        scheduler.start()
        await settle()

        fetch.resolve(0, FetchError("stale"))
        await settle()

        assert scheduler.state == Pending()
        assert scheduler.last_error is None
        fetch.resolve(1, make_snapshot(1.0))
        scheduler.stop()
        await scheduler._wait_for_cycles()
