"""Refresh scheduler for systop."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from systop.models import Failed, Pending, Ready, RefreshState, SystemSnapshot
from systop.provider import FetchError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0
MIN_INTERVAL = 0.1


class RefreshScheduler:
    """
    Drives the snapshot fetch on a fixed interval and owns the RefreshState.

    A cycle starts every ``interval`` seconds whether or not earlier cycles
    have finished, so cycles may overlap. The state always reflects the most
    recently *completed* accepted cycle. After ``stop()`` late results are
    discarded instead of published.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[SystemSnapshot]],
        interval: float = DEFAULT_INTERVAL,
        on_update: Callable[[RefreshState], None] | None = None,
    ) -> None:
        """
        Initialize the RefreshScheduler.

        Args:
            fetch: Coroutine function producing a snapshot. Any exception it
                raises fails the cycle.
            interval: Seconds between cycle starts. Default 1.0s.
            on_update: Called with the new state after every accepted cycle.
        """
        self._fetch = fetch
        self._interval = max(MIN_INTERVAL, interval)
        self._on_update = on_update
        self._state: RefreshState = Pending()
        self._last_error: str | None = None
        self._active = False
        self._generation = 0
        self._ticker: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[None]] = set()

    @property
    def interval(self) -> float:
        """Get the refresh interval."""
        return self._interval

    @property
    def state(self) -> RefreshState:
        """Get the current refresh state."""
        return self._state

    @property
    def last_error(self) -> str | None:
        """Message of the last failed cycle, cleared by the next success."""
        return self._last_error

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is active."""
        return self._active

    def start(self) -> None:
        """
        Start ticking. The first cycle runs immediately.

        Must be called from a running loop. Cycles left over from before a
        previous stop() never publish, even after a restart.
        """
        if self.is_running:
            return

        self._active = True
        self._generation += 1
        self._ticker = asyncio.get_running_loop().create_task(
            self._tick_loop(), name="refresh-ticker"
        )

    def stop(self) -> None:
        """Stop ticking; cycles still in flight will not publish their results."""
        self._active = False
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _wait_for_cycles(self) -> None:
        """Wait until every cycle currently in flight has finished."""
        while self._cycles:
            await asyncio.gather(*self._cycles, return_exceptions=True)

    async def run_cycle(self) -> None:
        """Fetch one snapshot and publish the outcome if still current."""
        generation = self._generation
        try:
            snapshot = await self._fetch()
        except Exception as exc:
            if not self._accepts(generation):
                logger.debug("Discarding failed cycle after stop: %s", exc)
                return
            if isinstance(exc, FetchError):
                logger.warning("Metrics refresh failed: %s", exc)
            else:
                logger.exception("Unexpected error during metrics refresh")
            message = str(exc) or type(exc).__name__
            self._last_error = message
            self._publish(Failed(message))
            return

        if not self._accepts(generation):
            logger.debug("Discarding snapshot that arrived after stop")
            return

        self._last_error = None
        self._publish(Ready(snapshot))

    def _accepts(self, generation: int) -> bool:
        # A restart bumps the generation, so cycles from an earlier run stay void
        return self._active and generation == self._generation

    def _publish(self, state: RefreshState) -> None:
        self._state = state
        if self._on_update is not None:
            self._on_update(state)

    def _spawn_cycle(self) -> None:
        task = asyncio.get_running_loop().create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def _tick_loop(self) -> None:
        """Start a cycle on a fixed cadence, never waiting for cycles to finish."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self._active:
            self._spawn_cycle()
            next_tick += self._interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
