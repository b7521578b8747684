"""Metrics provider backed by psutil.

psutil calls block, so every read runs in a worker thread via
``asyncio.to_thread`` and the event loop stays responsive.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)

# cpu_percent() measures since its previous call; readings closer together
# than this are reused instead of resampled
MIN_SAMPLE_SPACING = 0.1


class FetchError(Exception):
    """A provider read failed; the whole refresh cycle is void."""


class ProviderUnavailable(Exception):
    """The metrics provider cannot be used on this host at all."""


@dataclass(slots=True, frozen=True)
class RawLoad:
    """Aggregate and per-core CPU load in percent."""

    total: float
    per_core: list[float]


@dataclass(slots=True, frozen=True)
class RawMemory:
    """Memory figures as reported by the provider, in bytes."""

    total: int
    used: int
    active: int | None
    swap_used: int
    swap_total: int


@dataclass(slots=True, frozen=True)
class RawProcess:
    """One process entry in provider order."""

    pid: int
    name: str
    user: str
    cpu: float
    memory: float
    command: str


class MetricsProvider(Protocol):
    """Source of raw host metrics consumed by the snapshot builder."""

    async def current_load(self) -> RawLoad: ...

    async def memory(self) -> RawMemory: ...

    async def processes(self) -> list[RawProcess]: ...

    async def uptime(self) -> float: ...

    def load_averages(self) -> tuple[float, float, float]: ...

    def probe(self) -> None: ...


class PsutilProvider:
    """
    Metrics provider that collects host data using psutil.

    Handles NoSuchProcess, AccessDenied and ZombieProcess errors per process
    so a process dying mid-scan never fails the whole read.
    """

    def __init__(self) -> None:
        """Initialize the PsutilProvider."""
        self._load_average_degraded = False
        self._load_lock = threading.Lock()
        self._last_load: RawLoad | None = None
        self._last_load_at = 0.0

    def probe(self) -> None:
        """
        Check that the provider works at all and prime its counters.

        Raises:
            ProviderUnavailable: If basic host queries fail.
        """
        try:
            psutil.boot_time()
            psutil.virtual_memory()
            # Prime the CPU counters: the first call returns 0.0, later calls
            # measure since the previous one
            psutil.cpu_percent(percpu=True)
            psutil.cpu_percent()
        except Exception as exc:
            raise ProviderUnavailable(f"psutil cannot read host metrics: {exc}") from exc

    async def current_load(self) -> RawLoad:
        return await asyncio.to_thread(self._collect_load)

    async def memory(self) -> RawMemory:
        return await asyncio.to_thread(self._collect_memory)

    async def processes(self) -> list[RawProcess]:
        return await asyncio.to_thread(self._collect_processes)

    async def uptime(self) -> float:
        return await asyncio.to_thread(self._collect_uptime)

    def load_averages(self) -> tuple[float, float, float]:
        """
        Get 1/5/15-minute load averages.

        Zero-filled where the platform has no load average facility.
        """
        try:
            one, five, fifteen = psutil.getloadavg()
        except (AttributeError, OSError):
            if not self._load_average_degraded:
                logger.debug("Load averages unsupported on this platform, reporting zeros")
                self._load_average_degraded = True
            return (0.0, 0.0, 0.0)
        return (one, five, fifteen)

    def _collect_load(self) -> RawLoad:
        # psutil keeps one module-wide baseline, so overlapping cycles must not
        # sample it from two threads at once
        with self._load_lock:
            now = time.monotonic()
            if self._last_load is not None and now - self._last_load_at < MIN_SAMPLE_SPACING:
                return self._last_load

            per_core = psutil.cpu_percent(percpu=True)
            total = psutil.cpu_percent()
            self._last_load = RawLoad(total=total, per_core=list(per_core))
            self._last_load_at = now
            return self._last_load

    def _collect_memory(self) -> RawMemory:
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return RawMemory(
            total=mem.total,
            used=mem.used,
            # Not every platform reports active memory
            active=getattr(mem, "active", None),
            swap_used=swap.used,
            swap_total=swap.total,
        )

    def _collect_uptime(self) -> float:
        return max(0.0, time.time() - psutil.boot_time())

    def _collect_processes(self) -> list[RawProcess]:
        """
        Collect all running processes in provider order.

        Uses psutil.process_iter() with oneshot() for efficiency. process_iter
        caches Process instances, so cpu_percent is measured since the last scan.
        """
        processes: list[RawProcess] = []

        attrs = [
            "pid",
            "name",
            "username",
            "cpu_percent",
            "memory_percent",
            "cmdline",
        ]

        for proc in psutil.process_iter(attrs=attrs):
            try:
                with proc.oneshot():
                    info = proc.info

                    cmdline = info.get("cmdline") or []

                    processes.append(
                        RawProcess(
                            pid=info.get("pid", 0),
                            name=info.get("name") or "",
                            user=info.get("username") or "",
                            cpu=info.get("cpu_percent") or 0.0,
                            memory=info.get("memory_percent") or 0.0,
                            command=" ".join(cmdline),
                        )
                    )

            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Died mid-scan or not readable; skip it
                continue

        return processes
