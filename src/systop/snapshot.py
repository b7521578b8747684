"""Metrics snapshot builder: raw provider readings in, one SystemSnapshot out."""

import asyncio
import logging
from collections.abc import Iterable

from systop.models import CpuMetrics, MemoryMetrics, ProcessSnapshot, SystemSnapshot
from systop.provider import FetchError, MetricsProvider, RawMemory, RawProcess

logger = logging.getLogger(__name__)

PROCESS_LIMIT = 12


def rank_processes(
    raw: Iterable[RawProcess], limit: int = PROCESS_LIMIT
) -> tuple[ProcessSnapshot, ...]:
    """
    Rank processes by CPU usage.

    Processes idle on both CPU and memory are dropped. The sort is stable, so
    ties keep provider order. At most ``limit`` entries are returned.
    """
    active = [proc for proc in raw if proc.cpu > 0 or proc.memory > 0]
    active.sort(key=lambda proc: proc.cpu, reverse=True)

    return tuple(
        ProcessSnapshot(
            pid=proc.pid,
            name=proc.name or proc.command or "unknown",
            user=proc.user or "-",
            cpu=proc.cpu,
            memory=proc.memory,
            command=proc.command or "",
        )
        for proc in active[:limit]
    )


def normalize_memory(raw: RawMemory) -> MemoryMetrics:
    """Prefer the active memory figure over the generic used one."""
    return MemoryMetrics(
        used=raw.active if raw.active is not None else raw.used,
        total=raw.total,
        swap_used=raw.swap_used,
        swap_total=raw.swap_total,
    )


async def build_snapshot(
    provider: MetricsProvider, process_limit: int = PROCESS_LIMIT
) -> SystemSnapshot:
    """
    Fetch all raw readings concurrently and build a snapshot.

    Args:
        provider: Source of raw metrics.
        process_limit: Maximum number of processes kept after ranking.

    Raises:
        FetchError: If any reading fails or returns unusable values. No partial
            snapshot is built.
    """
    try:
        load, memory, processes, uptime = await asyncio.gather(
            provider.current_load(),
            provider.memory(),
            provider.processes(),
            provider.uptime(),
        )
        load_averages = provider.load_averages()

        cpu = CpuMetrics(
            total=load.total,
            per_core=tuple(load.per_core),
            load_averages=tuple(load_averages),
        )

        return SystemSnapshot(
            cpu=cpu,
            memory=normalize_memory(memory),
            processes=rank_processes(processes, process_limit),
            uptime_seconds=uptime,
        )
    except Exception as exc:
        logger.debug("Provider read failed", exc_info=True)
        raise FetchError(str(exc) or type(exc).__name__) from exc
