"""Data models for systop."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a ranked process."""

    pid: int
    name: str
    user: str  # "-" when the owner is unknown
    cpu: float  # 0.0 - 100.0 * core_count
    memory: float
    command: str


@dataclass(slots=True, frozen=True)
class CpuMetrics:
    """CPU load at the time of the snapshot."""

    total: float
    per_core: tuple[float, ...]
    load_averages: tuple[float, float, float]


@dataclass(slots=True, frozen=True)
class MemoryMetrics:
    """Memory and swap usage in bytes."""

    used: int
    total: int
    swap_used: int
    swap_total: int

    @property
    def percent(self) -> float:
        """Used memory as a percentage of the total."""
        return self.used / self.total * 100 if self.total > 0 else 0.0

    @property
    def swap_percent(self) -> float:
        """Used swap as a percentage of the total."""
        return self.swap_used / self.swap_total * 100 if self.swap_total > 0 else 0.0


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """One complete metrics reading, produced once per refresh cycle."""

    cpu: CpuMetrics
    memory: MemoryMetrics
    processes: tuple[ProcessSnapshot, ...]
    uptime_seconds: float


@dataclass(slots=True, frozen=True)
class Pending:
    """No cycle has completed yet."""


@dataclass(slots=True, frozen=True)
class Ready:
    """The most recent accepted cycle produced a snapshot."""

    snapshot: SystemSnapshot


@dataclass(slots=True, frozen=True)
class Failed:
    """The most recent accepted cycle failed."""

    message: str


RefreshState = Pending | Ready | Failed
