"""Human-readable formatting helpers shared by the panels."""

import math
from collections.abc import Iterable

_BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB"]

MUTED = "grey50"


def format_bytes(size: float) -> str:
    """Format bytes as a base-1024 human-readable string."""
    if not math.isfinite(size) or size <= 0:
        return "0 B"

    value = float(size)
    unit = _BYTE_UNITS[0]
    for unit in _BYTE_UNITS:
        if value < 1024 or unit == _BYTE_UNITS[-1]:
            break
        value /= 1024

    return f"{value:.0f} {unit}" if value >= 10 else f"{value:.1f} {unit}"


def format_duration(seconds: float) -> str:
    """Format a duration such as ``2d 3h 0m 15s``.

    Larger units are only shown once they (or a unit above them) are non-zero.
    """
    if not math.isfinite(seconds) or seconds <= 0:
        return "0s"

    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or hours > 0 or days > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def get_usage_color(value: float) -> str:
    """Map a percentage to its severity color."""
    if not math.isfinite(value):
        return "gray"
    if value >= 90:
        return "red"
    if value >= 75:
        return "magenta"
    if value >= 50:
        return "yellow"
    return "green"


def format_load_averages(values: Iterable[float]) -> str:
    """Format 1/5/15-minute load averages."""
    return " / ".join(f"{value:.2f}" for value in values)


def tier_style(tier: str) -> str:
    """Rich style for a severity tier; the gray tier maps to a muted grey."""
    return MUTED if tier == "gray" else tier
