"""Usage bar renderer."""

import math

from rich.text import Text

from systop.formatting import MUTED, tier_style

FULL_BLOCK = "█"
EMPTY_BLOCK = "░"

DEFAULT_BAR_WIDTH = 24


def clamp_percentage(percentage: float) -> float:
    """Clamp a percentage into [0, 100]; non-finite values become 0."""
    if not math.isfinite(percentage):
        return 0.0
    return max(0.0, min(float(percentage), 100.0))


def bar_segments(percentage: float, width: int = DEFAULT_BAR_WIDTH) -> tuple[int, int]:
    """Return the (filled, empty) cell counts for a bar."""
    normalized = clamp_percentage(percentage)
    # round half up
    filled = math.floor(normalized / 100 * width + 0.5)
    return filled, max(0, width - filled)


def render_usage_bar(
    percentage: float,
    width: int = DEFAULT_BAR_WIDTH,
    color: str = "green",
    label: str | None = None,
) -> Text:
    """
    Render a usage bar, optionally preceded by a label line.

    Args:
        percentage: Usage to display. Clamped into [0, 100].
        width: Total number of cells in the bar.
        color: Style for the filled cells and the percentage.
        label: Optional header shown above the bar with the percentage.
    """
    normalized = clamp_percentage(percentage)
    filled, empty = bar_segments(normalized, width)

    text = Text()
    if label:
        text.append(label, style=MUTED)
        text.append(" ")
        text.append(f"{normalized:.1f}%", style=tier_style(color))
        text.append("\n")
    text.append(FULL_BLOCK * filled, style=tier_style(color))
    text.append(EMPTY_BLOCK * empty, style=MUTED)
    return text
