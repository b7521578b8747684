"""Layout composer: turns a snapshot into colored text panels.

Every function here is a pure function of its arguments, so composing the
same snapshot twice yields identical output.
"""

import math
import platform
from collections.abc import Sequence

from rich.text import Text

from systop.bar import DEFAULT_BAR_WIDTH, render_usage_bar
from systop.formatting import (
    MUTED,
    format_bytes,
    format_duration,
    format_load_averages,
    get_usage_color,
    tier_style,
)
from systop.models import (
    Failed,
    MemoryMetrics,
    Pending,
    ProcessSnapshot,
    RefreshState,
    SystemSnapshot,
)

CELL_WIDTH = 18
CELL_GAP = 2
MAX_GRID_COLUMNS = 4

NAME_WIDTH = 22
COMMAND_WIDTH = 40
USER_WIDTH = 10
ELLIPSIS = "…"

QUIT_HINT = "Press q to exit."


def grid_shape(core_count: int) -> tuple[int, int]:
    """Return (columns, rows) for a per-core grid of ``core_count`` cells."""
    columns = max(1, min(MAX_GRID_COLUMNS, math.ceil(math.sqrt(core_count))))
    rows = math.ceil(core_count / columns)
    return columns, rows


def _core_cell(index: int, value: float) -> Text:
    cell = Text()
    cell.append(f"CPU{index:02d}:", style=MUTED)
    cell.append(f" {value:5.1f}%", style=tier_style(get_usage_color(value)))
    # Pad or crop so every cell occupies the same width
    cell.align("left", CELL_WIDTH)
    return cell


def compose_core_grid(per_core: Sequence[float]) -> Text:
    """Arrange per-core usage into a row-major grid, blank-filling the last row."""
    columns, rows = grid_shape(len(per_core))
    gap = " " * CELL_GAP

    lines = []
    for row in range(rows):
        line = Text()
        for column in range(columns):
            if column:
                line.append(gap)
            index = row * columns + column
            if index >= len(per_core):
                line.append(" " * CELL_WIDTH)
            else:
                line.append_text(_core_cell(index, per_core[index]))
        lines.append(line)
    return Text("\n").join(lines)


def truncate(value: str, width: int) -> str:
    """Truncate ``value`` to ``width`` characters, marking the cut with an ellipsis."""
    if len(value) <= width:
        return value
    return value[: width - 3] + ELLIPSIS


def process_table_header() -> str:
    """Column titles for the process table."""
    return " ".join(
        [
            " PID ".ljust(7),
            "USER".ljust(USER_WIDTH),
            "CPU%".ljust(6),
            "MEM%".ljust(6),
            "NAME".ljust(NAME_WIDTH),
            "COMMAND",
        ]
    )


def format_process_row(proc: ProcessSnapshot) -> Text:
    """Render one fixed-width process row."""
    row = Text()
    row.append(f"{proc.pid:>5} ", style=MUTED)
    row.append(f"{proc.user.ljust(USER_WIDTH)[:USER_WIDTH]} ", style="green")
    row.append(f"{proc.cpu:5.1f} ", style="cyan")
    row.append(f"{proc.memory:5.1f} ", style="magenta")
    row.append(truncate(proc.name, NAME_WIDTH).ljust(NAME_WIDTH), style="white")
    row.append(f" {truncate(proc.command, COMMAND_WIDTH)}", style=MUTED)
    return row


def compose_process_table(processes: Sequence[ProcessSnapshot]) -> Text:
    """Render the process table, header included."""
    lines = [Text(process_table_header(), style=MUTED)]
    if not processes:
        lines.append(Text("No active processes found.", style=MUTED))
    else:
        lines.extend(format_process_row(proc) for proc in processes)
    return Text("\n").join(lines)


def compose_memory_panel(memory: MemoryMetrics, bar_width: int = DEFAULT_BAR_WIDTH) -> Text:
    """Render the memory and swap usage bars."""
    mem_bar = render_usage_bar(
        memory.percent,
        width=bar_width,
        color="magenta",
        label=f"{format_bytes(memory.used)} / {format_bytes(memory.total)}",
    )
    swap_bar = render_usage_bar(
        memory.swap_percent,
        width=bar_width,
        color="red",
        label=f"Swap {format_bytes(memory.swap_used)} / {format_bytes(memory.swap_total)}",
    )
    return Text("\n\n").join([mem_bar, swap_bar])


def compose_summary(snapshot: SystemSnapshot) -> Text:
    """Render the uptime / load average / total CPU line."""
    cpu = snapshot.cpu
    return Text.assemble(
        ("Uptime: ", MUTED),
        (format_duration(snapshot.uptime_seconds), "yellow"),
        ("  Load Avg: ", MUTED),
        (format_load_averages(cpu.load_averages), "yellow"),
        ("  Total CPU: ", MUTED),
        (f"{cpu.total:.1f}%", tier_style(get_usage_color(cpu.total))),
    )


def compose_status(state: RefreshState) -> Text:
    """Render the loading or error view that stands in for the metrics."""
    if isinstance(state, Failed):
        message = Text(f"Failed to fetch system metrics: {state.message}", style="red")
    elif isinstance(state, Pending):
        message = Text("Loading system metrics…", style="cyan")
    else:
        return Text()
    return Text("\n").join([message, Text(QUIT_HINT, style=MUTED)])


def host_info() -> str:
    """Host name, OS release and architecture for the title line."""
    system = f"{platform.system()} {platform.release()}"
    return f"{platform.node()} • {system} • {platform.machine()}"
