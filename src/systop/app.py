"""systop - Main Textual application."""

import argparse
import logging
import sys
from collections.abc import Awaitable, Callable
from functools import partial
from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import Footer, Static

from systop.config import (
    ConfigError,
    default_config,
    dump_default_config,
    load_config,
    validate_config,
)
from systop.layout import (
    compose_core_grid,
    compose_memory_panel,
    compose_process_table,
    compose_status,
    compose_summary,
    host_info,
)
from systop.logs import configure_logging
from systop.models import Ready, RefreshState, SystemSnapshot
from systop.provider import ProviderUnavailable, PsutilProvider
from systop.scheduler import RefreshScheduler
from systop.snapshot import build_snapshot

logger = logging.getLogger(__name__)


class TitleBar(Horizontal):
    """Application name on the left, host details on the right."""

    DEFAULT_CSS = """
    TitleBar {
        height: 1;
    }

    #app-name {
        width: auto;
        color: green;
        text-style: bold;
    }

    #host-info {
        width: 1fr;
        content-align: right middle;
        color: $text-muted;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose the title bar."""
        yield Static("System Monitor", id="app-name")
        yield Static(host_info(), id="host-info")


class StatusView(Static):
    """Loading or error message shown instead of the metrics."""

    DEFAULT_CSS = """
    StatusView {
        height: auto;
        padding: 1 0;
    }
    """

    def show_state(self, state: RefreshState) -> None:
        """Render a pending or failed state."""
        self.update(compose_status(state))


class MetricsView(Container):
    """Summary line, CPU grid, memory bars and process table."""

    DEFAULT_CSS = """
    MetricsView {
        height: auto;
    }

    #summary {
        height: auto;
        margin: 1 0;
    }

    #panels {
        height: auto;
    }

    #cpu-box, #memory-box {
        width: 1fr;
        min-width: 32;
        height: auto;
    }

    .panel-title {
        color: yellow;
        text-style: bold;
    }

    #process-title {
        margin-top: 1;
    }
    """

    def __init__(self, *args, bar_width: int = 24, **kwargs) -> None:
        """Initialize MetricsView."""
        super().__init__(*args, **kwargs)
        self._bar_width = bar_width
        self._snapshot: SystemSnapshot | None = None

    @property
    def snapshot(self) -> SystemSnapshot | None:
        """The snapshot currently on screen."""
        return self._snapshot

    def compose(self) -> ComposeResult:
        """Compose the metrics layout."""
        yield Static(id="summary")
        with Horizontal(id="panels"):
            with Vertical(id="cpu-box"):
                yield Static("CPU Usage", classes="panel-title")
                yield Static(id="cpu-grid")
            with Vertical(id="memory-box"):
                yield Static("Memory", classes="panel-title")
                yield Static(id="memory-bars")
        yield Static(
            "Top Processes (sorted by CPU), press q to quit",
            id="process-title",
            classes="panel-title",
        )
        yield Static(id="process-table")

    def update_snapshot(self, snapshot: SystemSnapshot) -> None:
        """Replace every panel with the contents of a new snapshot."""
        self._snapshot = snapshot
        self.query_one("#summary", Static).update(compose_summary(snapshot))
        self.query_one("#cpu-grid", Static).update(compose_core_grid(snapshot.cpu.per_core))
        self.query_one("#memory-bars", Static).update(
            compose_memory_panel(snapshot.memory, self._bar_width)
        )
        self.query_one("#process-table", Static).update(
            compose_process_table(snapshot.processes)
        )


class SystopApp(App):
    """Main systop application."""

    TITLE = "systop"
    SUB_TITLE = "System Monitor"

    CSS = """
    Screen {
        layout: vertical;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q,Q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        fetch: Callable[[], Awaitable[SystemSnapshot]] | None = None,
    ) -> None:
        """
        Initialize the SystopApp.

        Args:
            config: Merged configuration. Defaults to the built-in defaults.
            fetch: Snapshot source. Defaults to a psutil-backed builder.
        """
        super().__init__()
        self._config = config if config is not None else default_config()
        if fetch is None:
            provider = PsutilProvider()
            provider.probe()
            fetch = partial(
                build_snapshot,
                provider,
                self._config["display"]["process_limit"],
            )
        self._scheduler = RefreshScheduler(
            fetch,
            interval=self._config["refresh"]["interval"],
            on_update=self._apply_state,
        )

    @property
    def scheduler(self) -> RefreshScheduler:
        """The scheduler feeding this app."""
        return self._scheduler

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield TitleBar()
        yield StatusView(id="status")
        yield MetricsView(id="metrics", bar_width=self._config["display"]["bar_width"])
        yield Footer()

    def on_mount(self) -> None:
        """Show the loading view and start refreshing."""
        self._apply_state(self._scheduler.state)
        self._scheduler.start()

    def _apply_state(self, state: RefreshState) -> None:
        """Swap between the metrics view and the status view."""
        try:
            status = self.query_one("#status", StatusView)
            metrics = self.query_one("#metrics", MetricsView)
            if isinstance(state, Ready):
                metrics.update_snapshot(state.snapshot)
            else:
                status.show_state(state)
        except NoMatches:
            logger.debug("Refresh state arrived while the screen was not mounted")
            return

        ready = isinstance(state, Ready)
        metrics.display = ready
        status.display = not ready

    def on_unmount(self) -> None:
        """Stop refreshing when the app shuts down by any route."""
        self._scheduler.stop()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._scheduler.stop()
        self.exit()


def build_parser() -> argparse.ArgumentParser:
    """Command line interface for systop."""
    parser = argparse.ArgumentParser(
        prog="systop",
        description="Live terminal dashboard for CPU, memory, swap and processes.",
    )
    parser.add_argument("--config", type=Path, help="path to a TOML config file")
    parser.add_argument("--interval", type=float, help="seconds between refreshes")
    parser.add_argument("--limit", type=int, help="number of processes to show")
    parser.add_argument("--log-file", help="write logs to this file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="print the default configuration and exit",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> dict[str, Any]:
    """Load the config file and apply command line overrides."""
    config = load_config(args.config)
    overrides = {
        ("refresh", "interval"): args.interval,
        ("display", "process_limit"): args.limit,
        ("logging", "file"): args.log_file,
        ("logging", "level"): args.log_level,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            config[section][key] = value

    try:
        return validate_config(config)
    except ConfigError as e:
        print(f"systop: {e}", file=sys.stderr)
        raise SystemExit(1) from e


def main(argv: list[str] | None = None) -> None:
    """Entry point for systop application."""
    args = build_parser().parse_args(argv)
    if args.print_config:
        print(dump_default_config(), end="")
        return

    config = resolve_config(args)
    configure_logging(config["logging"]["level"], config["logging"]["file"] or None)

    provider = PsutilProvider()
    try:
        provider.probe()
    except ProviderUnavailable as exc:
        logger.error("Cannot start: %s", exc)
        print(f"systop: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    fetch = partial(build_snapshot, provider, config["display"]["process_limit"])
    app = SystopApp(config=config, fetch=fetch)
    app.run()


if __name__ == "__main__":
    main()
