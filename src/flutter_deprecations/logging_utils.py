"""Logging utilities for beautiful terminal output"""

import logging
import sys
from typing import Optional

import humanize
import structlog
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import DeprecationCache, EPOCH

# stdout is reserved for the MCP JSON-RPC stream
console = Console(stderr=True)


def format_cache_stats(logger, method_name, event_dict):
    """
    A structlog processor to format 'cache_ready' event stats into a rich Table.
    """
    if event_dict.get("event") == "cache_ready" and "stats" in event_dict:
        stats = event_dict.pop("stats")

        table = Table(box=box.ROUNDED, show_header=False, title="Deprecation Cache", title_style="cyan bold")
        table.add_column("Stat", style="cyan")
        table.add_column("Value", style="magenta")

        table.add_row("Entries", str(stats.get("total_entries", "N/A")))
        table.add_row("Last Updated", str(stats.get("last_updated") or "never"))

        age_hours = stats.get("age_hours")
        if age_hours is not None:
            table.add_row("Age", humanize.naturaldelta(age_hours * 3600))
        table.add_row("Stale", "yes" if stats.get("is_stale") else "no")

        file_size = stats.get("file_size_bytes")
        if file_size is not None:
            table.add_row("File Size", humanize.naturalsize(file_size))

        # Truncate path for display
        path = str(stats.get("cache_path", "N/A"))
        if len(path) > 40:
            path = f"...{path[-37:]}"
        table.add_row("Path", path)

        with console.capture() as capture:
            console.print(table)

        event_dict["event"] = f"Cache ready\n{capture.get()}"
    return event_dict


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to render colored output on stderr."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            # Our custom processor comes before the renderer!
            format_cache_stats,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def render_cache_table(cache: DeprecationCache, title: Optional[str] = None) -> Table:
    """Build a rich table listing every cached deprecation."""
    if title is None:
        if cache.last_updated == EPOCH:
            title = "Flutter Deprecations (never updated)"
        else:
            title = f"Flutter Deprecations (last updated {humanize.naturaltime(cache.age())})"

    table = Table(box=box.ROUNDED, title=title, title_style="cyan bold", show_lines=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("API", style="bold red")
    table.add_column("Replacement", style="green")
    table.add_column("Version", style="yellow")
    table.add_column("Description")

    for position, deprecation in enumerate(cache.deprecations, start=1):
        description = escape(deprecation.description)
        if deprecation.example:
            description = f"{description}\n[dim]e.g. {escape(deprecation.example)}[/dim]"
        table.add_row(
            str(position),
            escape(deprecation.api),
            escape(deprecation.replacement) or "-",
            deprecation.version or "-",
            description,
        )
    return table


def print_server_header(version: str) -> None:
    """Print the header shown when the server starts from the CLI"""
    title = Text("Flutter Deprecations MCP Server", style="bold white")
    version_text = Text(f"v{version}", style="bold cyan")
    subtitle = Text("Spot deprecated Flutter APIs before they break your build", style="italic dim")

    header_text = Text.assemble(
        title,
        ("  ", ""),
        version_text,
        ("\n", ""),
        subtitle,
    )

    panel = Panel(
        header_text,
        border_style="blue",
        expand=False,
        padding=(0, 2)
    )
    console.print(panel)
