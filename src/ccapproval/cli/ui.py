"""Shared UI components for the ccapproval CLI.

Everything goes to stderr: when serving MCP, stdout carries JSON-RPC.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

theme = Theme(
    {
        "info": "dim cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "tip": "blue",
        "heading": "bold cyan",
    }
)

console = Console(theme=theme, stderr=True)

_QUIET_LOGGERS = ("slack_sdk", "aiohttp", "uvicorn", "uvicorn.access", "mcp")


def configure_logging(debug: bool = False) -> None:
    handler = RichHandler(console=console, rich_tracebacks=False, show_path=debug)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    if not debug:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def print_startup(rows: list[tuple[str, str]], *, title: str, subtitle: str | None = None) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold white", justify="right")
    table.add_column("Value", style="cyan")
    for key, value in rows:
        table.add_row(key, value)

    console.print(
        Panel(
            table,
            title=f"[bold]{title}[/bold]",
            subtitle=f"[dim]{subtitle}[/dim]" if subtitle else None,
            border_style="dim white",
            padding=(1, 1),
        )
    )


def print_error(title: str, message: str, tip: str | None = None) -> None:
    """Print a styled error message with an optional actionable tip."""
    content = Text()
    content.append(f"{message}\n", style="white")

    if tip:
        content.append("\n💡 Tip: ", style="bold blue")
        content.append(tip, style="blue")

    console.print(
        Panel(
            content,
            title=f"[bold red]Error: {title}[/bold red]",
            border_style="red",
            padding=(1, 1),
        )
    )


def print_success(message: str) -> None:
    console.print(f"[bold green]✓[/bold green] {message}")
