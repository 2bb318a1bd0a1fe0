"""
WMAdmin Terminal UI
===================
Rich console helpers, status tables, and logging setup for the CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from wmadmin import __version__

# ── Theme ────────────────────────────────────────────────────────────────────

WMADMIN_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "title": "bold bright_green",
    "subtitle": "dim",
    "dim": "dim white",
})

console = Console(theme=WMADMIN_THEME)

BANNER_SMALL = (
    f"[bold bright_green]⚡ WMAdmin[/] [dim]v{__version__}[/] "
    "[dim]|[/] [bold bright_cyan]WireMock admin front end[/]"
)


def show_banner() -> None:
    console.print(BANNER_SMALL)


# ── Messages ─────────────────────────────────────────────────────────────────

def print_info(text: str) -> None:
    console.print(f"[info]ℹ {text}[/]")


def print_success(text: str) -> None:
    console.print(f"[success]✅ {text}[/]")


def print_warning(text: str) -> None:
    console.print(f"[warning]⚠️  {text}[/]")


def print_error(text: str) -> None:
    console.print(f"[error]❌ {text}[/]")


# ── Status & Info ────────────────────────────────────────────────────────────

def show_config_status(config: Dict[str, Any]) -> None:
    """Display resolved configuration."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")

    for key, value in config.items():
        if isinstance(value, bool):
            value = "✅ Yes" if value else "❌ No"
        elif value in (None, ""):
            value = "[dim]—[/]"
        table.add_row(key, str(value))

    console.print(Panel(table, title="[title]Configuration[/]", border_style="green"))


def show_engine_args(args: List[str]) -> None:
    """Display the launch arguments for the embedded engine."""
    table = Table(title="WireMock launch arguments", show_lines=False)
    table.add_column("#", style="dim")
    table.add_column("Argument", style="bold")
    for i, arg in enumerate(args, 1):
        table.add_row(str(i), arg)
    console.print(table)


# ── Logging ──────────────────────────────────────────────────────────────────

def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Route log records to the rich console and, optionally, a file."""
    handlers: List[logging.Handler] = [
        RichHandler(console=console, show_path=False, rich_tracebacks=True)
    ]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(levelname)s] %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    # Suppress Flask request logging
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
