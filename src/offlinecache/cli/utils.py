"""
CLI Utilities

Shared utilities for CLI commands: logging setup, configuration loading,
engine construction and rich formatting.
"""

import logging
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from offlinecache.core.config import AppConfig, ConfigManager
from offlinecache.core.events import EventEmitter, LoggingObserver
from offlinecache.core.exceptions import ConfigurationError
from offlinecache.engine import CacheEngine
from offlinecache.network import Fetcher
from offlinecache.storage import DiskCacheStorage

console = Console()


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Set up logging configuration for the application."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True
    )


def load_config_from_cli(
    config_file: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None
) -> AppConfig:
    """
    Load configuration from CLI arguments with proper error handling.

    Args:
        config_file: Optional path to configuration file
        cli_args: Dictionary of CLI arguments to override config

    Returns:
        Validated AppConfig instance

    Raises:
        typer.Exit: If configuration is invalid
    """
    from offlinecache.cli.error_handling import handle_error

    try:
        config_manager = ConfigManager(config_file=config_file)
        return config_manager.load_config(cli_args=cli_args or {})
    except ConfigurationError as e:
        handle_error(e)


def build_engine(config: AppConfig, fetcher: Optional[Fetcher] = None) -> CacheEngine:
    """
    Build a disk-backed engine with a logging observer attached.

    The CLI always uses the disk backend so state survives between commands.
    """
    events = EventEmitter()
    events.subscribe('*', LoggingObserver(log_level=logging.DEBUG))

    storage = DiskCacheStorage(config.storage.directory)
    return CacheEngine(config, storage=storage, fetcher=fetcher, events=events)


def print_header(title: str, subtitle: Optional[str] = None) -> None:
    """Print a formatted header for CLI output."""
    if subtitle:
        header_text = f"[bold cyan]{title}[/bold cyan]\n[dim]{subtitle}[/dim]"
    else:
        header_text = f"[bold cyan]{title}[/bold cyan]"

    console.print(Panel(header_text, border_style="cyan"))


def format_size(size: int) -> str:
    """Human readable byte count."""
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024 or unit == 'GB':
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def print_cache_result(reply: Dict[str, Any], title: str = "Cache Result") -> None:
    """Print a cached/failed reply as a table."""
    table = Table(title=title, show_lines=False)
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Status")

    for url in reply.get('cached', []):
        table.add_row(str(url), "[green]cached[/green]")
    for failure in reply.get('failed', []):
        table.add_row(str(failure['url']), f"[red]{failure['reason']}[/red]")

    console.print(table)
    print_reply_status(reply)


def print_cache_info(cache_info: Dict[str, Dict[str, int]]) -> None:
    """Print per-bucket entry counts and sizes."""
    if not cache_info:
        console.print("[yellow]No buckets[/yellow]")
        return

    table = Table(title="Buckets")
    table.add_column("Bucket", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Size", justify="right")

    for name, info in cache_info.items():
        table.add_row(name, str(info['entries']), format_size(info['estimatedSize']))

    console.print(table)


def print_reply_status(reply: Dict[str, Any]) -> None:
    """Print the overall success or error of a control reply."""
    if reply.get('success'):
        console.print("[bold green]✓ Done[/bold green]")
    elif reply.get('error'):
        console.print(Panel(
            f"[red]{reply['error']}[/red]",
            title="[red]Request Failed[/red]",
            border_style="red"
        ))
    else:
        console.print("[bold red]✗ All URLs failed[/bold red]")


def print_list(title: str, items: List[str], empty: str = "None") -> None:
    """Print a titled bullet list."""
    console.print(f"[bold]{title}[/bold]")
    if not items:
        console.print(f"  [dim]{empty}[/dim]")
    for item in items:
        console.print(f"  • {item}")


def handle_keyboard_interrupt() -> None:
    """Handle keyboard interrupt gracefully."""
    console.print("\n[yellow]Operation cancelled by user[/yellow]")
    raise typer.Exit(1)
