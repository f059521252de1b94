#!/usr/bin/env python3
"""
OfflineCache CLI Main Application

Typer-based command-line interface for populating, inspecting and
clearing a disk-backed cache, and for routing single requests through it.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from offlinecache.cli import __version__
from offlinecache.cli.error_handling import handle_error
from offlinecache.cli.utils import (
    build_engine,
    format_size,
    handle_keyboard_interrupt,
    load_config_from_cli,
    print_cache_info,
    print_cache_result,
    print_header,
    print_list,
    print_reply_status,
    setup_logging,
)
from offlinecache.core.config import AppConfig, ConfigManager
from offlinecache.core.exceptions import ConfigurationError, ErrorCode, OfflineCacheError
from offlinecache.http import NAVIGATE, Request

console = Console()

# Create main Typer application
app = typer.Typer(
    name="offlinecache",
    help="Client-side cache orchestration: buckets, strategies and a control protocol",
    context_settings={"help_option_names": ["-h", "--help"]},
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def version_callback(value: bool):
    """Show version information."""
    if value:
        console.print(f"[bold cyan]OfflineCache[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def app_callback(
    ctx: typer.Context,
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Configuration file path")] = None,
    storage_dir: Annotated[Optional[Path], typer.Option("--storage-dir", help="Cache directory")] = None,
    origin: Annotated[Optional[str], typer.Option("--origin", help="Origin relative URLs resolve against")] = None,
    verbose: Annotated[Optional[bool], typer.Option("--verbose", help="Enable verbose output")] = None,
    debug: Annotated[Optional[bool], typer.Option("--debug", help="Enable debug logging")] = None,
    version: Annotated[Optional[bool], typer.Option(
        "--version", "-V", callback=version_callback, is_eager=True, help="Show version information and exit"
    )] = None,
):
    """
    OfflineCache - client-side cache orchestration

    [bold]Quick Start:[/bold]

    • Populate persistent buckets: [cyan]offlinecache install[/cyan]
    • Cache a page: [cyan]offlinecache cache --page siga pages/siga.html[/cyan]
    • Show buckets: [cyan]offlinecache info[/cyan]
    • Route a request: [cyan]offlinecache fetch css/style.css --destination style[/cyan]
    """
    ctx.obj = {
        'config_file': config,
        'cli_args': {
            'storage_dir': storage_dir,
            'origin': origin,
            'verbose': verbose,
            'debug': debug,
        },
    }


def _load_config(ctx: typer.Context) -> AppConfig:
    obj: Dict[str, Any] = ctx.obj or {}
    app_config = load_config_from_cli(obj.get('config_file'), obj.get('cli_args'))
    setup_logging(app_config.verbose, app_config.debug)
    return app_config


def _run(coro):
    try:
        return asyncio.run(coro)
    except OfflineCacheError as e:
        handle_error(e)
    except KeyboardInterrupt:
        handle_keyboard_interrupt()


@app.command("install")
def install_command(
    ctx: typer.Context,
    activate: Annotated[bool, typer.Option("--activate/--no-activate", help="Activate after install")] = True,
):
    """Populate the persistent buckets from the configured manifests."""
    app_config = _load_config(ctx)
    print_header("Install", f"Origin: {app_config.routing.origin}")

    async def _install():
        async with build_engine(app_config) as engine:
            report = await engine.lifecycle.install()
            deleted = await engine.activate() if activate else []
            return report, deleted

    report, deleted = _run(_install())

    table = Table(title="Install")
    table.add_column("URL", style="cyan", overflow="fold")
    table.add_column("Status")
    for url in report.cached:
        table.add_row(str(url), "[green]cached[/green]")
    for failure in report.failed:
        table.add_row(str(failure.url), f"[red]{failure.reason}[/red]")
    console.print(table)

    if activate:
        print_list("Deleted stale buckets", deleted)
    console.print(f"[bold green]✓ Cached {len(report.cached)} URLs, {len(report.failed)} failed[/bold green]")


@app.command("info")
def info_command(ctx: typer.Context):
    """Show entry counts and sizes per bucket."""
    app_config = _load_config(ctx)

    async def _info():
        async with build_engine(app_config) as engine:
            return await engine.post_message({'type': 'INFO'})

    reply = _run(_info())
    if not reply.get('success'):
        print_reply_status(reply)
        raise typer.Exit(1)
    print_cache_info(reply['cacheInfo'])


@app.command("cache")
def cache_command(
    ctx: typer.Context,
    urls: Annotated[List[str], typer.Argument(help="URLs to cache")],
    page: Annotated[Optional[str], typer.Option("--page", "-p", help="Page id whose bucket receives the URLs")] = None,
):
    """Cache URLs in the runtime bucket, or in a page bucket with --page."""
    app_config = _load_config(ctx)

    if page is not None:
        message = {'type': 'PAGE_CACHE', 'payload': {'pageId': page, 'urls': urls}}
    else:
        message = {'type': 'BULK_CACHE', 'payload': {'urls': urls}}

    async def _cache():
        async with build_engine(app_config) as engine:
            return await engine.post_message(message)

    reply = _run(_cache())
    if 'error' in reply:
        print_reply_status(reply)
        raise typer.Exit(1)

    print_cache_result(reply, title=f"Page {page}" if page else "Runtime")
    if not reply.get('success'):
        raise typer.Exit(1)


@app.command("clear")
def clear_command(
    ctx: typer.Context,
    bucket: Annotated[Optional[str], typer.Option("--bucket", "-b", help="Bucket to delete (default: all)")] = None,
):
    """Delete one bucket or every bucket."""
    app_config = _load_config(ctx)
    payload = {'bucketName': bucket} if bucket else {}

    async def _clear():
        async with build_engine(app_config) as engine:
            return await engine.post_message({'type': 'CLEAR', 'payload': payload})

    reply = _run(_clear())
    if not reply.get('success'):
        print_reply_status(reply)
        raise typer.Exit(1)
    print_list("Cleared buckets", reply['cleared'], empty="Nothing to clear")


@app.command("evict")
def evict_command(ctx: typer.Context):
    """Run one eviction sweep over runtime and page buckets."""
    app_config = _load_config(ctx)

    async def _evict():
        async with build_engine(app_config) as engine:
            return await engine.evict()

    reports = _run(_evict())
    if not reports:
        console.print(
            f"[green]All buckets under {app_config.eviction.max_bucket_size_mb:g} MB, nothing evicted[/green]"
        )
        return

    table = Table(title="Eviction")
    table.add_column("Bucket", style="cyan")
    table.add_column("Size before", justify="right")
    table.add_column("Removed", justify="right")
    for report in reports:
        table.add_row(
            report.bucket,
            format_size(report.size_before),
            f"{report.entries_removed}/{report.entries_before}",
        )
    console.print(table)


@app.command("fetch")
def fetch_command(
    ctx: typer.Context,
    url: Annotated[str, typer.Argument(help="URL to route, relative to the origin")],
    destination: Annotated[str, typer.Option("--destination", "-d", help="Request destination (style, script, font, image, ...)")] = "",
    navigate: Annotated[bool, typer.Option("--navigate", help="Treat as a navigation request")] = False,
    byte_range: Annotated[Optional[str], typer.Option("--range", "-r", help="Range header, e.g. bytes=0-1023")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write the response body to a file")] = None,
):
    """Route one request through the engine as an intercepted fetch."""
    app_config = _load_config(ctx)

    headers = {'Range': byte_range} if byte_range else {}
    request = Request.for_url(
        url,
        app_config.routing.origin,
        destination=destination,
        mode=NAVIGATE if navigate else "no-cors",
        headers=headers,
    )

    async def _fetch():
        async with build_engine(app_config) as engine:
            await engine.activate()
            route = engine.router.classify(request)
            response = await engine.intercept(request)
            return route, response

    route, response = _run(_fetch())

    if response is None:
        console.print(f"[yellow]Not intercepted:[/yellow] {request.url}")
        return

    console.print(f"[bold]{route.strategy}[/bold] via rule [cyan]{route.rule}[/cyan] → {route.bucket}")
    status_style = "green" if response.ok else "red"
    console.print(f"[{status_style}]{response.status} {response.status_text}[/{status_style}] {format_size(len(response.body))}")
    for name, value in response.headers.items():
        console.print(f"  [dim]{name}:[/dim] {value}")

    if output is not None:
        output.write_bytes(response.body)
        console.print(f"[green]Wrote {len(response.body)} bytes to {output}[/green]")


@app.command("init-config")
def init_config_command(
    path: Annotated[Path, typer.Argument(help="Where to write the configuration")] = Path("offlinecache.yaml"),
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
):
    """Write the default configuration as YAML."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists; use --force to overwrite[/yellow]")
        raise typer.Exit(1)

    try:
        ConfigManager().create_example_config(path)
    except OSError as e:
        handle_error(ConfigurationError(
            f"Cannot write {path}: {e}",
            error_code=ErrorCode.CONFIG_INVALID_VALUE,
            config_key="path",
            config_value=str(path),
            cause=e
        ))
    console.print(f"[green]✓ Wrote default configuration to {path}[/green]")


def main():
    """Entry point for the offlinecache console script."""
    app()


if __name__ == "__main__":
    main()
