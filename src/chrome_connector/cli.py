"""CLI module for mcp-chrome-connector."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from chrome_connector import __version__
from chrome_connector.config import EnvConfig, load_connector_config, split_csv
from chrome_connector.screenshots.service import ScreenshotStore
from chrome_connector.security.validator import SecurityValidator
from chrome_connector.security.views import DEFAULT_BLOCKED_DOMAINS, SecurityPolicy

console = Console(stderr=True)

DEFAULT_SCREENSHOT_DIR = "./screenshots"


@click.group()
@click.version_option(version=__version__, prog_name="chrome-connector")
def cli():
    """MCP Chrome Connector - session-scoped browser automation over MCP."""
    load_dotenv()


@cli.command()
@click.option("--headless/--no-headless", default=None, help="Override BROWSER_HEADLESS")
@click.option("--log-level", default=None, help="Override LOG_LEVEL (debug, info, warning, error)")
def serve(headless: Optional[bool], log_level: Optional[str]):
    """Run the MCP server on stdio.

    Standard output is reserved for the protocol; logs go to LOG_FILE, and
    to stderr as well when MCP_DEBUG is set.
    """
    from chrome_connector.mcp.server import main as server_main

    config = load_connector_config()
    if headless is not None:
        config = config.model_copy(update={"browser": config.browser.model_copy(update={"headless": headless})})
    if log_level:
        config = config.model_copy(update={"logging": config.logging.model_copy(update={"level": log_level})})

    asyncio.run(server_main(config))


@cli.command("check-url")
@click.argument("url")
@click.option("--allow", "allowed", multiple=True, help="Allowed domain (repeatable). Defaults to ALLOWED_DOMAINS")
@click.option("--block", "blocked", multiple=True, help="Blocked domain (repeatable). Defaults to BLOCKED_DOMAINS")
def check_url(url: str, allowed: tuple[str, ...], blocked: tuple[str, ...]):
    """Check a URL against the navigation policy."""
    env = EnvConfig()
    if not allowed:
        allowed = tuple(split_csv(env.ALLOWED_DOMAINS))
    if not blocked:
        blocked = tuple(split_csv(env.BLOCKED_DOMAINS)) if env.BLOCKED_DOMAINS is not None else DEFAULT_BLOCKED_DOMAINS

    validator = SecurityValidator(SecurityPolicy(allowed_domains=allowed, blocked_domains=blocked))
    result = validator.validate_url(url)

    if result:
        console.print(f"[green]Allowed:[/green] {url}")
        return

    console.print(f"[red]Rejected:[/red] {url}\n  {result.error}")
    raise SystemExit(1)


@cli.group()
@click.option(
    "--dir",
    "directory",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Screenshot directory. Defaults to SCREENSHOT_DIR",
)
@click.pass_context
def screenshots(ctx: click.Context, directory: Optional[Path]):
    """Inspect and clean up saved screenshots."""
    if directory is None:
        directory = load_connector_config().screenshot_dir or Path(DEFAULT_SCREENSHOT_DIR)
    ctx.obj = ScreenshotStore(directory)


@screenshots.command()
@click.pass_obj
def info(store: ScreenshotStore):
    """Show the screenshot directory summary."""
    details = store.get_directory_info()
    lines = [
        f"Path: {details['path']}",
        f"Files: {details['totalFiles']}",
        f"Size: {details['totalSize'] / 1024:.1f} KB",
    ]
    if details.get("oldestFile"):
        lines.append(f"Oldest: {details['oldestFile']}")
        lines.append(f"Newest: {details['newestFile']}")
    console.print(Panel.fit("\n".join(lines), title="Screenshots"))


@screenshots.command()
@click.option("--days", default=7.0, show_default=True, type=float, help="Delete files older than this many days")
@click.pass_obj
def cleanup(store: ScreenshotStore, days: float):
    """Delete old screenshots."""
    deleted = store.cleanup_old_screenshots(days_old=days)
    console.print(f"[green]Deleted {deleted} screenshot(s) older than {days:g} days[/green]")


@screenshots.command()
@click.option("--limit", default=10, show_default=True, type=int, help="Number of files to list")
@click.pass_obj
def recent(store: ScreenshotStore, limit: int):
    """List the most recent screenshots."""
    paths = store.get_recent_screenshots(limit=limit)
    if not paths:
        console.print("[yellow]No screenshots found[/yellow]")
        return

    table = Table(title="Recent screenshots")
    table.add_column("File")
    table.add_column("Modified")
    table.add_column("Size", justify="right")
    for path in paths:
        stat = path.stat()
        table.add_row(
            path.name,
            datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S"),
            f"{stat.st_size / 1024:.1f} KB",
        )
    console.print(table)


def main():
    """Main entry point for the ``chrome-connector`` command."""
    cli()


if __name__ == "__main__":
    main()
