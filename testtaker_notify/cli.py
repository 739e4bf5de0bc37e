"""
Test Taker Notification CLI

Usage:
    testtaker-notify                  # Run the sync loop
    testtaker-notify once             # Run a single pass
    testtaker-notify --dry-run once   # Preview without sending or storing
    testtaker-notify status           # Show watermark and ledger
    testtaker-notify forget 42        # Allow test taker 42 to be notified again
    testtaker-notify reset            # Clear all stored state
"""

import signal
import sys
import threading
import traceback
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from testtaker_notify import __version__
from testtaker_notify.config import Config
from testtaker_notify.exceptions import FatalSyncError, StoreError
from testtaker_notify.repository import JsonRepository
from testtaker_notify.scheduler import Scheduler
from testtaker_notify.sync_engine import SyncEngine

console = Console()


def _load_config(ctx: click.Context) -> Config:
    """Load configuration and apply CLI overrides."""
    config = Config.from_env(ctx.obj.get("env_file"))

    overrides = {}
    if ctx.obj.get("debug"):
        overrides["debug"] = True
    if ctx.obj.get("dry_run"):
        overrides["dry_run"] = True

    return replace(config, **overrides) if overrides else config


def _abort(message: str, exc: BaseException, debug: bool, code: int = 1) -> None:
    console.print(f"[red]{message}[/red] {exc}")
    if debug:
        traceback.print_exception(exc)
    sys.exit(code)


@click.group(invoke_without_command=True)
@click.option("--dry-run", is_flag=True, help="Preview notifications without sending or storing anything")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Load environment variables from this file instead of ./.env",
)
@click.pass_context
def cli(ctx, dry_run: bool, debug: bool, env_file: Optional[Path]):
    """
    Test Taker Notification Sync

    Pulls finished test takers from the assessment API and notifies each
    eligible one exactly once.
    """
    ctx.ensure_object(dict)
    ctx.obj["dry_run"] = dry_run
    ctx.obj["debug"] = debug
    ctx.obj["env_file"] = env_file

    # If no subcommand, run the loop
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--max-passes", type=click.IntRange(min=1), default=None, help="Stop after this many passes")
@click.pass_context
def run(ctx, max_passes: Optional[int]):
    """Run sync passes on a fixed interval until stopped."""
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(ctx)
    except ValueError as e:
        _abort("Configuration error:", e, debug)

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    try:
        engine = SyncEngine.from_config(config)
        scheduler = Scheduler(engine, config.fetch_interval, stop_event=stop_event)
        console.print(
            f"[bold]Polling every {config.fetch_interval:g}s[/bold] "
            f"[dim](page size {config.page_size}, threshold {config.eligibility_threshold}%)[/dim]"
        )
        scheduler.run(max_passes=max_passes)
    except (FatalSyncError, StoreError) as e:
        _abort("Error:", e, debug)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)


@cli.command()
@click.pass_context
def once(ctx):
    """Run a single sync pass."""
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(ctx)
    except ValueError as e:
        _abort("Configuration error:", e, debug)

    try:
        engine = SyncEngine.from_config(config)
        result = engine.run_pass()
    except (FatalSyncError, StoreError) as e:
        _abort("Error:", e, debug)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)

    if not result.success:
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show the watermark and notification ledger."""
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(ctx)
        repository = JsonRepository(config.db_path)
        watermark = repository.get_watermark()
    except ValueError as e:
        _abort("Configuration error:", e, debug)
    except StoreError as e:
        _abort("Error:", e, debug)

    console.print("\n[bold]Sync Status[/bold]\n")

    if watermark is None:
        console.print("[yellow]No pass has stored a watermark yet.[/yellow]")
    else:
        try:
            as_date = datetime.fromtimestamp(watermark, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        except (OverflowError, OSError, ValueError):
            console.print(f"Watermark: {watermark} [dim](not a valid date)[/dim]")
        else:
            console.print(f"Watermark: {watermark} [dim]({as_date})[/dim]")

    for title, entries, style in (
        ("Notified", repository.sent_emails(), "green"),
        ("Failed", repository.failed_emails(), "red"),
    ):
        if not entries:
            console.print(f"[dim]{title}: none[/dim]")
            continue

        table = Table(title=f"{title} ({len(entries)})")
        table.add_column("Test taker", style="cyan")
        table.add_column("Email", style=style)
        for entry in entries:
            table.add_row(str(entry.test_taker_id), entry.email)
        console.print(table)


@cli.command()
@click.argument("test_taker_id", type=int)
@click.pass_context
def forget(ctx, test_taker_id: int):
    """Remove a ledger entry so the test taker can be notified again."""
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(ctx)
        repository = JsonRepository(config.db_path)
        removed = repository.forget(test_taker_id)
    except ValueError as e:
        _abort("Configuration error:", e, debug)
    except StoreError as e:
        _abort("Error:", e, debug)

    if removed:
        console.print(f"[green]Forgot test taker {test_taker_id}.[/green]")
    else:
        console.print(f"[yellow]No ledger entry for test taker {test_taker_id}.[/yellow]")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def reset(ctx, yes: bool):
    """Clear the watermark and the notification ledger."""
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(ctx)
    except ValueError as e:
        _abort("Configuration error:", e, debug)

    if not yes:
        console.print("[yellow]This will forget every notification and reset the watermark.[/yellow]")
        if not click.confirm("Are you sure?", default=False):
            console.print("Aborted.")
            return

    try:
        JsonRepository(config.db_path).reset()
    except StoreError as e:
        _abort("Error:", e, debug)

    console.print("[green]Reset complete.[/green]")


@cli.command()
def version():
    """Show version information."""
    console.print(f"Test Taker Notification Sync v{__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
