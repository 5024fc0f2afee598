"""
dropsync CLI entry point.

Each command is one scheduled invocation: the host scheduler (cron,
Task Scheduler) calls `dropsync sync` and repeatedly `dropsync cleanup`;
an edit hook calls `dropsync record-edit KEY`.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from dropsync.application.container import Container
from dropsync.domain.errors import ConfigurationError
from dropsync.domain.models import CleanupOutcome, utcnow
from dropsync.infrastructure.config_loader import DEFAULT_CONFIG_FILE, ConfigLoader
from dropsync.infrastructure.logging_config import setup_logging
from dropsync.interface.formatters import show_cleanup_result, show_status, show_sync_result

logger = logging.getLogger(__name__)
console = Console()

app = typer.Typer(
    name="dropsync",
    help="🔁 Transfer dropped records and clean up the source sheet",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_dir: Path = typer.Option(Path("config"), "--config-dir", help="Directory holding the config file"),
    config_file: str = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="Config file name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write logs to file"),
):
    """
    🔁 dropsync - dropped-record transfer with resumable source cleanup

    🎯 **Commands:**
    - `dropsync sync` - classify, transfer and queue dropped rows
    - `dropsync cleanup` - run one time-boxed cleanup pass
    - `dropsync status` - show queue, cycle and recent edits
    - `dropsync record-edit KEY` - mark a key as just edited
    - `dropsync reset` - discard queue and cleanup state
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    ctx.obj = {"config_dir": config_dir, "config_file": config_file}


def _container(ctx: typer.Context) -> Container:
    try:
        settings = ConfigLoader(ctx.obj["config_dir"]).load_settings(ctx.obj["config_file"])
    except ConfigurationError as e:
        logger.error("%s", e)
        console.print(f"[red]❌ Configuration error:[/red] {e}")
        raise typer.Exit(1)
    return Container(settings)


@app.command("sync")
def sync_command(ctx: typer.Context):
    """Classify source rows, transfer them and replace the deletion queue."""
    container = _container(ctx)
    try:
        result = container.sync_service().run()
    finally:
        container.close()
    show_sync_result(result)
    if not result.success:
        raise typer.Exit(1)


@app.command("cleanup")
def cleanup_command(ctx: typer.Context):
    """Run one cleanup pass (schedule this repeatedly)."""
    container = _container(ctx)
    try:
        result = container.cleanup_service().run()
    finally:
        container.close()
    show_cleanup_result(result)
    if result.outcome in (CleanupOutcome.FAILED_RETRY, CleanupOutcome.FAILED_TERMINAL):
        raise typer.Exit(1)


@app.command("status")
def status_command(ctx: typer.Context):
    """Show the deletion queue, the cleanup cycle and recent edits."""
    container = _container(ctx)
    try:
        show_status(
            container.queue.read(),
            container.states.load(),
            container.tracker.entries(),
            utcnow(),
        )
    finally:
        container.close()


@app.command("record-edit")
def record_edit_command(
    ctx: typer.Context,
    new_value: str = typer.Argument(..., help="New key cell value"),
    old_value: Optional[str] = typer.Option(None, "--old", help="Previous key cell value"),
    column: Optional[str] = typer.Option(None, "--column", help="Edited column header (defaults to the key column)"),
):
    """Record an external edit of a key cell (edit-observer hook)."""
    container = _container(ctx)
    try:
        header = column or container.settings.headers.key
        recorded = container.edit_observer.on_edit(header, old_value, new_value)
    finally:
        container.close()
    if recorded:
        console.print(f"[green]✅ Recorded edit:[/green] {', '.join(k.upper() for k in recorded)}")
    else:
        console.print("[dim]Nothing recorded (not the key column, or blank value)[/dim]")


@app.command("reset")
def reset_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Discard the deletion queue and any in-flight cleanup cycle."""
    if not yes and not typer.confirm("Discard the deletion queue and cleanup state?"):
        raise typer.Exit(1)
    container = _container(ctx)
    try:
        container.queue.clear()
        container.states.clear()
    finally:
        container.close()
    logger.warning("Deletion queue and cleanup state reset by operator")
    console.print("[yellow]⚠️  Queue and cleanup state cleared[/yellow]")


@app.command("validate-config")
def validate_config_command(ctx: typer.Context):
    """Check that the configuration file loads."""
    container = _container(ctx)
    container.close()
    console.print("[green]✅ Configuration is valid[/green]")


def main() -> int:
    """Console-script entry point."""
    try:
        app()
        return 0
    except Exception as e:
        logger.exception("dropsync failed: %s", e)
        console.print(f"[red]❌ Error:[/red] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
