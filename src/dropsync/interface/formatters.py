"""
CLI result formatters.

Rich tables and panels for job results, separating display from the
command wiring in cli.py.
"""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dropsync.domain.keys import display_key
from dropsync.domain.models import CleanupOutcome, CleanupPassResult, CleanupState, SyncResult

console = Console()

OUTCOME_STYLES = {
    CleanupOutcome.NO_QUEUE: "dim",
    CleanupOutcome.PARTIAL_PASS: "yellow",
    CleanupOutcome.COMPLETED: "green",
    CleanupOutcome.EXHAUSTED: "red",
    CleanupOutcome.FAILED_RETRY: "yellow",
    CleanupOutcome.FAILED_TERMINAL: "red",
}


def show_sync_result(result: SyncResult) -> None:
    if not result.success:
        console.print(Panel(f"[red]{result.error}[/red]", title="❌ Sync failed", border_style="red"))
        return

    run = result.run
    table = Table(title="Sync Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Rows with target status", str(run.scanned))
    table.add_row("Routed to A", str(len(run.routed_a)))
    table.add_row("Routed to B", str(len(run.routed_b)))
    table.add_row("Already transferred", str(len(run.duplicates)))
    table.add_row("Rejected", f"[yellow]{run.rejected_count}[/yellow]")
    table.add_row("Queued for cleanup", f"[bold]{len(result.queued)}[/bold]")
    console.print(table)
    if not result.lock_acquired:
        console.print("[yellow]⚠️  Ran without the job lock[/yellow]")


def show_cleanup_result(result: CleanupPassResult) -> None:
    style = OUTCOME_STYLES.get(result.outcome, "white")
    lines = [
        f"Outcome: [{style}]{result.outcome.value}[/{style}]",
        f"Pass: {result.pass_number}",
        f"Deleted this pass: {result.deleted_this_run}",
        f"Skipped (recent edits): {result.skipped_this_run}",
        f"Remaining: {result.remaining}",
    ]
    if result.not_found:
        lines.append(f"Not found: {', '.join(display_key(k) for k in result.not_found)}")
    if result.report_subject:
        lines.append(f"Report: {result.report_subject}")
    if result.error:
        lines.append(f"[red]Error: {result.error}[/red]")
    console.print(Panel("\n".join(lines), title="🧹 Cleanup", border_style=style))


def show_status(
    queue: list[str],
    state: CleanupState | None,
    edits: dict[str, datetime],
    now: datetime,
) -> None:
    console.print(f"[bold]Deletion queue:[/bold] {len(queue)} keys")
    if state is None:
        console.print("[dim]No cleanup cycle in progress[/dim]")
    else:
        table = Table(title=f"Cleanup cycle (started {state.started_at:%Y-%m-%d %H:%M})")
        table.add_column("Pass", justify="right")
        table.add_column("Chunks", justify="right")
        table.add_column("Deleted", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Remaining", justify="right")
        for s in state.pass_summaries:
            table.add_row(
                str(s.pass_number),
                str(s.scanned_chunks),
                str(s.deleted_this_run),
                str(s.skipped_this_run),
                str(s.remaining_after),
            )
        console.print(table)
        console.print(
            f"Passes used: {state.passes}, deleted {len(state.deleted)}, "
            f"remaining {len(state.remaining)}"
        )

    if edits:
        table = Table(title="Recent edits")
        table.add_column("Key", style="cyan")
        table.add_column("Age (s)", justify="right")
        for key, ts in sorted(edits.items(), key=lambda kv: kv[1], reverse=True):
            table.add_row(display_key(key), f"{(now - ts).total_seconds():.0f}")
        console.print(table)
