"""Console rendering helpers for the s3-concat CLI."""
from __future__ import annotations

from typing import Any, Dict
import time

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .models import ConcatReport, SessionState, UploadSession
from .utils.events import ConcatEvent, PartProgress

console = Console()
error_console = Console(stderr=True)


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, escape(rendered))

    panel = Panel(
        table,
        title="[bold green]s3-concat[/bold green]",
        subtitle="[dim]remote concatenation[/dim]",
        border_style="blue",
    )
    console.print(panel)


class ConcatProgressDisplay:
    """
    Event-based console display for a concatenation run.

    Informational lines go to stdout and are dropped in quiet mode;
    errors always go to stderr.
    """

    def __init__(self, quiet: bool = False):
        self._quiet = quiet
        self._stats: Dict[str, int] = {
            "matched": 0,
            "copied": 0,
            "completed": 0,
            "aborted": 0,
            "removed": 0,
        }

    def attach(self, orchestrator) -> None:
        orchestrator.on(ConcatEvent.MATCH, self.on_match)
        orchestrator.on(ConcatEvent.PART_COPIED, self.on_part_copied)
        orchestrator.on(ConcatEvent.COMPLETING, self.on_completing)
        orchestrator.on(ConcatEvent.COMPLETED, self.on_completed)
        orchestrator.on(ConcatEvent.ABORTING, self.on_aborting)
        orchestrator.on(ConcatEvent.ABORTED, self.on_aborted)
        orchestrator.on(ConcatEvent.REMOVING, self.on_removing)
        orchestrator.on(ConcatEvent.REMOVED, self.on_removed)
        orchestrator.on(ConcatEvent.ERROR, self.on_error)

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def _info(self, message: str) -> None:
        if not self._quiet:
            console.print(message, highlight=False)

    def _timeline(self, status: str, color: str, message: str) -> None:
        stamp = time.strftime("%H:%M:%S")
        self._info(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {message}")

    def on_match(self, source_key: str, target_key: str, part_number: int) -> None:
        self._stats["matched"] += 1
        self._info(f"Concatenating {escape(source_key)} -> {escape(target_key)}")

    def on_part_copied(self, progress: PartProgress) -> None:
        self._stats["copied"] += 1
        self._timeline(
            "COPY",
            "cyan",
            f"{escape(progress.target_key)} part {progress.part_number}/"
            f"{progress.total_parts} <- {escape(progress.source_key)}",
        )

    def on_completing(self, session: UploadSession) -> None:
        self._info(f"Completing {escape(session.upload_id or session.target_key)}...")

    def on_completed(self, session: UploadSession) -> None:
        self._stats["completed"] += 1
        self._timeline("DONE", "green", escape(session.target_key))

    def on_aborting(self, session: UploadSession) -> None:
        self._info(f"Aborting {escape(session.upload_id or session.target_key)}...")

    def on_aborted(self, session: UploadSession) -> None:
        self._stats["aborted"] += 1
        self._timeline("FAIL", "red", f"{escape(session.target_key)} aborted")

    def on_removing(self, key: str) -> None:
        self._info(f"Removing {escape(key)}...")

    def on_removed(self, key: str) -> None:
        self._stats["removed"] += 1

    def on_error(self, error: Exception) -> None:
        error_console.print(f"[red]Error:[/red] {escape(str(error))}", highlight=False)

    def on_finish(self, report: ConcatReport) -> None:
        if self._quiet:
            return

        if report.sessions:
            table = Table(title="Dry run plan" if report.dry_run else "Targets")
            table.add_column("Target", style="bold")
            table.add_column("Parts", justify="right")
            table.add_column("State")
            for session in report.sessions:
                color = {
                    SessionState.COMPLETED: "green",
                    SessionState.ABORTED: "red",
                }.get(session.state, "yellow")
                table.add_row(
                    escape(session.target_key),
                    str(session.part_count),
                    f"[{color}]{session.state.value}[/{color}]",
                )
            console.print(table)

        console.print(
            f"[bold]Finished[/bold] targets={len(report.sessions)} "
            f"completed={len(report.completed)} aborted={len(report.aborted)} "
            f"removed={len(report.deleted_keys)}",
            highlight=False,
        )
