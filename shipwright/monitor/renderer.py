"""Rich terminal rendering of runs, ledgers and the platform matrix.

Color scheme
------------
- green     : SUCCEEDED
- red       : FAILED
- yellow    : RUNNING
- dim       : PENDING
- bold red  : BLOCKED
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from shipwright.models.jobs import JobStatus

if TYPE_CHECKING:
    from shipwright.core.coordinator import PipelineResult
    from shipwright.models.config import PipelineConfig
    from shipwright.models.ledger import LedgerEntry


_STATUS_ICONS: dict[JobStatus, str] = {
    JobStatus.SUCCEEDED: "[green]SUCCEEDED[/green]",
    JobStatus.FAILED: "[bold red]FAILED[/bold red]",
    JobStatus.RUNNING: "[yellow]RUNNING[/yellow]",
    JobStatus.PENDING: "[dim]PENDING[/dim]",
    JobStatus.BLOCKED: "[bold red]BLOCKED[/bold red]",
}


class PipelineRenderer:
    """Renders pipeline results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance. A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Run result
    # ------------------------------------------------------------------

    def render_result(self, result: PipelineResult) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Job", min_width=16)
        table.add_column("Status", justify="center", min_width=12)
        table.add_column("Attempts", justify="right", width=9)
        table.add_column("Details", min_width=24)

        for outcome in result.outcomes:
            if outcome.error:
                details = f"[red]{outcome.error}[/red]"
            elif outcome.artifact_set is not None:
                notarized = " (notarized)" if outcome.artifact_set.notarized else ""
                details = f"{outcome.artifact_set.store_name}{notarized}"
            else:
                details = "[dim]-[/dim]"
            table.add_row(
                outcome.platform,
                _STATUS_ICONS[outcome.status],
                str(outcome.build_attempts) if outcome.build_attempts else "[dim]-[/dim]",
                details,
            )

        release_details = "[dim]-[/dim]"
        if result.release_error:
            release_details = f"[red]{result.release_error}[/red]"
        elif result.release_outcome is not None:
            ro = result.release_outcome
            if ro.release is not None:
                release_details = f"draft {ro.release.tag_name} {ro.release.html_url}".strip()
            elif ro.stored_as:
                release_details = f"stored as {ro.stored_as}"
        table.add_row("create-release", _STATUS_ICONS[result.release_status], "", release_details)

        summary_parts = [
            f"[bold]Run:[/bold] {result.run_id}",
            f"[bold]Ref:[/bold] {result.event.ref}",
            f"[bold]Commit:[/bold] {result.event.sha[:12]}",
        ]
        if result.release_outcome is not None:
            summary_parts.append(f"[bold]Version:[/bold] {result.release_outcome.version.value}")
            summary_parts.append(f"[bold]Archives:[/bold] {len(result.release_outcome.archives)}")

        return Panel(
            Group(table, Text(""), Text.from_markup("  |  ".join(summary_parts))),
            title="[bold]shipwright[/bold]",
            border_style="green" if result.succeeded else "red",
            padding=(1, 2),
        )

    def print_result(self, result: PipelineResult) -> None:
        self.console.print(self.render_result(result))

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def render_ledger(self, run_id: str, entries: list[LedgerEntry]) -> Table:
        table = Table(title=f"Ledger for {run_id}", header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", justify="right", width=4)
        table.add_column("Time", width=10)
        table.add_column("Node", min_width=16)
        table.add_column("Transition", min_width=20)
        table.add_column("Detail")
        table.add_column("Hash", style="dim", width=14)

        for i, entry in enumerate(entries):
            table.add_row(
                str(i),
                entry.timestamp_utc.strftime("%H:%M:%S"),
                entry.node_id,
                entry.state_transition,
                entry.detail or "[dim]-[/dim]",
                entry.entry_hash[:12],
            )
        return table

    def print_chain_verification(self, run_id: str, valid: bool, error: str = "") -> None:
        if valid:
            self.console.print(f"[green]Hash chain for {run_id} is valid.[/green]")
        else:
            self.console.print(f"[bold red]Hash chain for {run_id} is BROKEN.[/bold red]")
            if error:
                self.console.print(f"[red]{error}[/red]")

    # ------------------------------------------------------------------
    # Matrix
    # ------------------------------------------------------------------

    def render_matrix(self, config: PipelineConfig) -> Table:
        table = Table(title="Platform matrix", header_style="bold cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Runner")
        table.add_column("OS/arch")
        table.add_column("Project file")
        table.add_column("GHC", justify="right")
        table.add_column("Archives")
        table.add_column("Notes")

        for p in config.matrix:
            notes = []
            if p.container:
                notes.append(f"container {p.container}")
            if p.rust_features:
                notes.append(f"features {','.join(p.rust_features)}")
            if p.needs_relaxed_entitlement:
                notes.append("relaxed entitlement")
            if p.is_macos:
                notes.append("notarized on tags")
            table.add_row(
                p.name,
                p.runner,
                f"{p.os_family.value}/{p.arch}",
                p.project_file,
                p.toolchain_version,
                ", ".join(f.value for f in p.archive_formats),
                "; ".join(notes) or "[dim]-[/dim]",
            )
        return table
