"""``shipwright ledger RUN_ID``: show a run's ledger and check its hash chain."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shipwright.config import settings
from shipwright.core.run_ledger import LedgerIntegrityError, RunLedger
from shipwright.monitor.renderer import PipelineRenderer

console = Console()


def ledger_cmd(
    run_id: str = typer.Argument(..., help="The run to show."),
    ledger_db: Path | None = typer.Option(
        None, "--ledger", "-l", help="Ledger database (defaults to settings)."
    ),
) -> None:
    """Print every transition of a run, then verify the chain."""
    db_path = ledger_db or settings.ledger_path
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {db_path}")
        raise typer.Exit(code=1)

    ledger = RunLedger(db_path)
    renderer = PipelineRenderer(console=console)
    entries = ledger.get_run_entries(run_id)
    if not entries:
        console.print(f"[bold red]Run not found:[/bold red] {run_id}")
        all_runs = ledger.get_all_run_ids()
        if all_runs:
            console.print("\n[bold]Available runs:[/bold]")
            for rid in all_runs[:10]:
                console.print(f"  [cyan]{rid}[/cyan]")
        raise typer.Exit(code=1)

    console.print(renderer.render_ledger(run_id, entries))
    try:
        ledger.verify_chain(run_id)
    except LedgerIntegrityError as exc:
        renderer.print_chain_verification(run_id, False, str(exc))
        raise typer.Exit(code=1)
    renderer.print_chain_verification(run_id, True)
