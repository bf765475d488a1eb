"""``shipwright checksums DIR``: write or verify ``.sha256`` sidecars."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shipwright.core.errors import ChecksumMismatch
from shipwright.release.checksums import ChecksumService

console = Console()


def checksums_cmd(
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Release directory."),
    verify: bool = typer.Option(
        False, "--verify", help="Verify existing sidecars instead of writing them."
    ),
) -> None:
    """Write a sidecar per archive, or verify every sidecar present."""
    service = ChecksumService()
    if verify:
        try:
            names = service.verify_directory(directory)
        except ChecksumMismatch as exc:
            console.print(f"[bold red]Checksum mismatch:[/bold red] {exc}")
            raise typer.Exit(code=1)
        if not names:
            console.print("[yellow]No checksum files found.[/yellow]")
            raise typer.Exit(code=1)
        for name in names:
            console.print(f"[green]OK[/green] {name}")
        return

    records = service.generate_directory(directory)
    for record in records:
        console.print(record.line, highlight=False)
    if not records:
        console.print("[yellow]No archives found.[/yellow]")
