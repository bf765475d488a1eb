"""``shipwright matrix``: show the configured platform matrix."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shipwright.models.config import load_pipeline_config
from shipwright.monitor.renderer import PipelineRenderer

console = Console()


def matrix_cmd(
    config_path: Path | None = typer.Option(None, "--config", help="Configuration file."),
) -> None:
    """Print one row per platform job."""
    config = load_pipeline_config(config_path)
    console.print(PipelineRenderer(console=console).render_matrix(config))
    binaries = ", ".join(f"{b.stem} ({b.kind.value}, {b.toolchain})" for b in config.binaries)
    console.print(f"[bold]Binaries:[/bold] {binaries}")
