"""``shipwright cache-key PLAN``: derive the dependency cache key of a plan."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shipwright.core.cache import CacheKeyDeriver, PlanFormatError
from shipwright.models.config import load_pipeline_config

console = Console()


def cache_key_cmd(
    plan: Path = typer.Argument(..., exists=True, dir_okay=False, help="Resolved plan.json."),
    platform: str = typer.Option("Linux", "--platform", "-p", help="Matrix entry name."),
    config_path: Path | None = typer.Option(None, "--config", help="Configuration file."),
) -> None:
    """Print the cache key and its restore-key fallbacks."""
    config = load_pipeline_config(config_path)
    try:
        spec = config.platform(platform)
        key = CacheKeyDeriver().derive_from_file(plan, spec)
    except (KeyError, PlanFormatError) as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]key:[/bold] {key.key}")
    for fallback in key.restore_keys:
        console.print(f"[dim]restore:[/dim] {fallback}")
