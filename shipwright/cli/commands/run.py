"""``shipwright run``: run the release pipeline for a push event.

Fans out one job per platform, then creates a draft release (version
tags) or stores the archives for manual retrieval (anything else).
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shipwright.config import settings
from shipwright.core.coordinator import MatrixCoordinator
from shipwright.core.errors import ConfigurationError
from shipwright.models.config import load_pipeline_config
from shipwright.models.release import PushEvent
from shipwright.monitor.renderer import PipelineRenderer

console = Console()


def run_cmd(
    ref: str = typer.Option(
        ..., "--ref", envvar="GITHUB_REF", help="Git ref that triggered the run."
    ),
    sha: str = typer.Option(
        ..., "--sha", envvar="GITHUB_SHA", help="Full commit identifier."
    ),
    parent_sha: str = typer.Option(
        "", "--parent-sha", help="Parent commit, used as a build-cache fallback."
    ),
    workflow_ref: str = typer.Option(
        "",
        "--workflow-ref",
        envvar="GITHUB_WORKFLOW_REF",
        help="Workflow identity the transparency-log signatures are bound to.",
    ),
    source_dir: Path = typer.Option(
        Path("."), "--source-dir", "-C", help="Source checkout to build."
    ),
    platforms: list[str] = typer.Option(
        [], "--platform", "-p", help="Only run these matrix entries (repeatable)."
    ),
    config_path: Path | None = typer.Option(
        None, "--config", help="shipwright.toml or pyproject.toml to load."
    ),
) -> None:
    """Run every platform job, then the release stage if all succeeded."""
    try:
        config = load_pipeline_config(config_path).restrict_to(platforms)
    except KeyError as exc:
        console.print(f"[bold red]Unknown platform:[/bold red] {exc}")
        raise typer.Exit(code=1)

    event = PushEvent(ref=ref, sha=sha, parent_sha=parent_sha, workflow_ref=workflow_ref)
    coordinator = MatrixCoordinator(config, settings, source_dir=source_dir)

    try:
        result = coordinator.run(event)
    except ConfigurationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    PipelineRenderer(console=console).print_result(result)
    if not result.succeeded:
        raise typer.Exit(code=1)
