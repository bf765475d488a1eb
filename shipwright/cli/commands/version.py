"""``shipwright version``: show the release version a push event resolves to."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shipwright.models.config import load_pipeline_config
from shipwright.models.release import PushEvent
from shipwright.release.versioning import (
    expected_version_string,
    resolve_release_version,
    toolchain_major_minor,
)

console = Console()


def version_cmd(
    ref: str = typer.Option(..., "--ref", envvar="GITHUB_REF", help="Git ref."),
    sha: str = typer.Option(..., "--sha", envvar="GITHUB_SHA", help="Commit identifier."),
    config_path: Path | None = typer.Option(None, "--config", help="Configuration file."),
) -> None:
    """Print the release version and the expected ``--version`` output."""
    config = load_pipeline_config(config_path)
    event = PushEvent(ref=ref, sha=sha)
    version = resolve_release_version(event)

    console.print(f"[bold]version:[/bold]  {version.value}")
    console.print(f"[bold]tag run:[/bold]  {'yes' if event.is_version_tag else 'no'}")
    if event.is_version_tag:
        reference = config.platform(config.reference_platform)
        expected = expected_version_string(
            config.tool_name,
            version,
            toolchain_major_minor(config.toolchain_label, reference.toolchain_version),
        )
        console.print(f"[bold]expected:[/bold] {expected}", highlight=False)
