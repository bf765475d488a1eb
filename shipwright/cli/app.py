"""Main Typer application: imports and registers all CLI commands.

Entry point: ``shipwright`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from shipwright.cli.commands.cache_key import cache_key_cmd
from shipwright.cli.commands.checksums import checksums_cmd
from shipwright.cli.commands.ledger import ledger_cmd
from shipwright.cli.commands.matrix import matrix_cmd
from shipwright.cli.commands.run import run_cmd
from shipwright.cli.commands.version import version_cmd
from shipwright.config import settings
from shipwright.logsetup import configure_logging

app = typer.Typer(
    name="shipwright",
    help="shipwright: cross-platform release builds, signed and checksummed.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _main(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", envvar="SHIPWRIGHT_LOG_LEVEL", help="Log level."
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored logs."),
) -> None:
    try:
        configure_logging(log_level, no_color=no_color)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


# Register subcommands
app.command(name="run", help="Run the release pipeline for a push event.")(run_cmd)
app.command(name="cache-key", help="Derive the cache key of a resolved plan.")(cache_key_cmd)
app.command(name="version", help="Resolve the release version of a ref.")(version_cmd)
app.command(name="checksums", help="Write or verify .sha256 sidecars.")(checksums_cmd)
app.command(name="matrix", help="Show the platform matrix.")(matrix_cmd)
app.command(name="ledger", help="Show a run's ledger and verify its chain.")(ledger_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
