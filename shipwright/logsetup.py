"""Logging configuration for the shipwright CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str | int = "INFO", *, no_color: bool = False) -> Console:
    """Install a RichHandler on the root logger.

    Parameters
    ----------
    level:
        Level name (``"DEBUG"``, ``"INFO"`` ...) or number.
    no_color:
        Disable colored output.

    Returns
    -------
    Console
        The stderr console the handler writes to.
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"unknown log level {level!r}")
        level = numeric

    console = Console(stderr=True, no_color=no_color)
    verbose = level <= logging.DEBUG
    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=verbose,
        markup=False,
        rich_tracebacks=verbose,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    return console
