"""shipwright CLI: Typer-based command-line interface.

Provides the ``shipwright`` command with subcommands for running the
release pipeline, deriving cache keys, resolving versions, checksumming
release directories and inspecting the run ledger.

All output uses Rich for formatted terminal display.
"""
