"""External command execution.

Every external tool the pipeline drives (cabal, cargo, strip, security,
codesign, notarytool, cosign, and the built binaries themselves) goes
through a ``CommandRunner``. ``SubprocessRunner`` is the real backend;
tests substitute a scripted runner.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Collection, Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_MASK = "***"


class CommandResult(BaseModel):
    """Captured outcome of one command invocation."""

    model_config = ConfigDict(frozen=True)

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, for error messages."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for command execution backends.

    Implementations must never raise on a non-zero exit status; callers
    inspect ``CommandResult.returncode`` themselves.
    """

    def run(
        self,
        args: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        redact: Collection[str] = (),
    ) -> CommandResult:
        ...


def redact_args(args: Sequence[str], secrets: Collection[str]) -> str:
    """Render a command line with every secret value masked."""
    rendered = " ".join(args)
    for secret in secrets:
        if secret:
            rendered = rendered.replace(secret, _MASK)
    return rendered


class SubprocessRunner:
    """Runs commands with ``subprocess.run``; no shell, text output captured.

    Parameters
    ----------
    base_env:
        Extra environment variables applied to every command on top of
        the current process environment.
    """

    def __init__(self, base_env: Mapping[str, str] | None = None) -> None:
        self._base_env = dict(base_env or {})

    def run(
        self,
        args: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        redact: Collection[str] = (),
    ) -> CommandResult:
        argv = [str(a) for a in args]
        logger.info("$ %s", redact_args(argv, redact))

        merged_env = {**os.environ, **self._base_env, **(env or {})}
        try:
            proc = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            # Missing executables are reported like a failed command.
            logger.error("command not found: %s", argv[0])
            return CommandResult(args=argv, returncode=127, stderr=str(exc))

        if proc.returncode != 0:
            logger.warning(
                "command exited with %d: %s", proc.returncode, argv[0]
            )
        return CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
