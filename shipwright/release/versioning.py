"""Release version resolution and the embedded-version consistency check."""

from __future__ import annotations

import logging
from pathlib import Path

from shipwright.core.commands import CommandRunner
from shipwright.core.errors import VersionMismatch
from shipwright.models.release import VERSION_TAG_PREFIX, PushEvent, ReleaseVersion

logger = logging.getLogger(__name__)

COMMIT_PREFIX_LENGTH = 12


def is_version_tag(ref: str) -> bool:
    """``refs/tags/v<something>``; a bare ``refs/tags/v`` does not count."""
    return ref.startswith(VERSION_TAG_PREFIX) and len(ref) > len(VERSION_TAG_PREFIX)


def resolve_release_version(event: PushEvent) -> ReleaseVersion:
    """Tag value without its ``v`` for version tags, else the full commit id."""
    if is_version_tag(event.ref):
        value = event.ref[len(VERSION_TAG_PREFIX):]
    else:
        value = event.sha
    return ReleaseVersion(
        value=value,
        source_ref=event.ref,
        commit_prefix12=event.sha[:COMMIT_PREFIX_LENGTH],
    )


def toolchain_major_minor(label: str, version: str) -> str:
    """``("ghc", "9.4.8")`` -> ``"ghc-9.4"``."""
    parts = version.split(".")
    if len(parts) < 2:
        raise ValueError(f"toolchain version {version!r} has no minor component")
    return f"{label}-{parts[0]}.{parts[1]}"


def expected_version_string(
    tool: str, version: ReleaseVersion, toolchain_mm: str
) -> str:
    return (
        f"{tool} version {version.value} "
        f"(revision {version.commit_prefix12} compiled with {toolchain_mm})"
    )


def verify_embedded_version(
    runner: CommandRunner, binary: Path, expected: str
) -> str:
    """Run ``<binary> --version`` and require an exact match with *expected*.

    Whitespace runs in the output are collapsed before comparing, the way a
    shell ``$(echo $(...))`` would. Returns the observed string.
    """
    binary.chmod(binary.stat().st_mode | 0o755)
    result = runner.run([str(binary), "--version"])
    actual = " ".join(result.stdout.split())
    logger.info(" VERSION: %s", actual)
    logger.info("EXPECTED: %s", expected)
    if not result.ok or actual != expected:
        raise VersionMismatch(expected, actual)
    return actual
