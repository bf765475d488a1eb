"""Checksum sidecars for release archives.

Each archive ``X`` gets ``X.sha256`` holding one ``sha256sum --binary``
line::

    <sha256hex> *<archive name>

Every sidecar is re-verified against its archive before anything is
published. Parsing also accepts the text-mode two-space separator.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shipwright.core.errors import ChecksumMismatch
from shipwright.core.hasher import sha256_file
from shipwright.models.artifacts import Archive, ChecksumRecord

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".sha256"


def sidecar_path(archive: Path) -> Path:
    return archive.with_name(archive.name + SIDECAR_SUFFIX)


def parse_checksum_line(line: str) -> tuple[str, str]:
    """Split one checksum line into ``(sha256, file name)``.

    Raises
    ------
    ValueError
        If the line is not in either sha256sum format.
    """
    line = line.rstrip("\n")
    digest, sep, rest = line.partition(" ")
    if not sep or len(digest) != 64 or any(c not in "0123456789abcdef" for c in digest.lower()):
        raise ValueError(f"not a sha256 checksum line: {line!r}")
    if rest.startswith("*") or rest.startswith(" "):
        name = rest[1:]
    else:
        raise ValueError(f"missing binary/text marker in checksum line: {line!r}")
    if not name:
        raise ValueError(f"checksum line has no file name: {line!r}")
    return digest.lower(), name


class ChecksumService:
    """Writes and verifies ``.sha256`` sidecars."""

    def write_checksum(self, archive: Path) -> ChecksumRecord:
        digest = sha256_file(archive)
        record = ChecksumRecord(
            archive_name=archive.name, sha256=digest, sidecar_path=sidecar_path(archive)
        )
        record.sidecar_path.write_text(record.line + "\n", encoding="utf-8")
        logger.debug("%s %s", digest[:16], archive.name)
        return record

    def generate(self, archives: list[Archive]) -> list[ChecksumRecord]:
        records = [self.write_checksum(a.path) for a in archives]
        logger.info("wrote %d checksum files", len(records))
        return records

    def verify(self, sidecar: Path) -> str:
        """Check one sidecar against the archive it names, beside it.

        Returns the verified archive name.
        """
        lines = [ln for ln in sidecar.read_text(encoding="utf-8").splitlines() if ln.strip()]
        if len(lines) != 1:
            raise ChecksumMismatch(f"{sidecar.name}: expected exactly one checksum line")
        try:
            expected, name = parse_checksum_line(lines[0])
        except ValueError as exc:
            raise ChecksumMismatch(f"{sidecar.name}: {exc}") from exc

        if Path(name).name != name:
            raise ChecksumMismatch(f"{sidecar.name} names a path, not a sibling file: {name}")
        target = sidecar.parent / name
        if not target.is_file():
            raise ChecksumMismatch(f"{sidecar.name} refers to missing file {name}")
        actual = sha256_file(target)
        if actual != expected:
            raise ChecksumMismatch(
                f"{name}: expected sha256 {expected}, got {actual}"
            )
        return name

    def verify_all(self, records: list[ChecksumRecord]) -> None:
        """Re-verify every emitted sidecar; the first mismatch is fatal."""
        for record in records:
            name = self.verify(record.sidecar_path)
            if name != record.archive_name:
                raise ChecksumMismatch(
                    f"{record.sidecar_path.name} names {name}, not {record.archive_name}"
                )
        logger.info("verified %d checksum files", len(records))

    def verify_directory(self, directory: Path) -> list[str]:
        """Verify every ``*.sha256`` sidecar found in *directory*."""
        sidecars = sorted(directory.glob(f"*{SIDECAR_SUFFIX}"))
        return [self.verify(s) for s in sidecars]

    def generate_directory(self, directory: Path) -> list[ChecksumRecord]:
        """Write a sidecar for every zip and tar.gz archive in *directory*."""
        archives = sorted(
            p for p in directory.iterdir()
            if p.is_file() and (p.name.endswith(".zip") or p.name.endswith(".tar.gz"))
        )
        return [self.write_checksum(p) for p in archives]
