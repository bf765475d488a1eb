"""Version stamp: the explicit build input carrying release identity.

A version tag push changes no file the incremental build tracks, so a
build restored from the previous commit's cache would happily reuse a
version unit compiled without the tag. The stamp file holds the release
version and the 12-character commit prefix; the version unit declares it
as a dependency, and the file is rewritten only when its content changes.
That makes recompilation happen exactly when the release identity changes.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from shipwright.core.hasher import sha256_hex
from shipwright.models.release import ReleaseVersion

logger = logging.getLogger(__name__)


class VersionStamp(BaseModel):
    """Content of the stamp file."""

    model_config = ConfigDict(frozen=True)

    version: str
    commit_prefix: str

    @classmethod
    def from_release_version(cls, version: ReleaseVersion) -> VersionStamp:
        return cls(version=version.value, commit_prefix=version.commit_prefix12)

    def render(self) -> str:
        return f"version={self.version}\nrevision={self.commit_prefix}\n"

    @property
    def digest(self) -> str:
        return sha256_hex(self.render().encode("utf-8"))


def write_version_stamp(path: Path, stamp: VersionStamp) -> bool:
    """Write *stamp* to *path* if its content differs.

    Returns True when the file changed. An unchanged stamp keeps its mtime
    so an up-to-date build is not needlessly invalidated.
    """
    rendered = stamp.render()
    if path.exists() and path.read_text(encoding="utf-8") == rendered:
        logger.debug("version stamp %s unchanged", path)
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(rendered, encoding="utf-8")
    logger.info(
        "version stamp %s -> %s (revision %s)", path, stamp.version, stamp.commit_prefix
    )
    return True
