"""Platform matrix models: one entry per independent build job."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class OsFamily(str, Enum):
    """Operating system family, valued by its release-archive name."""

    LINUX = "linux"
    MACOS = "darwin"
    WINDOWS = "windows"


class ArchiveFormat(str, Enum):
    """Archive container used for a release file."""

    ZIP = "zip"
    TAR_GZ = "tar.gz"


class PlatformSpec(BaseModel):
    """A single matrix entry.

    ``name`` is the job's display name and also the key under which the job
    uploads its artifact set (``{name}-binaries``).
    """

    model_config = ConfigDict(frozen=True)

    name: str  # e.g. "Linux", "macOS-arm64"
    runner: str  # e.g. "ubuntu-latest"
    os_family: OsFamily
    arch: str = "amd64"
    project_file: str
    toolchain_version: str = "9.4.8"
    container: str | None = None
    rust_features: list[str] = []
    # Apple Silicon lacks a system liblzma; the primary binary needs the
    # relaxed library-validation entitlement there.
    needs_relaxed_entitlement: bool = False

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.os_family == OsFamily.WINDOWS else ""

    @property
    def archive_formats(self) -> tuple[ArchiveFormat, ...]:
        """Linux ships zip for legacy installers and tar.gz for newer ones."""
        if self.os_family == OsFamily.LINUX:
            return (ArchiveFormat.ZIP, ArchiveFormat.TAR_GZ)
        return (ArchiveFormat.ZIP,)

    @property
    def artifact_name(self) -> str:
        return f"{self.name}-binaries"

    @property
    def is_macos(self) -> bool:
        return self.os_family == OsFamily.MACOS


DEFAULT_MATRIX: list[PlatformSpec] = [
    PlatformSpec(
        name="Linux",
        runner="ubuntu-latest",
        os_family=OsFamily.LINUX,
        arch="amd64",
        project_file="cabal.project.ci.linux",
        container="fossa/haskell-static-alpine:ghc-9.4.8",
        rust_features=["jemalloc"],
    ),
    PlatformSpec(
        name="macOS-intel",
        runner="macos-12",
        os_family=OsFamily.MACOS,
        arch="amd64",
        project_file="cabal.project.ci.macos",
    ),
    PlatformSpec(
        name="Windows",
        runner="windows-latest",
        os_family=OsFamily.WINDOWS,
        arch="amd64",
        project_file="cabal.project.ci.windows",
    ),
    PlatformSpec(
        name="macOS-arm64",
        runner="macos-latest",
        os_family=OsFamily.MACOS,
        arch="arm64",
        project_file="cabal.project.ci.macos",
        needs_relaxed_entitlement=True,
    ),
]
