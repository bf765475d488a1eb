"""Artifact models: binaries, archives, signature bundles, checksums."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shipwright.models.platforms import ArchiveFormat


class BinaryKind(str, Enum):
    """The three binaries every successful build job produces."""

    PRIMARY_CLI = "primary-cli"
    DIAGNOSTIC_TOOL = "diagnostic-tool"
    INDEX_TOOL = "index-tool"


class ArtifactRef(BaseModel):
    """A reference to a content-addressed blob.

    The content_address is the SHA-256 hex digest of the blob bytes.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    content_address: str  # "sha256:<hex>"
    artifact_type: str = "generic"
    size_bytes: int = 0
    executable: bool = False


class ContentAddressedArtifact(BaseModel):
    """Metadata for a stored blob: the bytes themselves live in the store."""

    model_config = ConfigDict(frozen=True)

    content_address: str  # "sha256:<hex>"
    artifact_type: str
    name: str
    size_bytes: int
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata: dict[str, Any] = {}


class Artifact(BaseModel):
    """One built binary of one platform."""

    model_config = ConfigDict(frozen=True)

    name: str  # file name on disk, e.g. "fossa" or "fossa.exe"
    stem: str  # name without platform suffix, e.g. "fossa"
    platform: str
    binary_kind: BinaryKind
    path: Path


class PlatformArtifactSet(BaseModel):
    """Everything a platform job hands to the release stage."""

    model_config = ConfigDict(frozen=True)

    platform: str
    store_name: str  # "{platform}-binaries"
    version: str
    artifacts: list[Artifact]
    refs: list[ArtifactRef] = []
    notarized: bool = False

    def by_kind(self, kind: BinaryKind) -> Artifact:
        for artifact in self.artifacts:
            if artifact.binary_kind == kind:
                return artifact
        raise KeyError(f"{self.platform} has no {kind.value} artifact")


class SigningBundle(BaseModel):
    """A detached transparency-log signature bundle for one binary."""

    model_config = ConfigDict(frozen=True)

    artifact_name: str
    path: Path  # "<binary>.bundle"
    signer_identity: str
    oidc_issuer: str = ""
    verified: bool = False

    @property
    def signature_blob(self) -> bytes:
        return self.path.read_bytes()


class Archive(BaseModel):
    """A finalized release archive."""

    model_config = ConfigDict(frozen=True)

    name: str  # "{stem}_{version}_{os}_{arch}.{ext}"
    path: Path
    format: ArchiveFormat
    platform: str
    binary_kind: BinaryKind
    members: list[str]


class ChecksumRecord(BaseModel):
    """SHA-256 of one archive plus the sidecar file that records it."""

    model_config = ConfigDict(frozen=True)

    archive_name: str
    sha256: str
    sidecar_path: Path

    @property
    def line(self) -> str:
        """Two-column ``sha256sum --binary`` line."""
        return f"{self.sha256} *{self.archive_name}"
