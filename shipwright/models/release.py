"""Push event, release version and release models."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict

from shipwright.models.artifacts import Archive, ChecksumRecord, SigningBundle

VERSION_TAG_PREFIX = "refs/tags/v"


class PushEvent(BaseModel):
    """The trigger of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    ref: str  # e.g. "refs/tags/v1.2.3" or "refs/heads/master"
    sha: str
    parent_sha: str = ""
    workflow_ref: str = ""  # "<owner>/<repo>/.github/workflows/<file>@<ref>"

    @property
    def is_version_tag(self) -> bool:
        return self.ref.startswith(VERSION_TAG_PREFIX) and len(self.ref) > len(
            VERSION_TAG_PREFIX
        )

    @property
    def ref_name(self) -> str:
        for prefix in ("refs/tags/", "refs/heads/"):
            if self.ref.startswith(prefix):
                return self.ref[len(prefix):]
        return self.ref


class ReleaseVersion(BaseModel):
    """Version string stamped into archives and binaries."""

    model_config = ConfigDict(frozen=True)

    value: str
    source_ref: str
    commit_prefix12: str


class Release(BaseModel):
    """A release object on the hosting backend. Always a draft."""

    model_config = ConfigDict(frozen=True)

    version: str
    tag_name: str
    draft: Literal[True] = True
    assets: list[str] = []
    release_id: int | None = None
    html_url: str = ""


class ReleaseOutcome(BaseModel):
    """What the release stage produced."""

    model_config = ConfigDict(frozen=True)

    version: ReleaseVersion
    published: bool
    release: Release | None = None
    archives: list[Archive] = []
    checksums: list[ChecksumRecord] = []
    bundles: list[SigningBundle] = []
    manifest_path: Path | None = None
    stored_as: str | None = None  # artifact-store name for non-tag runs
