"""Pipeline configuration models.

Loaded from ``shipwright.toml`` or ``pyproject.toml [tool.shipwright]``.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from shipwright.models.artifacts import BinaryKind
from shipwright.models.platforms import DEFAULT_MATRIX, PlatformSpec


class BinarySpec(BaseModel):
    """One of the three binaries a build produces."""

    model_config = ConfigDict(frozen=True)

    kind: BinaryKind
    stem: str
    toolchain: Literal["cabal", "cargo"]


DEFAULT_BINARIES: list[BinarySpec] = [
    BinarySpec(kind=BinaryKind.PRIMARY_CLI, stem="fossa", toolchain="cabal"),
    BinarySpec(kind=BinaryKind.DIAGNOSTIC_TOOL, stem="diagnose", toolchain="cargo"),
    BinarySpec(kind=BinaryKind.INDEX_TOOL, stem="millhone", toolchain="cargo"),
]


class PipelineConfig(BaseModel):
    """Project-level description of what gets built and released."""

    model_config = ConfigDict(frozen=True)

    tool_name: str = "fossa-cli"  # as printed by `<primary> --version`
    toolchain_label: str = "ghc"
    cabal_version: str = "3.10.2.1"
    binaries: list[BinarySpec] = list(DEFAULT_BINARIES)
    matrix: list[PlatformSpec] = list(DEFAULT_MATRIX)
    # Release verification and transparency-log signing use this platform's
    # binaries, because the release stage runs on the same OS.
    reference_platform: str = "Linux"
    version_stamp_path: Path = Path("src/App/version-stamp.txt")
    entitlements_path: Path = Path(".github/entitlements.plist")
    unit_test_target: str = "unit-tests"

    def platform(self, name: str) -> PlatformSpec:
        for spec in self.matrix:
            if spec.name == name:
                return spec
        raise KeyError(f"No platform named {name!r} in the matrix")

    def binary(self, kind: BinaryKind) -> BinarySpec:
        for spec in self.binaries:
            if spec.kind == kind:
                return spec
        raise KeyError(f"No binary of kind {kind.value!r} configured")

    def restrict_to(self, names: list[str]) -> PipelineConfig:
        """Return a copy whose matrix only holds the named platforms."""
        if not names:
            return self
        return self.model_copy(update={"matrix": [self.platform(n) for n in names]})


def load_pipeline_config(path: Path | None = None) -> PipelineConfig:
    """Load a PipelineConfig from a TOML file.

    ``shipwright.toml`` is read whole; ``pyproject.toml`` is read from its
    ``[tool.shipwright]`` table. A missing file yields the defaults.
    """
    if path is None:
        for candidate in (Path("shipwright.toml"), Path("pyproject.toml")):
            if candidate.is_file():
                path = candidate
                break
        else:
            return PipelineConfig()

    with open(path, "rb") as fh:
        data: dict[str, Any] = tomllib.load(fh)

    if Path(path).name == "pyproject.toml":
        data = data.get("tool", {}).get("shipwright", {})

    return PipelineConfig.model_validate(data)
