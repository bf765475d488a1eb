"""Build execution for one platform.

Only the main build is retried (once, via ``run_with_single_retry``). Every
other step fails the job on its first non-zero exit.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from pathlib import Path

from shipwright.core.commands import CommandResult, CommandRunner
from shipwright.core.errors import StepFailedError, TransientBuildFailure
from shipwright.core.retry import run_with_single_retry
from shipwright.core.version_stamp import VersionStamp, write_version_stamp
from shipwright.models.artifacts import Artifact, BinaryKind
from shipwright.models.config import BinarySpec, PipelineConfig
from shipwright.models.platforms import OsFamily, PlatformSpec

logger = logging.getLogger(__name__)


class BuildExecutor:
    """Runs the build toolchains for one platform inside a source checkout.

    Parameters
    ----------
    runner:
        Command execution backend.
    source_dir:
        Root of the source checkout.
    config:
        Pipeline configuration (binaries, version stamp location).
    env:
        Extra environment for every command, such as the job's own
        ``CABAL_DIR``.
    """

    def __init__(
        self,
        runner: CommandRunner,
        source_dir: Path,
        config: PipelineConfig,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._runner = runner
        self._source = Path(source_dir)
        self._config = config
        self._env = dict(env or {})

    def _step(self, name: str, args: list[str]) -> CommandResult:
        result = self._runner.run(args, cwd=self._source, env=self._env)
        if not result.ok:
            raise StepFailedError(name, result.returncode, result.output)
        return result

    # ------------------------------------------------------------------
    # Companion Rust crates
    # ------------------------------------------------------------------

    def build_companion_crates(self, platform: PlatformSpec) -> None:
        args = ["cargo", "build", "--release"]
        if platform.rust_features:
            args += ["--features", ",".join(platform.rust_features)]
        self._step("cargo build", args)

    def test_companion_crates(self) -> None:
        self._step("cargo nextest", ["cargo", "nextest", "run", "--release"])

    # ------------------------------------------------------------------
    # Main build
    # ------------------------------------------------------------------

    def build(self, platform: PlatformSpec, stamp: VersionStamp) -> int:
        """Stamp the version input, then build with one retry.

        Returns the number of attempts the build took.
        """
        write_version_stamp(self._source / self._config.version_stamp_path, stamp)
        self._step("cabal update", ["cabal", "update"])

        command = [
            "cabal", "build", f"--project-file={platform.project_file}", "all",
        ]

        def _attempt() -> CommandResult:
            result = self._runner.run(command, cwd=self._source, env=self._env)
            if not result.ok:
                raise TransientBuildFailure(result.returncode, result.output)
            return result

        _, attempts = run_with_single_retry(
            _attempt, description=f"{platform.name} build"
        )
        logger.info("%s build succeeded after %d attempt(s)", platform.name, attempts)
        return attempts

    # ------------------------------------------------------------------
    # Post-build checks
    # ------------------------------------------------------------------

    def run_unit_tests(self, platform: PlatformSpec) -> None:
        self._step(
            "unit tests",
            [
                "cabal", "test", f"--project-file={platform.project_file}",
                self._config.unit_test_target,
            ],
        )

    def validate_diagnostics(self) -> None:
        diag = self._config.binary(BinaryKind.DIAGNOSTIC_TOOL)
        self._step(
            "diagnostic walk",
            [
                "cargo", "run", "--bin", diag.stem, "--",
                "walk", "--trace-spans", "none", "--trace-level", "info",
            ],
        )

    def check_install(self, platform: PlatformSpec) -> None:
        if platform.os_family != OsFamily.LINUX:
            return
        self._step(
            "cabal install",
            [
                "cabal", "install", "--overwrite-policy=always",
                f"--project={platform.project_file}", "--ghc-options=-Wwarn",
            ],
        )

    # ------------------------------------------------------------------
    # Binary collection
    # ------------------------------------------------------------------

    def _locate(self, spec: BinarySpec, platform: PlatformSpec) -> Path:
        filename = f"{spec.stem}{platform.exe_suffix}"
        if spec.toolchain == "cargo":
            candidate = self._source / "target" / "release" / filename
            if candidate.is_file():
                return candidate
            raise FileNotFoundError(f"{candidate} was not built")

        # cabal places executables under .../<stem>/<stem> in its build tree
        matches = [
            p for p in self._source.rglob(filename)
            if p.is_file() and p.parent.name == spec.stem
        ]
        if not matches:
            raise FileNotFoundError(f"no built {filename} found under {self._source}")
        return max(matches, key=lambda p: p.stat().st_mtime)

    def collect_binaries(self, platform: PlatformSpec, release_dir: Path) -> list[Artifact]:
        """Copy the three binaries into *release_dir* and sanity-check the primary."""
        release_dir.mkdir(parents=True, exist_ok=True)
        artifacts: list[Artifact] = []
        for spec in self._config.binaries:
            source = self._locate(spec, platform)
            target = release_dir / source.name
            shutil.copy2(source, target)
            target.chmod(target.stat().st_mode | 0o755)
            artifacts.append(
                Artifact(
                    name=target.name,
                    stem=spec.stem,
                    platform=platform.name,
                    binary_kind=spec.kind,
                    path=target,
                )
            )

        primary = next(a for a in artifacts if a.binary_kind == BinaryKind.PRIMARY_CLI)
        result = self._step("version sanity check", [str(primary.path), "--version"])
        logger.info("%s: %s", platform.name, result.stdout.strip())
        return artifacts

    def strip(self, artifacts: list[Artifact]) -> None:
        """Remove debug symbols from every collected binary."""
        self._step("strip", ["strip", *[str(a.path) for a in artifacts]])
