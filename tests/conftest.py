"""Shared test fixtures for shipwright."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from shipwright.config import ReleaseSettings
from shipwright.core.artifact_store import ArtifactStore
from shipwright.core.commands import CommandResult
from shipwright.core.job_machine import JobStateMachine
from shipwright.core.pipeline_graph import PipelineGraph
from shipwright.core.run_ledger import RunLedger
from shipwright.models.config import PipelineConfig
from shipwright.models.jobs import pipeline_nodes
from shipwright.models.platforms import DEFAULT_MATRIX, PlatformSpec
from shipwright.models.release import PushEvent, Release
from shipwright.release.versioning import (
    expected_version_string,
    resolve_release_version,
    toolchain_major_minor,
)

TAG_SHA = "abcdef0123456789abcdef0123456789abcdef01"
WORKFLOW_REF = "fossas/fossa-cli/.github/workflows/build-all.yml@refs/tags/v1.2.3"

PLAN = {
    "cabal-version": "3.10.2.1",
    "install-plan": [
        {"id": "base-4.17.2.1", "type": "pre-existing"},
        {"id": "aeson-2.1.2.1-9f1a", "type": "configured"},
        {"id": "text-2.0.2", "type": "pre-existing"},
    ],
}


# ---------------------------------------------------------------------------
# Scriptable command runner
# ---------------------------------------------------------------------------


@dataclass
class Call:
    args: list[str]
    cwd: Path | None
    redact: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class _Rule:
    prefix: tuple[str, ...]
    responses: list[tuple[int, str, str]]
    effect: Callable[[list[str], Path | None], None] | None = None
    calls: int = 0

    def matches(self, args: list[str]) -> bool:
        if len(args) < len(self.prefix):
            return False
        head, *rest = self.prefix
        # The executable matches by exact text or by file name.
        if args[0] != head and Path(args[0]).name != head:
            return False
        return tuple(args[1:len(self.prefix)]) == tuple(rest)


@dataclass
class FakeRunner:
    """``CommandRunner`` that answers from scripted rules and records calls.

    Rules registered later win. A rule with several responses hands them
    out in order and repeats the last one.
    """

    calls: list[Call] = field(default_factory=list)
    _rules: list[_Rule] = field(default_factory=list)

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        responses: Sequence[tuple[int, str]] | None = None,
        effect: Callable[[list[str], Path | None], None] | None = None,
    ) -> FakeRunner:
        scripted = (
            [(rc, out, "") for rc, out in responses]
            if responses
            else [(returncode, stdout, stderr)]
        )
        self._rules.append(_Rule(prefix=prefix, responses=scripted, effect=effect))
        return self

    def run(
        self,
        args: Sequence[str | Path],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        redact: Collection[str] = (),
    ) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(Call(args=argv, cwd=cwd, redact=tuple(redact), env=dict(env or {})))
        for rule in reversed(self._rules):
            if rule.matches(argv):
                rc, out, err = rule.responses[min(rule.calls, len(rule.responses) - 1)]
                rule.calls += 1
                if rule.effect is not None:
                    rule.effect(argv, cwd)
                return CommandResult(args=argv, returncode=rc, stdout=out, stderr=err)
        return CommandResult(args=argv, returncode=0)

    def called(self, *prefix: str) -> list[Call]:
        wanted = _Rule(prefix=prefix, responses=[])
        return [c for c in self.calls if wanted.matches(c.args)]


# ---------------------------------------------------------------------------
# Fake toolchain effects
# ---------------------------------------------------------------------------


def _write_exe(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(0o755)


def install_fake_toolchain(runner: FakeRunner, version_output: str = "") -> FakeRunner:
    """Script cabal, cargo, cosign and the primary binary's ``--version``.

    Binaries are written for both the plain and ``.exe`` names so every
    platform finds its own.
    """

    def _dry_run(args: list[str], cwd: Path | None) -> None:
        plan = Path(cwd) / "dist-newstyle" / "cache" / "plan.json"
        plan.parent.mkdir(parents=True, exist_ok=True)
        plan.write_text(json.dumps(PLAN), encoding="utf-8")

    def _cabal_build(args: list[str], cwd: Path | None) -> None:
        for suffix in ("", ".exe"):
            _write_exe(
                Path(cwd) / "dist-newstyle" / "build" / "x86_64" / "fossa" / f"fossa{suffix}",
                f"primary-cli{suffix}",
            )

    def _cargo_build(args: list[str], cwd: Path | None) -> None:
        for stem in ("diagnose", "millhone"):
            for suffix in ("", ".exe"):
                _write_exe(Path(cwd) / "target" / "release" / f"{stem}{suffix}", f"{stem}{suffix}")

    def _cosign_sign(args: list[str], cwd: Path | None) -> None:
        bundle = Path(args[args.index("--bundle") + 1])
        bundle.write_text(json.dumps({"signed": Path(args[-1]).name}), encoding="utf-8")

    runner.on("cabal", "--project-file=cabal.project.ci.linux", "build", "--dry-run", effect=_dry_run)
    runner.on("cabal", "--project-file=cabal.project.ci.macos", "build", "--dry-run", effect=_dry_run)
    runner.on("cabal", "--project-file=cabal.project.ci.windows", "build", "--dry-run", effect=_dry_run)
    runner.on("cabal", "build", effect=_cabal_build)
    runner.on("cargo", "build", effect=_cargo_build)
    runner.on("cosign", "sign-blob", effect=_cosign_sign)
    runner.on("xcrun", "notarytool", stdout=json.dumps({"id": "sub-1", "status": "Accepted"}))
    runner.on("fossa", "--version", stdout=version_output + "\n")
    runner.on("fossa.exe", "--version", stdout=version_output + "\n")
    return runner


def tag_version_string(config: PipelineConfig, ref: str, sha: str) -> str:
    version = resolve_release_version(PushEvent(ref=ref, sha=sha))
    reference = config.platform(config.reference_platform)
    return expected_version_string(
        config.tool_name,
        version,
        toolchain_major_minor(config.toolchain_label, reference.toolchain_version),
    )


class FakeReleaseHost:
    """``ReleaseHost`` that records releases instead of creating them."""

    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []

    def create_draft_release(
        self, tag: str, name: str, version: str, assets: list[Path]
    ) -> Release:
        self.created.append(
            {"tag": tag, "name": name, "version": version, "assets": [a.name for a in assets]}
        )
        return Release(
            version=version,
            tag_name=tag,
            assets=[a.name for a in assets],
            release_id=len(self.created),
            html_url=f"https://example.test/releases/{tag}",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def run_id() -> str:
    """Provide a deterministic test run ID."""
    return "sw-test-run-001"


@pytest.fixture
def ledger(tmp_dir: Path) -> RunLedger:
    """Provide a fresh RunLedger backed by a temp SQLite database."""
    return RunLedger(tmp_dir / "test_ledger.db")


@pytest.fixture
def artifact_store(tmp_dir: Path, run_id: str) -> ArtifactStore:
    return ArtifactStore(tmp_dir / "artifacts", run_id)


@pytest.fixture
def matrix() -> list[PlatformSpec]:
    return list(DEFAULT_MATRIX)


@pytest.fixture
def linux() -> PlatformSpec:
    return DEFAULT_MATRIX[0]


@pytest.fixture
def macos_arm() -> PlatformSpec:
    return DEFAULT_MATRIX[3]


@pytest.fixture
def graph(matrix: list[PlatformSpec]) -> PipelineGraph:
    return PipelineGraph(pipeline_nodes(matrix))


@pytest.fixture
def job_machine(ledger: RunLedger, graph: PipelineGraph, run_id: str) -> JobStateMachine:
    return JobStateMachine(ledger, graph, run_id, commit_sha=TAG_SHA)


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def settings(tmp_dir: Path) -> ReleaseSettings:
    """Settings rooted in the temp dir, with every release secret present."""
    return ReleaseSettings(
        _env_file=None,
        work_dir=tmp_dir / "work",
        artifact_store_path=tmp_dir / "artifacts",
        cache_store_path=tmp_dir / "cache",
        ledger_path=tmp_dir / "ledger.db",
        cabal_store_path=tmp_dir / "cabal-store",
        macos_build_cert_base64=base64.b64encode(b"fake-p12-bytes").decode(),
        macos_build_cert_p12_password="p12-secret",
        macos_keychain_password="keychain-secret",
        apple_notarization_dev_id="dev@example.test",
        apple_notarization_dev_pass="app-specific-pass",
        apple_team_id="TEAM123456",
        codesign_identity="Example, Inc.",
        github_token="ghs_token",
        github_repository="example/tool",
    )


@pytest.fixture
def bare_settings(tmp_dir: Path) -> ReleaseSettings:
    """Settings rooted in the temp dir, with no secrets at all."""
    return ReleaseSettings(
        _env_file=None,
        work_dir=tmp_dir / "work",
        artifact_store_path=tmp_dir / "artifacts",
        cache_store_path=tmp_dir / "cache",
        ledger_path=tmp_dir / "ledger.db",
        cabal_store_path=tmp_dir / "cabal-store",
    )


@pytest.fixture
def tag_event() -> PushEvent:
    return PushEvent(ref="refs/tags/v1.2.3", sha=TAG_SHA, workflow_ref=WORKFLOW_REF)


@pytest.fixture
def branch_event() -> PushEvent:
    return PushEvent(ref="refs/heads/master", sha=TAG_SHA, parent_sha="1" * 40)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def toolchain_runner(config: PipelineConfig) -> FakeRunner:
    """FakeRunner whose primary binary reports the v1.2.3 tag version."""
    return install_fake_toolchain(
        FakeRunner(), tag_version_string(config, "refs/tags/v1.2.3", TAG_SHA)
    )


@pytest.fixture
def checkouts(tmp_dir: Path, matrix: list[PlatformSpec]) -> dict[str, Path]:
    """One source checkout per platform, as separate runners would have."""
    result = {}
    for p in matrix:
        src = tmp_dir / "checkouts" / p.name
        src.mkdir(parents=True)
        result[p.name] = src
    return result


@pytest.fixture
def release_host() -> FakeReleaseHost:
    return FakeReleaseHost()
