"""One platform job: resolve, build, test, collect, sign, upload."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from shipwright.config import ReleaseSettings
from shipwright.core.artifact_store import ArtifactStore
from shipwright.core.build_executor import BuildExecutor
from shipwright.core.cache import CacheKeyDeriver, CacheKind, CacheStore, build_output_keys
from shipwright.core.commands import CommandRunner
from shipwright.core.version_stamp import VersionStamp
from shipwright.models.artifacts import PlatformArtifactSet
from shipwright.models.config import PipelineConfig
from shipwright.models.jobs import build_node_id
from shipwright.models.platforms import PlatformSpec
from shipwright.models.release import PushEvent
from shipwright.release.versioning import resolve_release_version
from shipwright.signing.notarizer import SigningNotarizer
from shipwright.stages.base import BaseStage

logger = logging.getLogger(__name__)


class PlatformBuildStage(BaseStage):
    """Build job for one matrix entry.

    Reads from *run_context*: ``event``, ``config``, ``settings``,
    ``runner``, ``artifact_store``, ``cache_store``, ``work_dir`` and
    ``checkouts`` (platform name -> source checkout).
    """

    def __init__(self, platform: PlatformSpec) -> None:
        self.platform = platform

    @property
    def node_id(self) -> str:
        return build_node_id(self.platform.name)

    @property
    def display_name(self) -> str:
        return f"{self.platform.name} build"

    def describe_inputs(self, run_context: dict[str, Any]) -> dict[str, Any]:
        return {"platform": self.platform.model_dump(mode="json")}

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        platform = self.platform
        event: PushEvent = run_context["event"]
        config: PipelineConfig = run_context["config"]
        settings: ReleaseSettings = run_context["settings"]
        runner: CommandRunner = run_context["runner"]
        store: ArtifactStore = run_context["artifact_store"]
        caches: CacheStore = run_context["cache_store"]
        source_dir = Path(run_context["checkouts"][platform.name])
        job_dir = Path(run_context["work_dir"]) / platform.name

        version = resolve_release_version(event)
        stamp = VersionStamp.from_release_version(version)

        # Dependency store and build-output caches. Each job owns an empty
        # cabal directory, so a saved snapshot holds only its own packages.
        cabal_dir = settings.cabal_store_path.expanduser() / platform.name
        if cabal_dir.exists():
            shutil.rmtree(cabal_dir)
        cabal_store = cabal_dir / "store"
        cabal_store.mkdir(parents=True)
        cabal_env = {"CABAL_DIR": str(cabal_dir)}

        cache_key = CacheKeyDeriver().resolve_and_derive(
            runner, source_dir, platform, env=cabal_env
        )
        caches.restore(
            cache_key.key, cache_key.restore_keys, cabal_store, kind=CacheKind.CABAL_STORE
        )
        build_key, build_fallbacks = build_output_keys(platform, event.sha, event.parent_sha)
        caches.restore(
            build_key, build_fallbacks, source_dir / "dist-newstyle",
            kind=CacheKind.BUILD_OUTPUT,
        )

        executor = BuildExecutor(runner, source_dir, config, env=cabal_env)
        executor.build_companion_crates(platform)
        executor.test_companion_crates()
        attempts = executor.build(platform, stamp)
        executor.run_unit_tests(platform)
        executor.validate_diagnostics()
        executor.check_install(platform)

        artifacts = executor.collect_binaries(platform, job_dir / "release")
        executor.strip(artifacts)

        caches.save(cache_key.key, cabal_store, kind=CacheKind.CABAL_STORE)
        caches.save(build_key, source_dir / "dist-newstyle", kind=CacheKind.BUILD_OUTPUT)

        notarized = False
        if SigningNotarizer.applies_to(platform, event):
            SigningNotarizer(
                runner, settings, config,
                source_dir=source_dir, work_dir=job_dir / "signing",
            ).sign_and_notarize(platform, artifacts)
            notarized = True

        refs = store.upload(platform.artifact_name, [a.path for a in artifacts])
        artifact_set = PlatformArtifactSet(
            platform=platform.name,
            store_name=platform.artifact_name,
            version=version.value,
            artifacts=artifacts,
            refs=refs,
            notarized=notarized,
        )
        logger.info(
            "%s job produced %s (%d binaries)",
            platform.name, platform.artifact_name, len(artifacts),
        )

        return {
            "platform": platform.name,
            "version": version.value,
            "cache_key": cache_key.key,
            "build_attempts": attempts,
            "notarized": notarized,
            "artifact_refs": [r.content_address for r in refs],
            "_artifact_set": artifact_set,
            "_cache_key": cache_key,
        }
