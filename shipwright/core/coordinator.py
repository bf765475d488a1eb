"""Matrix coordinator: the central coordinator for shipwright runs.

Fans out one independent job per platform, waits for every job to reach a
terminal status, and runs the release join stage only when all of them
succeeded. A failed job never cancels its siblings.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from shipwright.config import ReleaseSettings
from shipwright.config import settings as default_settings
from shipwright.core.artifact_store import ArtifactStore
from shipwright.core.cache import CacheStore
from shipwright.core.commands import CommandRunner, SubprocessRunner
from shipwright.core.hasher import compute_output_hash
from shipwright.core.job_machine import JobStateMachine
from shipwright.core.pipeline_graph import PipelineGraph
from shipwright.core.preflight import enforce_release_constraints
from shipwright.core.run_ledger import RunLedger
from shipwright.models.config import PipelineConfig
from shipwright.models.jobs import (
    RELEASE_NODE_ID,
    BuildJob,
    JobOutcome,
    JobStatus,
    pipeline_nodes,
)
from shipwright.models.release import PushEvent, ReleaseOutcome
from shipwright.release.hosting import ReleaseHost
from shipwright.stages.base import BaseStage, StageExecutionError
from shipwright.stages.create_release import ReleaseStage
from shipwright.stages.platform_build import PlatformBuildStage

logger = logging.getLogger(__name__)


class PipelineResult(BaseModel):
    """Terminal result of a whole run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    event: PushEvent
    outcomes: list[JobOutcome]
    jobs: list[BuildJob] = []
    release_status: JobStatus
    release_outcome: ReleaseOutcome | None = None
    release_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.release_status == JobStatus.SUCCEEDED and all(
            o.status == JobStatus.SUCCEEDED for o in self.outcomes
        )


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"sw-{ts}-{uuid.uuid4().hex[:6]}"


class MatrixCoordinator:
    """Runs a release pipeline over the platform matrix.

    Parameters
    ----------
    config:
        Pipeline configuration (matrix, binaries).
    settings:
        Runtime settings. Defaults to the module singleton.
    runner:
        Command execution backend. Defaults to ``SubprocessRunner``.
    source_dir:
        Checkout used by every job without an entry in *checkouts*.
    checkouts:
        Per-platform checkout directories.
    run_id:
        Identifier of the run. Generated if omitted.
    host:
        Release-hosting backend for tag runs. Built from settings if omitted.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        settings: ReleaseSettings | None = None,
        *,
        runner: CommandRunner | None = None,
        source_dir: Path = Path("."),
        checkouts: Mapping[str, Path] | None = None,
        run_id: str | None = None,
        host: ReleaseHost | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.settings = settings or default_settings
        self.runner = runner or SubprocessRunner()
        self.run_id = run_id or new_run_id()
        self._host = host

        self.checkouts: dict[str, Path] = {
            p.name: Path((checkouts or {}).get(p.name, source_dir))
            for p in self.config.matrix
        }

        self.ledger = RunLedger(self.settings.ledger_path)
        self.graph = PipelineGraph(pipeline_nodes(self.config.matrix))
        self.artifact_store = ArtifactStore(self.settings.artifact_store_path, self.run_id)
        self.cache_store = CacheStore(self.settings.cache_store_path)
        self.work_dir = Path(self.settings.work_dir) / self.run_id

    # ------------------------------------------------------------------
    # Stage execution
    # ------------------------------------------------------------------

    def _run_node(
        self, stage: BaseStage, machine: JobStateMachine, run_context: dict[str, Any]
    ) -> tuple[dict[str, Any] | None, BaseException | None]:
        """RUNNING -> run_stage -> SUCCEEDED | FAILED, all ledgered."""
        machine.transition(stage.node_id, JobStatus.RUNNING)
        try:
            result = stage.run_stage(run_context)
        except StageExecutionError as exc:
            cause = exc.__cause__ or exc
            machine.transition(
                stage.node_id,
                JobStatus.FAILED,
                output_hash=compute_output_hash(stage.node_id, {"error": str(cause)}),
                detail=f"{type(cause).__name__}: {cause}",
            )
            return None, cause

        machine.transition(
            stage.node_id,
            JobStatus.SUCCEEDED,
            input_hash=result["_input_hash"],
            output_hash=result["_output_hash"],
            artifact_references=result.get("artifact_refs", []),
        )
        return result, None

    def _run_job(
        self, job: BuildJob, machine: JobStateMachine, run_context: dict[str, Any]
    ) -> JobOutcome:
        stage = PlatformBuildStage(job.platform)
        result, error = self._run_node(stage, machine, run_context)
        if result is None:
            logger.error("%s failed: %s", stage.display_name, error)
            return JobOutcome(
                platform=job.platform.name,
                status=JobStatus.FAILED,
                build_attempts=getattr(error, "attempts", 0),
                error=f"{type(error).__name__}: {error}",
            )
        return JobOutcome(
            platform=job.platform.name,
            status=JobStatus.SUCCEEDED,
            artifact_set=result["_artifact_set"],
            cache_key=result["_cache_key"],
            build_attempts=result["build_attempts"],
        )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run(self, event: PushEvent) -> PipelineResult:
        """Run every platform job, then the release join if all succeeded."""
        enforce_release_constraints(self.settings, self.config, event)

        machine = JobStateMachine(
            self.ledger, self.graph, self.run_id, commit_sha=event.sha
        )
        run_context: dict[str, Any] = {
            "run_id": self.run_id,
            "event": event,
            "config": self.config,
            "settings": self.settings,
            "runner": self.runner,
            "artifact_store": self.artifact_store,
            "cache_store": self.cache_store,
            "work_dir": self.work_dir,
            "checkouts": self.checkouts,
            "release_host": self._host,
        }
        logger.info(
            "run %s: %d platform jobs for %s@%s",
            self.run_id, len(self.config.matrix), event.ref, event.sha[:12],
        )

        jobs = [BuildJob.for_platform(p) for p in self.config.matrix]
        workers = max(1, min(self.settings.max_parallel_jobs, len(jobs)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="job") as pool:
            futures = [pool.submit(self._run_job, j, machine, run_context) for j in jobs]
            # Barrier: every job reaches a terminal status before the join.
            outcomes = [f.result() for f in futures]

        jobs = [
            job.model_copy(
                update={"status": machine.status(job.node_id), "cache_key": outcome.cache_key}
            )
            for job, outcome in zip(jobs, outcomes)
        ]

        if not machine.all_succeeded([job.node_id for job in jobs]):
            for job in jobs:
                if job.status == JobStatus.FAILED:
                    machine.cascade_block(job.node_id)
            failed = [job.platform.name for job in jobs if job.status == JobStatus.FAILED]
            logger.error("release blocked; failed jobs: %s", ", ".join(failed))
            return PipelineResult(
                run_id=self.run_id,
                event=event,
                jobs=jobs,
                outcomes=outcomes,
                release_status=machine.status(RELEASE_NODE_ID),
            )

        run_context["job_outcomes"] = outcomes
        result, error = self._run_node(ReleaseStage(), machine, run_context)
        return PipelineResult(
            run_id=self.run_id,
            event=event,
            jobs=jobs,
            outcomes=outcomes,
            release_status=machine.status(RELEASE_NODE_ID),
            release_outcome=result["_outcome"] if result else None,
            release_error=f"{type(error).__name__}: {error}" if error else None,
        )
