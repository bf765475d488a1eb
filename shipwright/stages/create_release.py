"""The release join stage."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from shipwright.models.artifacts import PlatformArtifactSet
from shipwright.models.jobs import RELEASE_NODE_ID, JobOutcome
from shipwright.release.publisher import ReleasePublisher
from shipwright.stages.base import BaseStage


class ReleaseStage(BaseStage):
    """Aggregates every platform's artifact set and hands it to the publisher.

    Reads ``job_outcomes`` (all SUCCEEDED by the time this runs) and
    ``release_host`` (optional) from *run_context*, plus the shared keys.
    """

    @property
    def node_id(self) -> str:
        return RELEASE_NODE_ID

    @property
    def display_name(self) -> str:
        return "Create release"

    def describe_inputs(self, run_context: dict[str, Any]) -> dict[str, Any]:
        outcomes: list[JobOutcome] = run_context.get("job_outcomes", [])
        return {
            "artifact_refs": sorted(
                ref.content_address
                for o in outcomes if o.artifact_set is not None
                for ref in o.artifact_set.refs
            )
        }

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        outcomes: list[JobOutcome] = run_context["job_outcomes"]
        artifact_sets: list[PlatformArtifactSet] = [
            o.artifact_set for o in outcomes if o.artifact_set is not None
        ]

        publisher = ReleasePublisher(
            run_context["runner"],
            run_context["settings"],
            run_context["config"],
            store=run_context["artifact_store"],
            work_dir=Path(run_context["work_dir"]) / RELEASE_NODE_ID,
            host=run_context.get("release_host"),
        )
        outcome = publisher.publish(run_context["event"], artifact_sets)

        return {
            "version": outcome.version.value,
            "published": outcome.published,
            "archives": [a.name for a in outcome.archives],
            "checksums": {c.archive_name: c.sha256 for c in outcome.checksums},
            "bundles": [b.path.name for b in outcome.bundles],
            "stored_as": outcome.stored_as,
            "_outcome": outcome,
        }
