"""Job state models: build jobs, cache keys, pipeline graph nodes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from shipwright.models.artifacts import PlatformArtifactSet
from shipwright.models.platforms import PlatformSpec


class JobStatus(str, Enum):
    """Status of a pipeline node.

    Build jobs only ever use PENDING, RUNNING, SUCCEEDED and FAILED.
    BLOCKED is reserved for join nodes whose predecessors did not all
    succeed.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"


# Terminal statuses have no outgoing transitions: a job's outcome is set
# exactly once.
VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.BLOCKED},
    JobStatus.RUNNING: {JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),
    JobStatus.FAILED: set(),
    JobStatus.BLOCKED: set(),
}

TERMINAL_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.BLOCKED}
)


class StageNode(BaseModel):
    """A node of the pipeline graph.

    The prerequisite list encodes the DAG: a node cannot enter RUNNING
    unless every prerequisite SUCCEEDED.
    """

    model_config = ConfigDict(frozen=True)

    node_id: str
    display_name: str
    prerequisites: list[str] = []
    is_join: bool = False


RELEASE_NODE_ID = "create-release"


def build_node_id(platform_name: str) -> str:
    return f"build-{platform_name}"


def pipeline_nodes(matrix: list[PlatformSpec]) -> list[StageNode]:
    """One build node per platform plus the release join node."""
    nodes = [
        StageNode(
            node_id=build_node_id(p.name),
            display_name=f"{p.name} build",
        )
        for p in matrix
    ]
    nodes.append(
        StageNode(
            node_id=RELEASE_NODE_ID,
            display_name="Create release",
            prerequisites=[n.node_id for n in nodes],
            is_join=True,
        )
    )
    return nodes


class CacheKey(BaseModel):
    """Cache key derived from a resolved dependency plan."""

    model_config = ConfigDict(frozen=True)

    hash: str
    platform: str
    toolchain: str

    @property
    def key(self) -> str:
        return f"{self.platform}-{self.toolchain}-cabal-cache-{self.hash}"

    @property
    def restore_keys(self) -> list[str]:
        """Progressively less specific fallbacks, most specific first.

        Every fallback keeps the toolchain segment, so ``Linux`` never
        matches a ``Linux-arm64`` entry.
        """
        return [
            f"{self.platform}-{self.toolchain}-cabal-cache-",
            f"{self.platform}-{self.toolchain}-",
        ]


class BuildJob(BaseModel):
    """One platform job of a pipeline run.

    Created PENDING per matrix entry; the coordinator fills in the terminal
    status from the state machine and the cache key from the job result.
    """

    model_config = ConfigDict(frozen=True)

    platform: PlatformSpec
    toolchain_versions: dict[str, str] = {}
    project_file_ref: str
    cache_key: CacheKey | None = None
    status: JobStatus = JobStatus.PENDING

    @classmethod
    def for_platform(cls, platform: PlatformSpec) -> BuildJob:
        return cls(
            platform=platform,
            toolchain_versions={"ghc": platform.toolchain_version},
            project_file_ref=platform.project_file,
        )

    @property
    def node_id(self) -> str:
        return build_node_id(self.platform.name)


class JobOutcome(BaseModel):
    """Terminal result of a build job, as seen by the join node."""

    model_config = ConfigDict(frozen=True)

    platform: str
    status: JobStatus
    artifact_set: PlatformArtifactSet | None = None
    cache_key: CacheKey | None = None
    build_attempts: int = 0
    error: str | None = None
