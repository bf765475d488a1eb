"""shipwright data models: all Pydantic v2, all frozen (immutable)."""

from shipwright.models.artifacts import (
    Archive,
    Artifact,
    ArtifactRef,
    BinaryKind,
    ChecksumRecord,
    ContentAddressedArtifact,
    PlatformArtifactSet,
    SigningBundle,
)
from shipwright.models.config import BinarySpec, PipelineConfig, load_pipeline_config
from shipwright.models.jobs import (
    RELEASE_NODE_ID,
    VALID_TRANSITIONS,
    BuildJob,
    CacheKey,
    JobOutcome,
    JobStatus,
    StageNode,
    pipeline_nodes,
)
from shipwright.models.ledger import LedgerEntry
from shipwright.models.platforms import (
    DEFAULT_MATRIX,
    ArchiveFormat,
    OsFamily,
    PlatformSpec,
)
from shipwright.models.release import (
    PushEvent,
    Release,
    ReleaseOutcome,
    ReleaseVersion,
)
from shipwright.models.signing import (
    SIGNING_TRANSITIONS,
    NotarizationVerdict,
    SigningState,
)

__all__ = [
    # platforms
    "OsFamily",
    "ArchiveFormat",
    "PlatformSpec",
    "DEFAULT_MATRIX",
    # artifacts
    "BinaryKind",
    "Artifact",
    "ArtifactRef",
    "ContentAddressedArtifact",
    "PlatformArtifactSet",
    "SigningBundle",
    "Archive",
    "ChecksumRecord",
    # config
    "BinarySpec",
    "PipelineConfig",
    "load_pipeline_config",
    # jobs
    "JobStatus",
    "VALID_TRANSITIONS",
    "StageNode",
    "RELEASE_NODE_ID",
    "pipeline_nodes",
    "CacheKey",
    "BuildJob",
    "JobOutcome",
    # ledger
    "LedgerEntry",
    # release
    "PushEvent",
    "ReleaseVersion",
    "Release",
    "ReleaseOutcome",
    # signing
    "SigningState",
    "SIGNING_TRANSITIONS",
    "NotarizationVerdict",
]
