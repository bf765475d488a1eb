"""Pipeline stages: one build stage per platform plus the release join."""

from shipwright.stages.base import BaseStage, StageExecutionError
from shipwright.stages.create_release import ReleaseStage
from shipwright.stages.platform_build import PlatformBuildStage

__all__ = [
    "BaseStage",
    "StageExecutionError",
    "PlatformBuildStage",
    "ReleaseStage",
]
