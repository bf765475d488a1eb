"""shipwright: cross-platform release-build orchestrator.

Builds a two-toolchain source tree on every platform of a matrix, signs
and notarizes where required, bundles and checksums the archives, and
publishes a draft release when the trigger is a version tag.
"""

__version__ = "0.1.0"
__description__ = "Cross-platform release-build orchestrator"

from shipwright.core.coordinator import MatrixCoordinator, PipelineResult
from shipwright.cli.app import app as cli

__all__ = ["MatrixCoordinator", "PipelineResult", "cli", "__version__"]
