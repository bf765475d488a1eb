"""Release assembly: versioning, archives, checksums, hosting, publication."""

from shipwright.release.bundler import ArtifactBundler
from shipwright.release.checksums import ChecksumService
from shipwright.release.hosting import GitHubReleaseHost, ReleaseHost
from shipwright.release.publisher import ReleasePublisher
from shipwright.release.versioning import resolve_release_version

__all__ = [
    "ArtifactBundler",
    "ChecksumService",
    "GitHubReleaseHost",
    "ReleaseHost",
    "ReleasePublisher",
    "resolve_release_version",
]
