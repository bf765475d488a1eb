"""Error taxonomy for the release pipeline.

Every failure that can end a job or block publication is a ``ReleaseError``.
A failure aborts only the job that raised it; the release join node never
runs unless every job succeeded.
"""

from __future__ import annotations


class ReleaseError(RuntimeError):
    """Base class for all pipeline failures."""


class ConfigurationError(ReleaseError):
    """Required settings or secrets are missing or invalid."""


class StepFailedError(ReleaseError):
    """A non-retried job step (tests, tool validation, strip) failed."""

    def __init__(self, step: str, returncode: int, output: str = "") -> None:
        msg = f"{step} failed with exit code {returncode}"
        if output:
            msg += f": {output.strip()[-500:]}"
        super().__init__(msg)
        self.step = step
        self.returncode = returncode


class TransientBuildFailure(ReleaseError):
    """A single build attempt failed; eligible for the one retry."""

    def __init__(self, returncode: int, output: str = "") -> None:
        super().__init__(f"build exited with {returncode}")
        self.returncode = returncode
        self.output = output


class BuildFailedError(ReleaseError):
    """The build failed on every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"build failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class SigningFailure(ReleaseError):
    """Certificate, keychain or code-signing setup failed. Not retried."""


class NotarizationRejected(ReleaseError):
    """The notarization verdict lacked an explicit acceptance."""

    def __init__(self, verdict_text: str) -> None:
        super().__init__(f"notarization rejected:\n{verdict_text}")
        self.verdict_text = verdict_text


class ChecksumMismatch(ReleaseError):
    """A checksum sidecar does not match its archive."""


class VersionMismatch(ReleaseError):
    """A binary reports a version other than the one being released."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"embedded version mismatch:\n  expected: {expected!r}\n  actual:   {actual!r}"
        )
        self.expected = expected
        self.actual = actual


class SignatureVerificationFailure(ReleaseError):
    """A freshly produced signature did not verify for the expected signer."""


class PublicationError(ReleaseError):
    """The release-hosting backend refused or failed a request."""


class ArtifactIntegrityError(ReleaseError):
    """A stored blob's hash does not match its address."""
