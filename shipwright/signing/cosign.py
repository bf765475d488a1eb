"""Transparency-log blob signing with cosign.

Each binary gets a detached ``<binary>.bundle``. A signature is trusted
only after it has been verified against the expected signer identity,
which is derived from the workflow that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shipwright.core.commands import CommandRunner
from shipwright.core.errors import SignatureVerificationFailure, SigningFailure
from shipwright.models.artifacts import SigningBundle

logger = logging.getLogger(__name__)


def derive_signer_identity(workflow_ref: str, server_url: str = "https://github.com") -> str:
    """Certificate identity of a keyless signature made by *workflow_ref*."""
    if not workflow_ref:
        raise SigningFailure("no workflow ref; cannot derive the signer identity")
    return f"{server_url.rstrip('/')}/{workflow_ref}"


class CosignSigner:
    """Signs and verifies blobs through the ``cosign`` CLI.

    Parameters
    ----------
    runner:
        Command execution backend.
    certificate_identity:
        Identity every signature must verify against.
    oidc_issuer:
        Issuer of the identity token the signature was made with.
    """

    def __init__(
        self, runner: CommandRunner, certificate_identity: str, oidc_issuer: str
    ) -> None:
        self._runner = runner
        self.certificate_identity = certificate_identity
        self.oidc_issuer = oidc_issuer

    def sign(self, binary: Path) -> Path:
        bundle = binary.with_name(f"{binary.name}.bundle")
        result = self._runner.run(
            ["cosign", "sign-blob", "--yes", "--bundle", str(bundle), str(binary)]
        )
        if not result.ok or not bundle.exists():
            raise SigningFailure(
                f"cosign sign-blob of {binary.name} failed "
                f"(exit {result.returncode}): {result.output.strip()}"
            )
        return bundle

    def verify(self, binary: Path, bundle: Path) -> None:
        result = self._runner.run(
            [
                "cosign", "verify-blob",
                "--bundle", str(bundle),
                "--certificate-oidc-issuer", self.oidc_issuer,
                "--certificate-identity", self.certificate_identity,
                str(binary),
            ]
        )
        if not result.ok:
            raise SignatureVerificationFailure(
                f"signature of {binary.name} did not verify for "
                f"{self.certificate_identity}: {result.output.strip()}"
            )

    def sign_and_verify(self, binary: Path) -> SigningBundle:
        """Sign *binary*, then verify the fresh bundle before returning it."""
        bundle = self.sign(binary)
        self.verify(binary, bundle)
        logger.info("signed and verified %s", binary.name)
        return SigningBundle(
            artifact_name=binary.name,
            path=bundle,
            signer_identity=self.certificate_identity,
            oidc_issuer=self.oidc_issuer,
            verified=True,
        )
