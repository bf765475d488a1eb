"""Code signing, notarization and release attestation."""

from shipwright.signing.cosign import CosignSigner, derive_signer_identity
from shipwright.signing.keychain import TemporaryKeychain
from shipwright.signing.notarizer import SigningNotarizer, classify_verdict

__all__ = [
    "CosignSigner",
    "derive_signer_identity",
    "TemporaryKeychain",
    "SigningNotarizer",
    "classify_verdict",
]
