"""Ed25519 attestation of the release manifest (PyNaCl).

The manifest lists every archive with its SHA-256 and every signature
bundle. Its canonical JSON bytes are signed with the configured key so a
consumer can check the whole release set with one public key.
"""

from __future__ import annotations

import hashlib
import logging

import nacl.signing
from nacl.exceptions import BadSignatureError

logger = logging.getLogger(__name__)


def generate_keypair() -> tuple[str, str]:
    """Return ``(private_key_hex, public_key_hex)`` for a fresh Ed25519 key."""
    sk = nacl.signing.SigningKey.generate()
    return sk.encode().hex(), sk.verify_key.encode().hex()


def public_key_for(private_key: str) -> str:
    """Hex public key of a hex-encoded private seed."""
    return nacl.signing.SigningKey(bytes.fromhex(private_key)).verify_key.encode().hex()


def sign_data(data: bytes, private_key: str) -> str:
    """Sign *data*; returns the hex-encoded 64-byte signature.

    Parameters
    ----------
    data:
        Raw bytes to sign (canonical JSON of the manifest).
    private_key:
        Hex-encoded 32-byte seed.
    """
    sk = nacl.signing.SigningKey(bytes.fromhex(private_key))
    return sk.sign(data).signature.hex()


def verify_data(data: bytes, signature: str, public_key: str) -> bool:
    """``True`` only if *signature* is valid for *data* under *public_key*."""
    if not signature or not public_key:
        return False
    try:
        vk = nacl.signing.VerifyKey(bytes.fromhex(public_key))
        vk.verify(data, bytes.fromhex(signature))
    except (BadSignatureError, ValueError) as exc:
        logger.warning("attestation signature rejected: %s", exc)
        return False
    return True


def key_fingerprint(public_key: str) -> str:
    """First 16 hex characters of SHA-256 over the public key text."""
    if not public_key:
        return ""
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()[:16]
