"""Tests for Ed25519 release manifest attestation."""

from __future__ import annotations

from shipwright.signing.attestation import (
    generate_keypair,
    key_fingerprint,
    public_key_for,
    sign_data,
    verify_data,
)


class TestAttestation:
    def test_sign_verify(self):
        private, public = generate_keypair()
        sig = sign_data(b"manifest", private)
        assert verify_data(b"manifest", sig, public)

    def test_wrong_data_rejected(self):
        private, public = generate_keypair()
        sig = sign_data(b"manifest", private)
        assert not verify_data(b"manifest2", sig, public)

    def test_wrong_key_rejected(self):
        private, _ = generate_keypair()
        _, other_public = generate_keypair()
        assert not verify_data(b"m", sign_data(b"m", private), other_public)

    def test_empty_and_garbage_inputs(self):
        _, public = generate_keypair()
        assert not verify_data(b"m", "", public)
        assert not verify_data(b"m", "zz", public)
        assert not verify_data(b"m", "00" * 64, "")

    def test_public_key_for(self):
        private, public = generate_keypair()
        assert public_key_for(private) == public

    def test_fingerprint(self):
        _, public = generate_keypair()
        assert len(key_fingerprint(public)) == 16
        assert key_fingerprint("") == ""
