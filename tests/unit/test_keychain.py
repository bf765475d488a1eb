"""Tests for the temporary signing keychain."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from conftest import FakeRunner
from shipwright.core.errors import SigningFailure
from shipwright.signing.keychain import CERT_FILE_NAME, TemporaryKeychain

CERT = base64.b64encode(b"pkcs12-bytes").decode()


def _keychain(runner: FakeRunner, tmp_dir: Path, cert: str = CERT) -> TemporaryKeychain:
    return TemporaryKeychain(
        runner,
        tmp_dir / "signing",
        cert_base64=cert,
        cert_password="p12-pass",
        keychain_password="kc-pass",
    )


class TestTemporaryKeychain:
    def test_provision_sequence(self, tmp_dir: Path):
        runner = FakeRunner()
        with _keychain(runner, tmp_dir) as kc:
            path = str(kc.path)
        subcommands = [c.args[1] for c in runner.calls]
        assert subcommands == [
            "create-keychain",
            "set-keychain-settings",
            "unlock-keychain",
            "import",
            "list-keychain",
            "delete-keychain",
        ]
        assert runner.calls[1].args == ["security", "set-keychain-settings", "-lut", "21600", path]
        assert runner.calls[-1].args == ["security", "delete-keychain", path]

    def test_passwords_are_redacted(self, tmp_dir: Path):
        runner = FakeRunner()
        with _keychain(runner, tmp_dir):
            pass
        for call in runner.calls:
            if "kc-pass" in call.args or "p12-pass" in call.args:
                assert {"kc-pass", "p12-pass"} <= set(call.redact)

    def test_certificate_file_removed(self, tmp_dir: Path):
        with _keychain(FakeRunner(), tmp_dir):
            assert not (tmp_dir / "signing" / CERT_FILE_NAME).exists()

    def test_invalid_base64(self, tmp_dir: Path):
        runner = FakeRunner()
        with pytest.raises(SigningFailure, match="base64"):
            with _keychain(runner, tmp_dir, cert="not base64!!"):
                pass
        assert runner.calls == []

    def test_empty_certificate(self, tmp_dir: Path):
        with pytest.raises(SigningFailure, match="empty"):
            _keychain(FakeRunner(), tmp_dir, cert="").provision()

    def test_import_failure_still_deletes(self, tmp_dir: Path):
        runner = FakeRunner().on("security", "import", returncode=1)
        with pytest.raises(SigningFailure, match="import"):
            with _keychain(runner, tmp_dir):
                pass
        assert runner.called("security", "delete-keychain")
        assert not (tmp_dir / "signing" / CERT_FILE_NAME).exists()

    def test_create_failure_has_nothing_to_delete(self, tmp_dir: Path):
        runner = FakeRunner().on("security", "create-keychain", returncode=1)
        with pytest.raises(SigningFailure):
            with _keychain(runner, tmp_dir):
                pass
        assert not runner.called("security", "delete-keychain")

    def test_deleted_when_body_raises(self, tmp_dir: Path):
        runner = FakeRunner()
        with pytest.raises(RuntimeError):
            with _keychain(runner, tmp_dir):
                raise RuntimeError("codesign blew up")
        assert runner.called("security", "delete-keychain")
