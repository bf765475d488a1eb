"""Temporary macOS keychain holding the code-signing certificate.

The keychain lives only for the duration of one signing job and is
deleted on exit, whether signing succeeded or not.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from types import TracebackType

from shipwright.core.commands import CommandRunner
from shipwright.core.errors import SigningFailure

logger = logging.getLogger(__name__)

KEYCHAIN_NAME = "build.keychain"
CERT_FILE_NAME = "build-cert.p12"


class TemporaryKeychain:
    """Context manager that provisions and removes a signing keychain.

    Parameters
    ----------
    runner:
        Command execution backend.
    work_dir:
        Directory for the decoded certificate and the keychain file.
    cert_base64:
        The PKCS#12 certificate, base64-encoded.
    cert_password:
        Password protecting the PKCS#12 file.
    keychain_password:
        Password for the new keychain.
    idle_timeout_seconds:
        Auto-lock timeout; must outlive the whole build.
    """

    def __init__(
        self,
        runner: CommandRunner,
        work_dir: Path,
        *,
        cert_base64: str,
        cert_password: str,
        keychain_password: str,
        idle_timeout_seconds: int = 21600,
    ) -> None:
        self._runner = runner
        self._work_dir = Path(work_dir)
        self._cert_base64 = cert_base64
        self._cert_password = cert_password
        self._keychain_password = keychain_password
        self._timeout = idle_timeout_seconds
        self.path = self._work_dir / KEYCHAIN_NAME
        self._created = False

    @property
    def _secrets(self) -> tuple[str, ...]:
        return (self._cert_password, self._keychain_password)

    def _security(self, step: str, *args: str) -> None:
        result = self._runner.run(["security", *args], redact=self._secrets)
        if not result.ok:
            raise SigningFailure(
                f"keychain {step} failed with exit code {result.returncode}"
            )

    def provision(self) -> Path:
        """Decode the certificate and import it into a fresh keychain."""
        try:
            cert_bytes = base64.b64decode(self._cert_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SigningFailure("signing certificate is not valid base64") from exc
        if not cert_bytes:
            raise SigningFailure("signing certificate is empty")

        self._work_dir.mkdir(parents=True, exist_ok=True)
        cert_path = self._work_dir / CERT_FILE_NAME
        cert_path.write_bytes(cert_bytes)
        cert_path.chmod(0o600)

        try:
            keychain = str(self.path)
            self._security("create", "create-keychain", "-p", self._keychain_password, keychain)
            self._created = True
            self._security("settings", "set-keychain-settings", "-lut", str(self._timeout), keychain)
            self._security("unlock", "unlock-keychain", "-p", self._keychain_password, keychain)
            self._security(
                "import", "import", str(cert_path),
                "-P", self._cert_password, "-A", "-t", "cert", "-f", "pkcs12",
                "-k", keychain,
            )
            self._security("search list", "list-keychain", "-d", "user", "-s", keychain)
        finally:
            cert_path.unlink(missing_ok=True)

        logger.info("provisioned signing keychain %s", self.path)
        return self.path

    def delete(self) -> None:
        if not self._created:
            return
        result = self._runner.run(["security", "delete-keychain", str(self.path)])
        if not result.ok:
            logger.warning("could not delete keychain %s: %s", self.path, result.output)
        self._created = False

    def __enter__(self) -> TemporaryKeychain:
        try:
            self.provision()
        except SigningFailure:
            self.delete()
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.delete()
