"""macOS code signing and notarization.

State machine for one macOS job on a version-tag push::

    UNSIGNED -> KEYCHAIN_PROVISIONED -> SIGNED -> SUBMITTED -> {ACCEPTED | REJECTED}

The notarization client's exit status does not reflect the verdict. It is
decided from the structured ``status`` field of the JSON output, and when
no JSON is present, from an explicit ``status: Accepted`` line in the text
output. Anything else is a rejection.
"""

from __future__ import annotations

import json
import logging
import re
import zipfile
from pathlib import Path

from shipwright.config import ReleaseSettings
from shipwright.core.commands import CommandResult, CommandRunner
from shipwright.core.errors import NotarizationRejected, SigningFailure
from shipwright.models.artifacts import Artifact, BinaryKind
from shipwright.models.config import PipelineConfig
from shipwright.models.platforms import PlatformSpec
from shipwright.models.release import PushEvent
from shipwright.models.signing import (
    SIGNING_TRANSITIONS,
    NotarizationVerdict,
    SigningState,
)
from shipwright.signing.keychain import TemporaryKeychain

logger = logging.getLogger(__name__)

ACCEPTED_STATUS = "Accepted"
NOTARIZATION_ARCHIVE = "notarization-archive.zip"

_TEXT_STATUS = re.compile(r"^\s*status:\s*(\S.*?)\s*$", re.MULTILINE)
_TEXT_ID = re.compile(r"^\s*id:\s*(\S+)\s*$", re.MULTILINE)


class InvalidSigningTransition(RuntimeError):
    """Raised when the signing machine is driven out of order."""


def _json_payload(stdout: str) -> dict | None:
    """The JSON object notarytool prints with ``--output-format json``, if any."""
    text = stdout.strip()
    if not text.startswith("{"):
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def classify_verdict(result: CommandResult) -> NotarizationVerdict:
    """Turn a notarization submission result into a verdict.

    ``result.returncode`` is recorded but never consulted.
    """
    payload = _json_payload(result.stdout)
    if payload is not None and "status" in payload:
        status = str(payload["status"])
        return NotarizationVerdict(
            accepted=status == ACCEPTED_STATUS,
            status=status,
            source="json",
            submission_id=payload.get("id"),
            exit_code=result.returncode,
            raw_output=result.output,
        )

    text = result.output
    statuses = _TEXT_STATUS.findall(text)
    # notarytool prints in-progress statuses while waiting; the last is final.
    status = statuses[-1] if statuses else "Unknown"
    id_match = _TEXT_ID.search(text)
    return NotarizationVerdict(
        accepted=status == ACCEPTED_STATUS,
        status=status,
        source="text",
        submission_id=id_match.group(1) if id_match else None,
        exit_code=result.returncode,
        raw_output=text,
    )


class SigningNotarizer:
    """Signs and notarizes the binaries of one macOS job.

    Parameters
    ----------
    runner:
        Command execution backend.
    settings:
        Supplies the certificate, keychain and notarization secrets.
    config:
        Pipeline configuration (entitlements path, primary binary).
    source_dir:
        Checkout root; the entitlements path is relative to it.
    work_dir:
        Job-scoped scratch directory for the keychain and archive.
    """

    def __init__(
        self,
        runner: CommandRunner,
        settings: ReleaseSettings,
        config: PipelineConfig,
        *,
        source_dir: Path,
        work_dir: Path,
    ) -> None:
        self._runner = runner
        self._settings = settings
        self._config = config
        self._source = Path(source_dir)
        self._work_dir = Path(work_dir)
        self.state = SigningState.UNSIGNED
        self.history: list[SigningState] = [SigningState.UNSIGNED]
        self.verdict: NotarizationVerdict | None = None

    @staticmethod
    def applies_to(platform: PlatformSpec, event: PushEvent) -> bool:
        return platform.is_macos and event.is_version_tag

    def _advance(self, target: SigningState) -> None:
        if target not in SIGNING_TRANSITIONS[self.state]:
            raise InvalidSigningTransition(
                f"Cannot move signing state from {self.state.value} to {target.value}"
            )
        logger.info("signing: %s -> %s", self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def _secret(self, name: str) -> str:
        return getattr(self._settings, name).get_secret_value()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _codesign(self, platform: PlatformSpec, artifacts: list[Artifact]) -> None:
        identity = self._settings.codesign_identity
        if not identity:
            raise SigningFailure("no code-signing identity configured")

        for artifact in artifacts:
            artifact.path.chmod(artifact.path.stat().st_mode | 0o755)
            args = ["codesign"]
            if (
                platform.needs_relaxed_entitlement
                and artifact.binary_kind == BinaryKind.PRIMARY_CLI
            ):
                args += ["--entitlements", str(self._source / self._config.entitlements_path)]
            args += ["--options", "runtime", "-s", identity, str(artifact.path)]
            result = self._runner.run(args)
            if not result.ok:
                raise SigningFailure(
                    f"codesign of {artifact.name} failed with exit code "
                    f"{result.returncode}: {result.output.strip()}"
                )

    def _archive(self, artifacts: list[Artifact]) -> Path:
        archive = self._work_dir / NOTARIZATION_ARCHIVE
        self._work_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
            for artifact in artifacts:
                zf.write(artifact.path, arcname=artifact.path.name)
        return archive

    def _submit(self, archive: Path) -> NotarizationVerdict:
        apple_id = self._secret("apple_notarization_dev_id")
        password = self._secret("apple_notarization_dev_pass")
        team_id = self._secret("apple_team_id")
        # Blocks until the service reaches a terminal verdict.
        result = self._runner.run(
            [
                "xcrun", "notarytool", "submit", str(archive),
                "--apple-id", apple_id,
                "--password", password,
                "--team-id", team_id,
                "--wait",
                "--output-format", "json",
            ],
            redact=(apple_id, password, team_id),
        )
        logger.info("notarization output:\n%s", result.output)
        return classify_verdict(result)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def sign_and_notarize(
        self, platform: PlatformSpec, artifacts: list[Artifact]
    ) -> NotarizationVerdict:
        """Run the whole machine; raises unless the verdict is ACCEPTED."""
        keychain = TemporaryKeychain(
            self._runner,
            self._work_dir,
            cert_base64=self._secret("macos_build_cert_base64"),
            cert_password=self._secret("macos_build_cert_p12_password"),
            keychain_password=self._secret("macos_keychain_password"),
            idle_timeout_seconds=self._settings.keychain_idle_timeout_seconds,
        )
        with keychain:
            self._advance(SigningState.KEYCHAIN_PROVISIONED)
            self._codesign(platform, artifacts)
            self._advance(SigningState.SIGNED)

            archive = self._archive(artifacts)
            try:
                self._advance(SigningState.SUBMITTED)
                verdict = self._submit(archive)
            finally:
                archive.unlink(missing_ok=True)

        self.verdict = verdict
        if not verdict.accepted:
            self._advance(SigningState.REJECTED)
            raise NotarizationRejected(verdict.raw_output)
        self._advance(SigningState.ACCEPTED)
        logger.info(
            "%s notarization accepted (submission %s)",
            platform.name, verdict.submission_id or "unknown",
        )
        return verdict
