"""Preflight guard: fails a release run before any job starts.

A version-tag run that would sign, notarize and publish must have every
secret it needs. Checking up front means a missing credential is reported
once, with every other missing credential, instead of as a late failure
in one platform job after the others already spent their build time.
"""

from __future__ import annotations

import logging

from shipwright.config import ReleaseSettings
from shipwright.core.errors import ConfigurationError
from shipwright.models.config import PipelineConfig
from shipwright.models.release import PushEvent

logger = logging.getLogger(__name__)

# Settings field names required whenever a macOS job will be notarized.
MACOS_SIGNING_SECRETS: list[str] = [
    "macos_build_cert_base64",
    "macos_build_cert_p12_password",
    "macos_keychain_password",
    "apple_notarization_dev_id",
    "apple_notarization_dev_pass",
    "apple_team_id",
]

RELEASE_SECRETS: list[str] = ["github_token"]


def _is_set(settings: ReleaseSettings, field: str) -> bool:
    value = getattr(settings, field)
    if hasattr(value, "get_secret_value"):
        value = value.get_secret_value()
    return bool(value)


def enforce_release_constraints(
    settings: ReleaseSettings, config: PipelineConfig, event: PushEvent
) -> None:
    """Validate everything a version-tag run needs.

    Non-tag runs neither sign nor publish, so they are never blocked here.

    Raises
    ------
    ConfigurationError
        Listing every violated constraint.
    """
    if not event.is_version_tag:
        return

    violations: list[str] = []

    for field in RELEASE_SECRETS:
        if not _is_set(settings, field):
            violations.append(
                f"'{field}' is required to publish a release. "
                f"Set SHIPWRIGHT_{field.upper()}."
            )
    if not settings.github_repository:
        violations.append(
            "'github_repository' (owner/name) is required to publish a release. "
            "Set SHIPWRIGHT_GITHUB_REPOSITORY."
        )
    if not event.workflow_ref:
        violations.append(
            "the push event has no workflow_ref; the transparency-log signer "
            "identity cannot be derived."
        )

    try:
        config.platform(config.reference_platform)
    except KeyError:
        violations.append(
            f"reference platform {config.reference_platform!r} is not in the matrix."
        )

    if any(p.is_macos for p in config.matrix):
        for field in MACOS_SIGNING_SECRETS:
            if not _is_set(settings, field):
                violations.append(
                    f"'{field}' is required to notarize macOS builds. "
                    f"Set SHIPWRIGHT_{field.upper()}."
                )
        if not settings.codesign_identity:
            violations.append(
                "'codesign_identity' is required to sign macOS builds. "
                "Set SHIPWRIGHT_CODESIGN_IDENTITY."
            )

    if violations:
        msg = "Release preflight failed.\n" + "\n".join(f"  - {v}" for v in violations)
        logger.critical(msg)
        raise ConfigurationError(msg)

    logger.info("Release preflight passed for %s.", event.ref)
