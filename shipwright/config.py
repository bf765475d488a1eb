"""Runtime settings: env-driven, secrets included.

Centralized settings using pydantic-settings. Reads from a .env file and
SHIPWRIGHT_* environment variables. Secret material is held as
``SecretStr`` so it never shows up in reprs or logs.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReleaseSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export SHIPWRIGHT_LOG_LEVEL=DEBUG
        export SHIPWRIGHT_GITHUB_REPOSITORY=fossas/fossa-cli
        export SHIPWRIGHT_MACOS_BUILD_CERT_BASE64="$(base64 < cert.p12)"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SHIPWRIGHT_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime
    log_level: str = "INFO"
    max_parallel_jobs: int = 4

    # Storage paths
    work_dir: Path = Path(".shipwright/work")
    artifact_store_path: Path = Path(".shipwright/artifacts")
    cache_store_path: Path = Path(".shipwright/cache")
    ledger_path: Path = Path(".shipwright/ledger.db")
    # Parent of the per-platform cabal directories
    cabal_store_path: Path = Path("~/.local/state/cabal")

    # macOS signing and notarization
    macos_build_cert_base64: SecretStr = SecretStr("")
    macos_build_cert_p12_password: SecretStr = SecretStr("")
    macos_keychain_password: SecretStr = SecretStr("")
    apple_notarization_dev_id: SecretStr = SecretStr("")
    apple_notarization_dev_pass: SecretStr = SecretStr("")
    apple_team_id: SecretStr = SecretStr("")
    codesign_identity: str = ""
    keychain_idle_timeout_seconds: int = 21600

    # Transparency-log signing
    oidc_issuer: str = "https://token.actions.githubusercontent.com"
    server_url: str = "https://github.com"

    # Release hosting
    github_token: SecretStr = SecretStr("")
    github_repository: str = ""
    github_api_url: str = "https://api.github.com"

    # Optional Ed25519 seed (hex) for the release manifest attestation
    attestation_signing_key: SecretStr = SecretStr("")


# Module-level singleton: import as `from shipwright.config import settings`
settings = ReleaseSettings()
