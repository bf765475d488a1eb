"""Release publication: the join stage after every platform job succeeded.

Tag runs: verify the embedded version, sign and verify the reference
platform's binaries, bundle, checksum, attest, then create one draft
release. Other runs: bundle, checksum and attest the same way, then store
the result in the artifact store for manual retrieval. No signing and no
release object.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shipwright.config import ReleaseSettings
from shipwright.core.artifact_store import ArtifactStore
from shipwright.core.commands import CommandRunner
from shipwright.core.errors import ConfigurationError, VersionMismatch
from shipwright.core.hasher import canonical_json_bytes, sha256_hex
from shipwright.models.artifacts import (
    Archive,
    Artifact,
    BinaryKind,
    ChecksumRecord,
    PlatformArtifactSet,
    SigningBundle,
)
from shipwright.models.config import PipelineConfig
from shipwright.models.release import PushEvent, Release, ReleaseOutcome, ReleaseVersion
from shipwright.release.bundler import ArtifactBundler
from shipwright.release.checksums import ChecksumService
from shipwright.release.hosting import GitHubReleaseHost, ReleaseHost
from shipwright.release.versioning import (
    expected_version_string,
    resolve_release_version,
    toolchain_major_minor,
    verify_embedded_version,
)
from shipwright.signing import attestation
from shipwright.signing.cosign import CosignSigner, derive_signer_identity

logger = logging.getLogger(__name__)

MANIFEST_NAME = "release-manifest.json"
SIGNATURE_SUFFIX = ".sig"
NON_TAG_ARTIFACT_NAME = "release-archives"


def build_manifest(
    version: ReleaseVersion,
    event: PushEvent,
    records: list[ChecksumRecord],
    archives: list[Archive],
    bundles: list[SigningBundle],
) -> dict:
    platforms = {a.name: a.platform for a in archives}
    return {
        "version": version.value,
        "ref": event.ref,
        "commit": event.sha,
        "archives": [
            {"name": r.archive_name, "sha256": r.sha256, "platform": platforms[r.archive_name]}
            for r in sorted(records, key=lambda r: r.archive_name)
        ],
        "signature_bundles": [
            {
                "name": b.path.name,
                "artifact": b.artifact_name,
                "sha256": sha256_hex(b.signature_blob),
                "signer_identity": b.signer_identity,
            }
            for b in sorted(bundles, key=lambda b: b.artifact_name)
        ],
    }


def verify_manifest(manifest_path: Path, public_key: str) -> bool:
    """Check ``release-manifest.json.sig`` against the manifest bytes."""
    sig_path = manifest_path.with_name(manifest_path.name + SIGNATURE_SUFFIX)
    if not sig_path.is_file():
        return False
    return attestation.verify_data(
        manifest_path.read_bytes(), sig_path.read_text(encoding="utf-8").strip(), public_key
    )


class ReleasePublisher:
    """Aggregates platform outputs and publishes them.

    Parameters
    ----------
    runner:
        Command execution backend (version check, cosign).
    settings:
        Runtime settings; supplies the hosting token and signer identity
        inputs.
    config:
        Pipeline configuration.
    store:
        The run's artifact store; platform sets are downloaded from it.
    work_dir:
        Scratch directory of the release stage.
    host:
        Release-hosting backend. When not given, a GitHub client is built
        from settings for the tag run and closed once the draft exists.
    """

    def __init__(
        self,
        runner: CommandRunner,
        settings: ReleaseSettings,
        config: PipelineConfig,
        *,
        store: ArtifactStore,
        work_dir: Path,
        host: ReleaseHost | None = None,
    ) -> None:
        self._runner = runner
        self._settings = settings
        self._config = config
        self._store = store
        self._work_dir = Path(work_dir)
        self._host = host
        self._checksums = ChecksumService()

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _download(self, artifact_set: PlatformArtifactSet) -> PlatformArtifactSet:
        """Materialize a platform set locally; returns it with the new paths."""
        dest = self._work_dir / artifact_set.store_name
        self._store.download(artifact_set.store_name, dest)
        local: list[Artifact] = []
        for artifact in artifact_set.artifacts:
            path = dest / artifact.name
            if not path.is_file():
                raise FileNotFoundError(
                    f"{artifact_set.store_name} is missing {artifact.name}"
                )
            local.append(artifact.model_copy(update={"path": path}))
        return artifact_set.model_copy(update={"artifacts": local})

    def _check_versions(
        self, version: ReleaseVersion, artifact_sets: list[PlatformArtifactSet]
    ) -> None:
        for artifact_set in artifact_sets:
            if artifact_set.version != version.value:
                raise VersionMismatch(version.value, artifact_set.version)

    # ------------------------------------------------------------------
    # Tag-only steps
    # ------------------------------------------------------------------

    def _verify_version(
        self, version: ReleaseVersion, reference: PlatformArtifactSet
    ) -> None:
        platform = self._config.platform(self._config.reference_platform)
        expected = expected_version_string(
            self._config.tool_name,
            version,
            toolchain_major_minor(self._config.toolchain_label, platform.toolchain_version),
        )
        primary = reference.by_kind(BinaryKind.PRIMARY_CLI)
        verify_embedded_version(self._runner, primary.path, expected)

    def _sign(self, event: PushEvent, reference: list[Artifact]) -> list[SigningBundle]:
        signer = CosignSigner(
            self._runner,
            derive_signer_identity(event.workflow_ref, self._settings.server_url),
            self._settings.oidc_issuer,
        )
        return [signer.sign_and_verify(a.path) for a in reference]

    def _create_draft(
        self, event: PushEvent, version: ReleaseVersion, files: list[Path]
    ) -> Release:
        """Create the draft on the injected host, or on a client opened just for it."""
        if self._host is not None:
            return self._host.create_draft_release(
                event.ref_name, event.ref_name, version.value, files
            )
        token = self._settings.github_token.get_secret_value()
        if not token:
            raise ConfigurationError("no release-hosting token configured")
        with GitHubReleaseHost(
            self._settings.github_repository,
            token,
            api_url=self._settings.github_api_url,
        ) as host:
            return host.create_draft_release(
                event.ref_name, event.ref_name, version.value, files
            )

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _write_manifest(self, release_dir: Path, manifest: dict) -> list[Path]:
        release_dir.mkdir(parents=True, exist_ok=True)
        path = release_dir / MANIFEST_NAME
        data = canonical_json_bytes(manifest)
        path.write_bytes(data)
        files = [path]
        key = self._settings.attestation_signing_key.get_secret_value()
        if key:
            sig_path = path.with_name(path.name + SIGNATURE_SUFFIX)
            sig_path.write_text(attestation.sign_data(data, key) + "\n", encoding="utf-8")
            files.append(sig_path)
            logger.info(
                "attested release manifest with key %s",
                attestation.key_fingerprint(attestation.public_key_for(key)),
            )
        return files

    def publish(
        self, event: PushEvent, artifact_sets: list[PlatformArtifactSet]
    ) -> ReleaseOutcome:
        version = resolve_release_version(event)
        self._check_versions(version, artifact_sets)
        is_tag = event.is_version_tag
        logger.info(
            "publishing %s from %s (%s run)",
            version.value, event.ref, "tag" if is_tag else "non-tag",
        )

        local = {s.platform: self._download(s) for s in artifact_sets}
        reference_name = self._config.reference_platform

        bundles: list[SigningBundle] = []
        if is_tag:
            if reference_name not in local:
                raise ConfigurationError(
                    f"reference platform {reference_name!r} produced no artifacts"
                )
            self._verify_version(version, local[reference_name])
            bundles = self._sign(event, local[reference_name].artifacts)

        release_dir = self._work_dir / "release"
        bundler = ArtifactBundler(release_dir)
        archives: list[Archive] = []
        for artifact_set in artifact_sets:
            platform = self._config.platform(artifact_set.platform)
            platform_bundles = bundles if artifact_set.platform == reference_name else []
            archives += bundler.bundle(
                platform, version.value, local[artifact_set.platform].artifacts, platform_bundles
            )

        records = self._checksums.generate(archives)
        self._checksums.verify_all(records)

        manifest = build_manifest(version, event, records, archives, bundles)
        manifest_files = self._write_manifest(release_dir, manifest)

        files = (
            [a.path for a in archives]
            + [r.sidecar_path for r in records]
            + [b.path for b in bundles]
            + manifest_files
        )

        if not is_tag:
            self._store.upload(NON_TAG_ARTIFACT_NAME, files)
            return ReleaseOutcome(
                version=version,
                published=False,
                archives=archives,
                checksums=records,
                manifest_path=manifest_files[0],
                stored_as=NON_TAG_ARTIFACT_NAME,
            )

        release = self._create_draft(event, version, files)
        logger.info("draft release %s created with %d assets", release.tag_name, len(files))
        return ReleaseOutcome(
            version=version,
            published=True,
            release=release,
            archives=archives,
            checksums=records,
            bundles=bundles,
            manifest_path=manifest_files[0],
        )
