"""Adversarial tests: refs that must never sign, notarize or publish.

Only ``refs/tags/v<version>`` pushes are release runs. Look-alike refs
(a bare ``v`` tag, an unprefixed tag, a branch named like a version) go
through the non-tag path: archives are stored for manual retrieval, and
no signing tool or release host is ever touched.
"""

from __future__ import annotations

import pytest

from conftest import TAG_SHA, WORKFLOW_REF, FakeRunner, install_fake_toolchain, tag_version_string
from shipwright.core.coordinator import MatrixCoordinator
from shipwright.core.errors import ConfigurationError
from shipwright.models.jobs import JobStatus
from shipwright.models.release import PushEvent
from shipwright.release.publisher import NON_TAG_ARTIFACT_NAME

LOOKALIKE_REFS = [
    "refs/heads/master",
    "refs/tags/v",
    "refs/tags/1.2.3",
    "refs/heads/v1.2.3",
    "refs/tags/release-v1.2.3",
]

SIGNING_TOOLS = [("cosign",), ("codesign",), ("xcrun", "notarytool"), ("security",)]


@pytest.mark.parametrize("ref", LOOKALIKE_REFS)
def test_lookalike_ref_is_not_a_release(ref):
    assert not PushEvent(ref=ref, sha=TAG_SHA).is_version_tag


@pytest.mark.parametrize("ref", LOOKALIKE_REFS)
def test_lookalike_ref_never_signs_or_publishes(
    ref, toolchain_runner, bare_settings, config, checkouts, release_host
):
    """Runs even with no secrets configured, and leaves every signing tool alone."""
    event = PushEvent(ref=ref, sha=TAG_SHA, workflow_ref=WORKFLOW_REF)
    coordinator = MatrixCoordinator(
        config,
        bare_settings,
        runner=toolchain_runner,
        checkouts=checkouts,
        run_id="sw-adv-gating",
        host=release_host,
    )
    result = coordinator.run(event)

    assert result.succeeded
    assert release_host.created == []
    for tool in SIGNING_TOOLS:
        assert toolchain_runner.called(*tool) == []

    outcome = result.release_outcome
    assert outcome is not None
    assert outcome.published is False
    assert outcome.stored_as == NON_TAG_ARTIFACT_NAME
    assert outcome.version.value == TAG_SHA
    assert outcome.bundles == []
    assert NON_TAG_ARTIFACT_NAME in coordinator.artifact_store.names()


def test_real_tag_without_workflow_ref_is_refused(
    toolchain_runner, settings, config, checkouts, release_host
):
    """A release run cannot derive its signer identity, so nothing starts."""
    coordinator = MatrixCoordinator(
        config,
        settings,
        runner=toolchain_runner,
        checkouts=checkouts,
        run_id="sw-adv-no-identity",
        host=release_host,
    )
    with pytest.raises(ConfigurationError, match="workflow_ref"):
        coordinator.run(PushEvent(ref="refs/tags/v1.2.3", sha=TAG_SHA))
    assert toolchain_runner.calls == []
    assert coordinator.ledger.get_run_entries("sw-adv-no-identity") == []


def test_stale_binary_on_tag_run_blocks_signing(
    settings, config, checkouts, release_host
):
    """A binary stamped with the previous tag is never signed or released."""
    stale = tag_version_string(config, "refs/tags/v1.2.2", TAG_SHA)
    runner = install_fake_toolchain(FakeRunner(), stale)
    coordinator = MatrixCoordinator(
        config, settings, runner=runner, checkouts=checkouts,
        run_id="sw-adv-stale", host=release_host,
    )
    result = coordinator.run(PushEvent(ref="refs/tags/v1.2.3", sha=TAG_SHA, workflow_ref=WORKFLOW_REF))

    assert all(o.status == JobStatus.SUCCEEDED for o in result.outcomes)
    assert result.release_status == JobStatus.FAILED
    assert "VersionMismatch" in (result.release_error or "")
    assert runner.called("cosign") == []
    assert release_host.created == []
