"""Tests for cache key derivation and the directory cache store."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from conftest import PLAN, FakeRunner, install_fake_toolchain
from shipwright.core.cache import (
    CacheKeyDeriver,
    CacheKind,
    CacheStore,
    PlanFormatError,
    build_output_keys,
)
from shipwright.core.errors import StepFailedError
from shipwright.core.hasher import sha256_hex
from shipwright.models.platforms import PlatformSpec


class TestCacheKeyDeriver:
    def test_key_is_deterministic(self, linux: PlatformSpec):
        deriver = CacheKeyDeriver()
        assert deriver.derive(PLAN, linux) == deriver.derive(PLAN, linux)

    def test_hash_covers_sorted_ids_one_per_line(self, linux: PlatformSpec):
        key = CacheKeyDeriver().derive(PLAN, linux)
        expected = "aeson-2.1.2.1-9f1a\nbase-4.17.2.1\ntext-2.0.2\n"
        assert key.hash == sha256_hex(expected.encode("utf-8"))

    def test_entry_order_does_not_matter(self, linux: PlatformSpec):
        shuffled = {"install-plan": list(reversed(PLAN["install-plan"]))}
        deriver = CacheKeyDeriver()
        assert deriver.derive(shuffled, linux).hash == deriver.derive(PLAN, linux).hash

    def test_duplicate_ids_are_collapsed(self, linux: PlatformSpec):
        doubled = {"install-plan": PLAN["install-plan"] + PLAN["install-plan"][:1]}
        deriver = CacheKeyDeriver()
        assert deriver.derive(doubled, linux).hash == deriver.derive(PLAN, linux).hash

    def test_unrelated_plan_fields_are_ignored(self, linux: PlatformSpec):
        """Only resolved identifiers count, not timestamps or build settings."""
        noisy = dict(PLAN, **{"compiler-id": "ghc-9.4.8", "os": "linux"})
        deriver = CacheKeyDeriver()
        assert deriver.derive(noisy, linux).hash == deriver.derive(PLAN, linux).hash

    def test_changed_dependency_changes_key(self, linux: PlatformSpec):
        bumped = {"install-plan": [{"id": "aeson-2.2.0.0-1b2c"}] + PLAN["install-plan"][1:]}
        deriver = CacheKeyDeriver()
        assert deriver.derive(bumped, linux).hash != deriver.derive(PLAN, linux).hash

    def test_key_and_restore_keys_layout(self, linux: PlatformSpec):
        key = CacheKeyDeriver().derive(PLAN, linux)
        assert key.key == f"Linux-9.4.8-cabal-cache-{key.hash}"
        assert key.restore_keys == [
            "Linux-9.4.8-cabal-cache-",
            "Linux-9.4.8-",
        ]

    def test_missing_install_plan_rejected(self, linux: PlatformSpec):
        with pytest.raises(PlanFormatError):
            CacheKeyDeriver().derive({"cabal-version": "3.10"}, linux)

    def test_entry_without_id_rejected(self, linux: PlatformSpec):
        with pytest.raises(PlanFormatError, match="without an id"):
            CacheKeyDeriver().derive({"install-plan": [{"type": "configured"}]}, linux)

    def test_invalid_json_file_rejected(self, tmp_dir: Path, linux: PlatformSpec):
        plan = tmp_dir / "plan.json"
        plan.write_text("{not json", encoding="utf-8")
        with pytest.raises(PlanFormatError):
            CacheKeyDeriver().derive_from_file(plan, linux)

    def test_derive_from_file(self, tmp_dir: Path, linux: PlatformSpec):
        plan = tmp_dir / "plan.json"
        plan.write_text(json.dumps(PLAN), encoding="utf-8")
        assert CacheKeyDeriver().derive_from_file(plan, linux) == CacheKeyDeriver().derive(
            PLAN, linux
        )

    def test_resolve_and_derive_runs_dry_run(self, tmp_dir: Path, linux: PlatformSpec):
        runner = install_fake_toolchain(FakeRunner())
        key = CacheKeyDeriver().resolve_and_derive(runner, tmp_dir, linux)
        assert key == CacheKeyDeriver().derive(PLAN, linux)
        assert runner.called("cabal", "--project-file=cabal.project.ci.linux", "update")
        dry = runner.called("cabal", "--project-file=cabal.project.ci.linux", "build", "--dry-run")
        assert dry and dry[0].cwd == tmp_dir

    def test_resolve_passes_the_job_environment(self, tmp_dir: Path, linux: PlatformSpec):
        runner = install_fake_toolchain(FakeRunner())
        CacheKeyDeriver().resolve_and_derive(
            runner, tmp_dir, linux, env={"CABAL_DIR": str(tmp_dir / "cabal")}
        )
        assert [c.env for c in runner.called("cabal")] == [
            {"CABAL_DIR": str(tmp_dir / "cabal")}
        ] * 2

    def test_resolve_failure_is_step_failure(self, tmp_dir: Path, linux: PlatformSpec):
        runner = FakeRunner().on("cabal", returncode=1, stderr="no index")
        with pytest.raises(StepFailedError):
            CacheKeyDeriver().resolve_and_derive(runner, tmp_dir, linux)


class TestBuildOutputKeys:
    def test_primary_then_parent_then_prefixes(self, linux: PlatformSpec):
        primary, fallbacks = build_output_keys(linux, "abc", "def")
        assert primary == "Linux-9.4.8-dist-newstyle-abc"
        assert fallbacks == [
            "Linux-9.4.8-dist-newstyle-def",
            "Linux-9.4.8-dist-newstyle-",
            "Linux-9.4.8-",
        ]

    def test_no_parent(self, linux: PlatformSpec):
        _, fallbacks = build_output_keys(linux, "abc")
        assert fallbacks[0] == "Linux-9.4.8-dist-newstyle-"

    def test_every_fallback_pins_the_toolchain(self, linux: PlatformSpec):
        _, fallbacks = build_output_keys(linux, "abc", "def")
        assert all(f.startswith("Linux-9.4.8-") for f in fallbacks)


CABAL = CacheKind.CABAL_STORE
BUILD = CacheKind.BUILD_OUTPUT


class TestCacheStore:
    @pytest.fixture
    def store(self, tmp_dir: Path) -> CacheStore:
        return CacheStore(tmp_dir / "cache")

    @pytest.fixture
    def source(self, tmp_dir: Path) -> Path:
        src = tmp_dir / "src"
        (src / "pkg").mkdir(parents=True)
        (src / "pkg" / "lib.a").write_bytes(b"object code")
        return src

    def test_save_and_exact_restore(self, store: CacheStore, source: Path, tmp_dir: Path):
        assert store.save("Linux-9.4.8-cabal-cache-aaa", source, kind=CABAL) is True
        dest = tmp_dir / "restored"
        hit = store.restore("Linux-9.4.8-cabal-cache-aaa", [], dest, kind=CABAL)
        assert hit is not None and hit.exact
        assert (dest / "pkg" / "lib.a").read_bytes() == b"object code"

    def test_entries_live_under_their_kind(
        self, store: CacheStore, source: Path, tmp_dir: Path
    ):
        store.save("Linux-9.4.8-dist-newstyle-abc", source, kind=BUILD)
        assert (tmp_dir / "cache" / "dist-newstyle" / "Linux-9.4.8-dist-newstyle-abc.tar.gz").is_file()
        assert not (tmp_dir / "cache" / "cabal-store").exists()

    def test_entries_are_immutable(self, store: CacheStore, source: Path):
        assert store.save("k", source, kind=CABAL) is True
        assert store.save("k", source, kind=CABAL) is False

    def test_same_key_in_two_kinds(self, store: CacheStore, source: Path):
        assert store.save("k", source, kind=CABAL) is True
        assert store.save("k", source, kind=BUILD) is True

    def test_missing_source_not_saved(self, store: CacheStore, tmp_dir: Path):
        assert store.save("k", tmp_dir / "nope", kind=CABAL) is False
        assert not store.has("k", kind=CABAL)

    def test_fallback_prefers_most_specific_prefix(self, store: CacheStore, source: Path):
        store.save("Linux-9.4.8-cabal-cache-old", source, kind=CABAL)
        store.save("Linux-9.2.8-cabal-cache-other", source, kind=CABAL)
        hit = store.lookup(
            "Linux-9.4.8-cabal-cache-new",
            ["Linux-9.4.8-cabal-cache-", "Linux-9.4.8-"],
            kind=CABAL,
        )
        assert hit is not None
        assert hit.matched_key == "Linux-9.4.8-cabal-cache-old"
        assert hit.exact is False

    def test_fallback_picks_newest_within_prefix(self, store: CacheStore, source: Path):
        store.save("Linux-a", source, kind=CABAL)
        store.save("Linux-b", source, kind=CABAL)
        older = store._entry_path("Linux-a", CABAL)
        os.utime(older, (1_000_000, 1_000_000))
        hit = store.lookup("Linux-z", ["Linux-"], kind=CABAL)
        assert hit is not None and hit.matched_key == "Linux-b"

    def test_other_platform_never_matches(self, store: CacheStore, source: Path):
        store.save("Windows-9.4.8-cabal-cache-x", source, kind=CABAL)
        assert store.lookup("Linux-9.4.8-cabal-cache-y", ["Linux-9.4.8-"], kind=CABAL) is None

    def test_dependency_store_is_never_restored_as_build_output(
        self, store: CacheStore, source: Path, linux: PlatformSpec, tmp_dir: Path
    ):
        cabal_key = CacheKeyDeriver().derive(PLAN, linux)
        store.save(cabal_key.key, source, kind=CABAL)

        primary, fallbacks = build_output_keys(linux, "abc", "def")
        assert store.lookup(primary, fallbacks, kind=BUILD) is None
        assert store.restore(primary, fallbacks, tmp_dir / "dist-newstyle", kind=BUILD) is None
        assert not (tmp_dir / "dist-newstyle").exists()

    def test_build_output_is_never_restored_as_dependency_store(
        self, store: CacheStore, source: Path, linux: PlatformSpec
    ):
        primary, _ = build_output_keys(linux, "abc")
        store.save(primary, source, kind=BUILD)

        cabal_key = CacheKeyDeriver().derive(PLAN, linux)
        assert store.lookup(cabal_key.key, cabal_key.restore_keys, kind=CABAL) is None

    def test_prefix_sibling_platform_never_matches(
        self, store: CacheStore, source: Path, linux: PlatformSpec
    ):
        """``Linux`` fallbacks must not pick up a ``Linux-arm64`` entry."""
        sibling = linux.model_copy(update={"name": "Linux-arm64", "arch": "arm64"})
        sibling_key = CacheKeyDeriver().derive(PLAN, sibling)
        store.save(sibling_key.key, source, kind=CABAL)

        linux_key = sibling_key.model_copy(update={"platform": "Linux", "hash": "0" * 64})
        assert store.lookup(linux_key.key, linux_key.restore_keys, kind=CABAL) is None

    def test_miss_returns_none(self, store: CacheStore, tmp_dir: Path):
        assert store.restore("k", ["k-"], tmp_dir / "dest", kind=CABAL) is None
        assert not (tmp_dir / "dest").exists()
