"""Cache key derivation and the directory cache store.

The dependency-store cache key is computed from the *resolved* install
plan instead of the project's package description: many edits (new source
modules, for example) change the description without changing a single
resolved dependency. Hashing the sorted plan identifiers invalidates the
cache exactly when resolved versions change.
"""

from __future__ import annotations

import json
import logging
import os
import tarfile
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from shipwright.core.commands import CommandRunner
from shipwright.core.errors import StepFailedError
from shipwright.core.hasher import sha256_hex
from shipwright.models.jobs import CacheKey
from shipwright.models.platforms import PlatformSpec

logger = logging.getLogger(__name__)

PLAN_RELATIVE_PATH = Path("dist-newstyle/cache/plan.json")


class PlanFormatError(ValueError):
    """Raised when a plan file does not look like a resolved install plan."""


class CacheKeyDeriver:
    """Turns a resolved dependency plan into a stable cache key."""

    @staticmethod
    def package_ids(plan: dict[str, Any]) -> list[str]:
        """Sorted, de-duplicated package identifiers of a resolved plan."""
        try:
            entries = plan["install-plan"]
        except (KeyError, TypeError) as exc:
            raise PlanFormatError("plan has no 'install-plan' list") from exc
        if not isinstance(entries, list):
            raise PlanFormatError("'install-plan' is not a list")

        ids: set[str] = set()
        for entry in entries:
            if not isinstance(entry, dict) or "id" not in entry:
                raise PlanFormatError(f"install-plan entry without an id: {entry!r}")
            ids.add(str(entry["id"]))
        return sorted(ids)

    def derive(self, plan: dict[str, Any], platform: PlatformSpec) -> CacheKey:
        ids = self.package_ids(plan)
        payload = "".join(f"{pid}\n" for pid in ids).encode("utf-8")
        key = CacheKey(
            hash=sha256_hex(payload),
            platform=platform.name,
            toolchain=platform.toolchain_version,
        )
        logger.info(
            "%s: %d resolved packages -> cache key %s",
            platform.name, len(ids), key.hash[:16],
        )
        return key

    def derive_from_file(self, plan_path: Path, platform: PlatformSpec) -> CacheKey:
        try:
            plan = json.loads(Path(plan_path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise PlanFormatError(f"{plan_path} is not valid JSON") from exc
        return self.derive(plan, platform)

    def resolve_and_derive(
        self,
        runner: CommandRunner,
        source_dir: Path,
        platform: PlatformSpec,
        env: Mapping[str, str] | None = None,
    ) -> CacheKey:
        """Ask the build tool for its install plan, then derive the key."""
        project = f"--project-file={platform.project_file}"
        for args in (["cabal", project, "update"], ["cabal", project, "build", "--dry-run"]):
            result = runner.run(args, cwd=source_dir, env=env)
            if not result.ok:
                raise StepFailedError(" ".join(args), result.returncode, result.output)
        return self.derive_from_file(source_dir / PLAN_RELATIVE_PATH, platform)


def build_output_keys(
    platform: PlatformSpec, sha: str, parent_sha: str = ""
) -> tuple[str, list[str]]:
    """Primary key and fallbacks for the incremental build-output cache.

    Every fallback ends in the toolchain segment, so a platform whose name
    extends another one (``Linux`` and ``Linux-arm64``) never matches.
    """
    prefix = f"{platform.name}-{platform.toolchain_version}"
    primary = f"{prefix}-dist-newstyle-{sha}"
    fallbacks = []
    if parent_sha:
        fallbacks.append(f"{prefix}-dist-newstyle-{parent_sha}")
    fallbacks += [f"{prefix}-dist-newstyle-", f"{prefix}-"]
    return primary, fallbacks


class CacheKind(str, Enum):
    """The cached paths. Each one is a separate key space."""

    CABAL_STORE = "cabal-store"
    BUILD_OUTPUT = "dist-newstyle"


@dataclass(frozen=True)
class CacheRestore:
    """Which entry a restore used."""

    matched_key: str
    exact: bool


class CacheStore:
    """Directory snapshots stored as gzip tarballs, keyed by cache key.

    Entries live under one subdirectory per :class:`CacheKind`, and prefix
    lookups only look inside the requested kind: a dependency-store
    snapshot is never restored as build output. Entries are immutable:
    saving an existing key is a no-op. Writes go to a temp file and are
    renamed into place, so concurrent restores never see a partial entry.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _namespace(self, kind: CacheKind) -> Path:
        return self._base / CacheKind(kind).value

    def _entry_path(self, key: str, kind: CacheKind) -> Path:
        return self._namespace(kind) / f"{key}.tar.gz"

    def has(self, key: str, *, kind: CacheKind) -> bool:
        return self._entry_path(key, kind).exists()

    def save(self, key: str, source_dir: Path, *, kind: CacheKind) -> bool:
        """Snapshot *source_dir* under *key*. Returns False if nothing was written."""
        entry = self._entry_path(key, kind)
        if entry.exists():
            logger.info("cache %s already exists, not saving", key)
            return False
        if not source_dir.is_dir():
            logger.warning("cache source %s does not exist, not saving %s", source_dir, key)
            return False

        entry.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=entry.parent, suffix=".tmp")
        os.close(fd)
        with tarfile.open(tmp, "w:gz") as tar:
            tar.add(source_dir, arcname=".")
        os.replace(tmp, entry)
        logger.info("saved %s cache %s", CacheKind(kind).value, key)
        return True

    def lookup(
        self, key: str, restore_keys: list[str], *, kind: CacheKind
    ) -> CacheRestore | None:
        """Find the closest entry of *kind*: exact key, then each prefix in order."""
        if self.has(key, kind=kind):
            return CacheRestore(matched_key=key, exact=True)
        namespace = self._namespace(kind)
        for prefix in restore_keys:
            candidates = [
                p for p in namespace.glob("*.tar.gz")
                if p.name.removesuffix(".tar.gz").startswith(prefix)
            ]
            if candidates:
                newest = max(candidates, key=lambda p: p.stat().st_mtime)
                return CacheRestore(
                    matched_key=newest.name.removesuffix(".tar.gz"), exact=False
                )
        return None

    def restore(
        self, key: str, restore_keys: list[str], dest_dir: Path, *, kind: CacheKind
    ) -> CacheRestore | None:
        hit = self.lookup(key, restore_keys, kind=kind)
        if hit is None:
            logger.info("%s cache miss for %s", CacheKind(kind).value, key)
            return None
        dest_dir.mkdir(parents=True, exist_ok=True)
        with tarfile.open(self._entry_path(hit.matched_key, kind), "r:gz") as tar:
            tar.extractall(dest_dir, filter="data")
        logger.info(
            "restored %s cache %s (%s)",
            CacheKind(kind).value, hit.matched_key, "exact" if hit.exact else "fallback",
        )
        return hit
