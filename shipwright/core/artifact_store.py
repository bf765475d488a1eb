"""Content-addressed blob store and run-scoped named artifact uploads.

Blob layout: {base_path}/blobs/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat
Upload index: {base_path}/runs/{run_id}/{name}.json

Blobs are immutable: there is no update or delete. Concurrent jobs may
store the same blob; whichever write lands first wins and later writers
verify instead of overwriting.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from shipwright.core.errors import ArtifactIntegrityError, ReleaseError
from shipwright.core.hasher import sha256_file, sha256_hex
from shipwright.models.artifacts import ArtifactRef, ContentAddressedArtifact

logger = logging.getLogger(__name__)


class ArtifactExistsError(ReleaseError):
    """Raised when a run uploads the same artifact name twice."""


class ContentAddressedStore:
    """SHA-256 keyed, immutable blob store.

    Every blob is stored under its SHA-256 digest. Storing the same
    content twice is a no-op (idempotent).

    Parameters
    ----------
    base_path:
        Root directory for blob storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _extract_digest(content_address: str) -> str:
        """Strip the ``sha256:`` prefix from a content address, if present."""
        return content_address.removeprefix("sha256:")

    def _blob_path(self, sha256_digest: str) -> Path:
        return self._base / sha256_digest[:2] / sha256_digest[2:4] / f"{sha256_digest}.dat"

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store_file(
        self,
        source: Path,
        *,
        artifact_type: str = "generic",
        metadata: dict[str, Any] | None = None,
    ) -> ContentAddressedArtifact:
        """Store a file's bytes and return its content-addressed metadata."""
        digest = sha256_file(source)
        path = self._blob_path(digest)

        if path.exists():
            if not self.verify(digest):
                raise ArtifactIntegrityError(
                    f"Existing blob at {digest} failed integrity check"
                )
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Atomic publish: a concurrent reader sees the whole blob or none.
            fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            with os.fdopen(fd, "wb") as out, open(source, "rb") as src:
                for chunk in iter(lambda: src.read(1024 * 1024), b""):
                    out.write(chunk)
            os.replace(tmp, path)

        return ContentAddressedArtifact(
            content_address=f"sha256:{digest}",
            artifact_type=artifact_type,
            name=source.name,
            size_bytes=path.stat().st_size,
            metadata=metadata or {},
        )

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve_to(self, content_address: str, dest: Path) -> Path:
        """Copy a blob to *dest*, verifying its integrity first."""
        digest = self._extract_digest(content_address)
        path = self._blob_path(digest)
        if not path.exists():
            raise FileNotFoundError(f"Blob not found: {content_address}")
        if not self.verify(digest):
            raise ArtifactIntegrityError(f"Blob {digest} failed integrity check")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(path.read_bytes())
        return dest

    def exists(self, content_address: str) -> bool:
        return self._blob_path(self._extract_digest(content_address)).exists()

    def verify(self, content_address: str) -> bool:
        """Re-hash stored data and compare against the content address."""
        digest = self._extract_digest(content_address)
        path = self._blob_path(digest)
        if not path.exists():
            return False
        return sha256_hex(path.read_bytes()) == digest


class ArtifactStore:
    """Named, run-scoped uploads on top of a content-addressed blob store.

    A platform job uploads its binaries under ``{platform}-binaries``; the
    release stage downloads them by the same name.

    Parameters
    ----------
    base_path:
        Root directory of the store.
    run_id:
        Uploads are namespaced by run so reruns never collide.
    """

    def __init__(self, base_path: Path, run_id: str) -> None:
        self._base = Path(base_path)
        self._run_id = run_id
        self.blobs = ContentAddressedStore(self._base / "blobs")
        self._index_dir = self._base / "runs" / run_id
        self._index_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def run_id(self) -> str:
        return self._run_id

    def _index_path(self, name: str) -> Path:
        return self._index_dir / f"{name}.json"

    def upload(self, name: str, files: Iterable[Path]) -> list[ArtifactRef]:
        """Store *files* as the artifact *name*. Names are write-once per run."""
        refs: list[ArtifactRef] = []
        for file in sorted(Path(f) for f in files):
            stored = self.blobs.store_file(file, artifact_type=name)
            refs.append(
                ArtifactRef(
                    name=file.name,
                    content_address=stored.content_address,
                    artifact_type=name,
                    size_bytes=stored.size_bytes,
                    executable=bool(file.stat().st_mode & stat.S_IXUSR),
                )
            )

        index = self._index_path(name)
        with self._lock:
            if index.exists():
                raise ArtifactExistsError(
                    f"Artifact {name!r} was already uploaded in run {self._run_id}"
                )
            index.write_text(
                json.dumps([r.model_dump(mode="json") for r in refs], indent=2),
                encoding="utf-8",
            )

        logger.info("uploaded artifact %s (%d files)", name, len(refs))
        return refs

    def list_refs(self, name: str) -> list[ArtifactRef]:
        index = self._index_path(name)
        if not index.exists():
            raise FileNotFoundError(f"No artifact named {name!r} in run {self._run_id}")
        data = json.loads(index.read_text(encoding="utf-8"))
        return [ArtifactRef.model_validate(item) for item in data]

    def download(self, name: str, dest_dir: Path) -> list[Path]:
        """Materialize artifact *name* into *dest_dir*; returns file paths."""
        dest_dir.mkdir(parents=True, exist_ok=True)
        paths: list[Path] = []
        for ref in self.list_refs(name):
            target = self.blobs.retrieve_to(ref.content_address, dest_dir / ref.name)
            if ref.executable:
                target.chmod(target.stat().st_mode | 0o755)
            paths.append(target)
        logger.info("downloaded artifact %s into %s", name, dest_dir)
        return paths

    def names(self) -> list[str]:
        return sorted(p.stem for p in self._index_dir.glob("*.json"))
