"""Release archive assembly.

One archive per binary and format, named ``{stem}_{version}_{os}_{arch}``.
Linux gets a zip and a tar.gz, macOS and Windows a zip. When a binary has a
signature bundle, the bundle goes into every archive of that binary.
"""

from __future__ import annotations

import logging
import tarfile
import zipfile
from pathlib import Path

from shipwright.models.artifacts import Archive, Artifact, SigningBundle
from shipwright.models.platforms import ArchiveFormat, PlatformSpec

logger = logging.getLogger(__name__)

_EXEC_MODE = 0o755
_FILE_MODE = 0o644


def archive_name(stem: str, version: str, platform: PlatformSpec, fmt: ArchiveFormat) -> str:
    return f"{stem}_{version}_{platform.os_family.value}_{platform.arch}.{fmt.value}"


def list_members(path: Path) -> list[str]:
    """Entry names of a zip or tar.gz archive, in stored order."""
    if path.name.endswith(".tar.gz"):
        with tarfile.open(path, "r:gz") as tar:
            return tar.getnames()
    with zipfile.ZipFile(path) as zf:
        return zf.namelist()


class ArtifactBundler:
    """Packs per-binary release archives into an output directory."""

    def __init__(self, output_dir: Path) -> None:
        self._out = Path(output_dir)

    @staticmethod
    def _write_zip(target: Path, entries: list[tuple[Path, int]]) -> None:
        with zipfile.ZipFile(target, "w", zipfile.ZIP_DEFLATED) as zf:
            for source, mode in entries:
                info = zipfile.ZipInfo.from_file(source, arcname=source.name)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = (0o100000 | mode) << 16
                zf.writestr(info, source.read_bytes())

    @staticmethod
    def _write_tar_gz(target: Path, entries: list[tuple[Path, int]]) -> None:
        with tarfile.open(target, "w:gz") as tar:
            for source, mode in entries:
                def _normalize(info: tarfile.TarInfo, mode: int = mode) -> tarfile.TarInfo:
                    info.mode = mode
                    info.uid = info.gid = 0
                    info.uname = info.gname = ""
                    return info

                tar.add(source, arcname=source.name, filter=_normalize)

    def bundle(
        self,
        platform: PlatformSpec,
        version: str,
        artifacts: list[Artifact],
        signing_bundles: list[SigningBundle] | None = None,
    ) -> list[Archive]:
        """Archive every artifact of *platform* in each of its formats."""
        self._out.mkdir(parents=True, exist_ok=True)
        by_artifact = {b.artifact_name: b for b in signing_bundles or []}

        archives: list[Archive] = []
        for artifact in artifacts:
            entries: list[tuple[Path, int]] = [(artifact.path, _EXEC_MODE)]
            sig = by_artifact.get(artifact.name)
            if sig is not None:
                entries.append((sig.path, _FILE_MODE))

            for fmt in platform.archive_formats:
                name = archive_name(artifact.stem, version, platform, fmt)
                target = self._out / name
                if fmt == ArchiveFormat.ZIP:
                    self._write_zip(target, entries)
                else:
                    self._write_tar_gz(target, entries)
                archives.append(
                    Archive(
                        name=name,
                        path=target,
                        format=fmt,
                        platform=platform.name,
                        binary_kind=artifact.binary_kind,
                        members=[source.name for source, _ in entries],
                    )
                )
                logger.info("bundled %s (%d entries)", name, len(entries))
        return archives
