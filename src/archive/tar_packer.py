# src/archive/tar_packer.py — v2
"""Deterministic tar packer (PACKER_BACKEND=tar).

Entries are sorted and stripped of timestamps and ownership, so the archive
bytes (and therefore the SHA-256 content hash) depend only on relative paths,
file contents and the executable bit.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tarfile
import tempfile
from pathlib import Path

from pinhandoff.archive.base_packer import BaseArchivePacker
from pinhandoff.archive.models import PackResult
from pinhandoff.core.errors import PackError

logger = logging.getLogger(__name__)

HASH_PREFIX = "sha256-"
_CHUNK = 1024 * 1024


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    if info.isdir():
        info.mode = 0o755
    else:
        info.mode = 0o755 if info.mode & 0o100 else 0o644
    return info


def _members(root: Path) -> list[Path]:
    if root.is_file():
        return [root]
    return sorted(
        (p for p in root.rglob("*") if not p.is_symlink()),
        key=lambda p: p.relative_to(root).as_posix(),
    )


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(_CHUNK), b""):
            digest.update(block)
    return digest.hexdigest()


class TarArchivePacker(BaseArchivePacker):
    """Pack content into a reproducible tar archive."""

    def __init__(self, output_dir: Path | str | None = None) -> None:
        self._output_dir = Path(output_dir) if output_dir else None
        self._scratch_dirs: list[Path] = []

    async def pack(self, path: Path) -> PackResult:
        """Pack path and return its content hash and archive location."""
        path = Path(path)
        if not path.exists():
            raise PackError(f"content path not found: {path}")

        out_dir = self._output_dir
        if out_dir is None:
            out_dir = Path(tempfile.mkdtemp(prefix="pinhandoff-"))
            self._scratch_dirs.append(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        staging = out_dir / "content.tar.partial"

        logger.info("Packing '%s' into tar archive", path)
        try:
            with tarfile.open(staging, "w", format=tarfile.PAX_FORMAT) as tar:
                for member in _members(path):
                    arcname = member.name if path.is_file() else member.relative_to(path).as_posix()
                    tar.add(member, arcname=arcname, recursive=False, filter=_normalize)
            content_hash = HASH_PREFIX + file_sha256(staging)
            archive = out_dir / f"{content_hash}.tar"
            staging.replace(archive)
        except (OSError, tarfile.TarError) as e:
            raise PackError(f"failed to pack {path}: {e}") from e

        size = archive.stat().st_size
        logger.debug("Packed %s (%d bytes) as %s", path, size, content_hash)
        return PackResult(content_hash=content_hash, archive_ref=str(archive), size_bytes=size)

    async def close(self) -> None:
        """Remove the temporary directories created for packing."""
        while self._scratch_dirs:
            shutil.rmtree(self._scratch_dirs.pop(), ignore_errors=True)
