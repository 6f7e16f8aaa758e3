# src/channel/bundle.py — v1
"""Bundle packing: zip archives of the context directory."""

from __future__ import annotations

import io
import shutil
import zipfile
from pathlib import Path, PurePosixPath

from pinhandoff.context.store import CONTEXT_DIRNAME


def pack_bundle(files: list[Path]) -> bytes:
    """Zip files flat (by basename) into an in-memory archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=6) as zf:
        for path in files:
            zf.write(path, arcname=path.name)
    return buffer.getvalue()


def unpack_bundle(data: bytes, dest: Path) -> list[Path]:
    """Extract zip bytes into dest.

    Raises:
        zipfile.BadZipFile: If data is not a zip archive.
        ValueError: If an entry would escape dest.
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()
    written: list[Path] = []
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        for info in zf.infolist():
            member = PurePosixPath(info.filename)
            if member.is_absolute() or ".." in member.parts:
                raise ValueError(f"refusing unsafe bundle entry: {info.filename!r}")
            target = (root / Path(*member.parts)).resolve()
            if root not in target.parents and target != root:
                raise ValueError(f"refusing unsafe bundle entry: {info.filename!r}")
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, target.open("wb") as out:
                shutil.copyfileobj(src, out)
            written.append(target)
    return written


def bundle_source_dir(extracted: Path) -> Path:
    """Directory holding the context files inside an extracted bundle.

    Bundles produced by older tooling nest everything under action-context/.
    """
    nested = extracted / CONTEXT_DIRNAME
    return nested if nested.is_dir() else extracted


def materialize(source: Path, target: Path) -> None:
    """Replace target's contents with source's contents."""
    if target.exists():
        shutil.rmtree(target)
    shutil.copytree(source, target)
