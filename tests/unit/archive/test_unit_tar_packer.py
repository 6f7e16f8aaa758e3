# tests/unit/archive/test_unit_tar_packer.py — v2
"""Tests for archive/tar_packer.py — deterministic content-addressed packing."""

from __future__ import annotations

import os
import tarfile
from pathlib import Path

import pytest

from pinhandoff.archive.packer_factory import create_packer
from pinhandoff.archive.tar_packer import HASH_PREFIX, TarArchivePacker
from pinhandoff.core.errors import PackError


def _tree(root: Path, files: dict[str, str]) -> Path:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


class TestTarPacker:
    @pytest.mark.asyncio
    async def test_hash_format_and_location(self, content_dir: Path, tmp_path: Path):
        result = await TarArchivePacker(tmp_path / "out").pack(content_dir)
        assert result.content_hash.startswith(HASH_PREFIX)
        assert Path(result.archive_ref) == tmp_path / "out" / f"{result.content_hash}.tar"
        assert result.size_bytes == Path(result.archive_ref).stat().st_size

    @pytest.mark.asyncio
    async def test_identical_content_same_hash(self, tmp_path: Path):
        a = _tree(tmp_path / "a", {"index.html": "hi", "css/site.css": "body{}"})
        b = _tree(tmp_path / "b", {"css/site.css": "body{}", "index.html": "hi"})
        os.utime(b / "index.html", (0, 1_000_000))

        first = await TarArchivePacker(tmp_path / "out-a").pack(a)
        second = await TarArchivePacker(tmp_path / "out-b").pack(b)
        assert first.content_hash == second.content_hash

    @pytest.mark.asyncio
    async def test_different_content_different_hash(self, tmp_path: Path):
        a = _tree(tmp_path / "a", {"index.html": "v1"})
        b = _tree(tmp_path / "b", {"index.html": "v2"})
        packer = TarArchivePacker(tmp_path / "out")
        assert (await packer.pack(a)).content_hash != (await packer.pack(b)).content_hash

    @pytest.mark.asyncio
    async def test_entries_normalized(self, content_dir: Path, tmp_path: Path):
        result = await TarArchivePacker(tmp_path / "out").pack(content_dir)
        with tarfile.open(result.archive_ref) as tar:
            members = tar.getmembers()
        assert [m.name for m in members] == ["assets", "assets/app.js", "index.html"]
        assert all(m.mtime == 0 and m.uid == 0 and m.uname == "" for m in members)

    @pytest.mark.asyncio
    async def test_single_file(self, tmp_path: Path):
        path = tmp_path / "report.pdf"
        path.write_bytes(b"%PDF")
        result = await TarArchivePacker(tmp_path / "out").pack(path)
        with tarfile.open(result.archive_ref) as tar:
            assert tar.getnames() == ["report.pdf"]

    @pytest.mark.asyncio
    async def test_missing_path(self, tmp_path: Path):
        with pytest.raises(PackError, match="not found"):
            await TarArchivePacker(tmp_path / "out").pack(tmp_path / "absent")

    @pytest.mark.asyncio
    async def test_default_output_dir_removed_on_close(self, content_dir: Path):
        packer = TarArchivePacker()
        result = await packer.pack(content_dir)
        archive = Path(result.archive_ref)
        assert archive.is_file()

        await packer.close()
        assert not archive.parent.exists()
        await packer.close()

    @pytest.mark.asyncio
    async def test_close_keeps_explicit_output_dir(self, content_dir: Path, tmp_path: Path):
        packer = TarArchivePacker(tmp_path / "out")
        result = await packer.pack(content_dir)
        await packer.close()
        assert Path(result.archive_ref).is_file()


class TestPackerFactory:
    def test_tar(self, make_settings):
        assert isinstance(create_packer(make_settings()), TarArchivePacker)
