# src/archive/packer_factory.py — v1
"""Factory for archive packer instantiation."""

from __future__ import annotations

from pathlib import Path

from pinhandoff.archive.base_packer import BaseArchivePacker
from pinhandoff.config.settings import Settings


def create_packer(settings: Settings, output_dir: Path | None = None) -> BaseArchivePacker:
    """Instantiate the configured archive packer."""
    if settings.packer_backend == "tar":
        from pinhandoff.archive.tar_packer import TarArchivePacker
        return TarArchivePacker(output_dir=output_dir)

    raise ValueError(f"Unsupported packer backend: {settings.packer_backend!r}")
