# src/archive/base_packer.py — v2
"""Abstract archive packer interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pinhandoff.archive.models import PackResult


class BaseArchivePacker(ABC):
    """Packs a content path into a content-addressed archive.

    Identical input content must always yield the same content hash.
    """

    @abstractmethod
    async def pack(self, path: Path) -> PackResult:
        """Pack path (file or directory).

        Raises:
            PackError: If the content cannot be packed.
        """

    async def close(self) -> None:
        """Release temporary files kept since the last pack. Default: no-op."""
