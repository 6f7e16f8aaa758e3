# src/channel/base_channel.py — v1
"""Abstract artifact channel interface.

The channel is the only link between build and upload executions: durable,
at-least-once, and best-effort (bundles expire and may vanish between a
listing and a fetch).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pinhandoff.channel.models import ArtifactRecord, ArtifactScope


class BaseArtifactChannel(ABC):
    """Unified interface for artifact channel backends."""

    @abstractmethod
    async def publish(
        self, name: str, files: list[Path], retention_days: int
    ) -> str:
        """Publish files as one named bundle; return the channel's artifact id."""

    @abstractmethod
    async def list(self, scope: ArtifactScope) -> list[ArtifactRecord]:
        """List bundles visible in scope, newest first."""

    @abstractmethod
    async def fetch(self, artifact_id: str) -> bytes:
        """Download a bundle as zip bytes.

        Raises:
            ChannelError: If the bundle cannot be downloaded.
        """

    async def close(self) -> None:
        """Release held resources (HTTP sessions)."""
