# src/publish/base_publisher.py — v1
"""Abstract paid-publish interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pinhandoff.core.models import PublishResult


class BasePublisher(ABC):
    """Publishes an archive to the paid storage network."""

    @abstractmethod
    async def publish(
        self,
        archive_ref: Path,
        content_hash: str,
        with_cdn: bool = False,
        provider_address: str = "",
    ) -> PublishResult:
        """Publish the archive and return its storage identifiers.

        Raises:
            PublishError: If the network refuses or the transfer fails.
        """

    async def close(self) -> None:
        """Release any session held with the network."""
