# src/publish/publisher_factory.py — v1
"""Factory for publisher instantiation."""

from __future__ import annotations

from pinhandoff.config.settings import Settings
from pinhandoff.publish.base_publisher import BasePublisher


def create_publisher(settings: Settings) -> BasePublisher:
    """Instantiate the configured publisher backend."""
    if settings.publisher_backend == "sandbox":
        from pinhandoff.publish.sandbox_publisher import SandboxPublisher
        return SandboxPublisher(root=settings.publisher_root, network=settings.network)

    raise ValueError(f"Unsupported publisher backend: {settings.publisher_backend!r}")
