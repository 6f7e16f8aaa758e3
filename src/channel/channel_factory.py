# src/channel/channel_factory.py — v1
"""Factory for artifact channel instantiation."""

from __future__ import annotations

from pinhandoff.channel.base_channel import BaseArtifactChannel
from pinhandoff.config.settings import Settings


def create_channel(settings: Settings) -> BaseArtifactChannel:
    """Instantiate the configured artifact channel backend.

    Args:
        settings: Application settings (CHANNEL_BACKEND).

    Returns:
        Configured BaseArtifactChannel implementation.
    """
    if settings.channel_backend == "local":
        from pinhandoff.channel.local_channel import LocalArtifactChannel
        return LocalArtifactChannel(
            root=settings.channel_root, run_id=settings.github_run_id,
        )

    if settings.channel_backend == "github":
        from pinhandoff.channel.github_channel import GithubArtifactChannel
        return GithubArtifactChannel(
            repository=settings.github_repository,
            token=settings.github_token.get_secret_value(),
            api_url=settings.github_api_url,
            runtime_token=settings.actions_runtime_token.get_secret_value(),
            results_url=settings.actions_results_url,
            timeout=settings.channel_timeout_seconds,
        )

    raise ValueError(f"Unsupported channel backend: {settings.channel_backend!r}")
