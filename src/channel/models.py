# src/channel/models.py — v1
"""Artifact channel models: ArtifactRecord, ArtifactScope, ChannelLookup."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel


class ArtifactRecord(BaseModel):
    """One named bundle as listed by the channel."""

    id: str
    name: str
    expired: bool = False
    size_bytes: int = 0
    created_at: datetime | None = None
    run_id: str = ""


class ArtifactScope(BaseModel):
    """Where to look for a bundle.

    run_id narrows the listing to bundles produced by one run; None means
    repository-wide. name filters by exact bundle name.
    """

    name: str | None = None
    run_id: str | None = None


class ChannelLookup(BaseModel):
    """Outcome of looking up a bundle.

    hit:   found, fetched and unpacked into path.
    miss:  not found, expired, or found but unreadable. Expected; not an error.
    fault: the channel itself failed (listing errored). Recoverable.
    """

    outcome: Literal["hit", "miss", "fault"]
    name: str
    record: ArtifactRecord | None = None
    path: Path | None = None
    reason: str = ""

    @property
    def is_hit(self) -> bool:
        return self.outcome == "hit"
