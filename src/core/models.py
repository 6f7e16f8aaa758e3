# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TriggerKind = Literal["pull_request", "push", "manual", "scheduled"]

Mode = Literal["build", "upload", "combined"]

UploadStatus = Literal[
    "build-only", "uploaded", "reused-cache", "reused-artifact", "blocked"
]

# Statuses reachable from build-only. Once reached, a record never leaves them.
TERMINAL_STATUSES: frozenset[str] = frozenset(
    {"uploaded", "reused-cache", "reused-artifact", "blocked"}
)


class _Lenient(BaseModel):
    """Base for persisted records: unknown keys are dropped on read."""

    model_config = ConfigDict(extra="ignore")


# === TRIGGER ===


class PullRequestInfo(_Lenient):
    """Pull request that produced the content."""

    number: int
    commit_sha: str = ""
    title: str = ""
    author: str = ""


# === PUBLISH ===


class ProviderInfo(_Lenient):
    """Storage provider that accepted a paid publish."""

    id: str = ""
    name: str = ""


class PublishResult(_Lenient):
    """Outcome of a paid publish, keyed by the content it describes."""

    content_hash: str
    piece_id: str = ""
    piece_cid: str = ""
    dataset_id: str = ""
    provider: ProviderInfo = Field(default_factory=ProviderInfo)
    preview_locator: str = ""
    network: str = ""

    @property
    def is_complete(self) -> bool:
        """A result is reusable only when it names both a piece and a dataset."""
        return bool((self.piece_cid or self.piece_id) and self.dataset_id)


# === PAYMENT ===


class PaymentSnapshot(_Lenient):
    """Ledger state recorded after the funding step of an upload."""

    balance: Decimal = Decimal("0")
    runway_days: int | None = None
    deposited_this_run: Decimal = Decimal("0")
