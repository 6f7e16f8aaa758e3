# src/logging/context.py — v3
"""Contextual logging support — attach phase, run_id, identity and content hash to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per phase execution.
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_artifact_identity: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "artifact_identity", default=None
)
_content_hash: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "content_hash", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    phase: str | None = None
    run_id: str | None = None
    artifact_identity: str | None = None
    content_hash: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        phase=_phase.get(),
        run_id=_run_id.get(),
        artifact_identity=_artifact_identity.get(),
        content_hash=_content_hash.get(),
    )


def set_run_context(run_id: str | None) -> None:
    """Set execution-level context (called once per process)."""
    _run_id.set(run_id or None)


def set_phase(phase: str) -> None:
    _phase.set(phase)


def set_artifact_context(
    artifact_identity: str | None = None, content_hash: str | None = None
) -> None:
    """Record identity and content hash once they are known."""
    if artifact_identity is not None:
        _artifact_identity.set(artifact_identity)
    if content_hash is not None:
        _content_hash.set(content_hash)


def clear_context() -> None:
    """Reset all context variables."""
    _phase.set(None)
    _run_id.set(None)
    _artifact_identity.set(None)
    _content_hash.set(None)
