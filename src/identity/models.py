# src/identity/models.py — v1
"""Trigger models: the subset of a CI event that identity resolution reads."""

from __future__ import annotations

from pydantic import BaseModel

from pinhandoff.core.models import PullRequestInfo, TriggerKind


class TriggerFields(BaseModel):
    """Fields extracted from the event that started this execution.

    For a downstream "run completed" event, these describe the originating
    run, so the upload execution sees the same PR number, commit message and
    run id as the build execution did.
    """

    kind: TriggerKind | None = None
    event_name: str = ""
    pr_number: int | None = None
    commit_message: str = ""
    run_id: str = ""
    pr: PullRequestInfo | None = None
    head_repository: str = ""
    base_repository: str = ""
    downstream: bool = False
