# src/reuse/models.py — v1
"""Reuse resolution models: ReuseDecision."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from pinhandoff.context.models import CombinedContext

ReuseOutcome = Literal["fresh", "reused"]
ReuseSource = Literal["none", "local-record", "cross-run-bundle"]


class ReuseDecision(BaseModel):
    """Whether a paid publish can be skipped, and where the prior result came from.

    context is the record to continue with: for a cross-run hit it carries
    the publish_result and archive_ref merged in from the reuse bundle.
    """

    outcome: ReuseOutcome
    source: ReuseSource = "none"
    context: CombinedContext

    @property
    def reused(self) -> bool:
        return self.outcome == "reused"
