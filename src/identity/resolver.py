# src/identity/resolver.py — v1
"""Deterministic artifact identity resolution.

Build and upload executions observe different events (the upload typically
sees a wrapper "run completed" event) yet must agree on one artifact name
without talking to each other. Both call resolve_identity() on their own
trigger; the fixed precedence below makes them converge.
"""

from __future__ import annotations

import logging
import re

from pinhandoff.core.errors import ConfigError
from pinhandoff.identity.models import TriggerFields

logger = logging.getLogger(__name__)

BUILD_PREFIX = "build"
REUSE_PREFIX = "reuse"

# "Merge pull request #123 from owner/branch"
_MERGE_COMMIT = re.compile(r"Merge pull request #(\d+)")
# Squash merges: "Subject line (#123)"
_SQUASH_COMMIT = re.compile(r"\(#(\d+)\)\s*$")


def merged_pr_number(commit_message: str) -> int | None:
    """PR number referenced by a merge or squash-merge commit message."""
    if not commit_message:
        return None
    match = _MERGE_COMMIT.search(commit_message)
    if match is None:
        subject = commit_message.strip().splitlines()[0] if commit_message.strip() else ""
        match = _SQUASH_COMMIT.search(subject)
    return int(match.group(1)) if match else None


def resolve_identity(trigger: TriggerFields, manual_override: str | None = None) -> str:
    """Resolve the build-bundle name for an execution.

    Precedence, highest first:
      1. manual_override, verbatim
      2. PR number carried by the trigger -> build-{pr}
      3. push whose commit message references a merged PR -> build-{pr}
      4. build-{run_id}

    Raises:
        ConfigError: If no rule applies and the trigger carries no run id.
    """
    if manual_override:
        return manual_override

    if trigger.pr_number:
        return f"{BUILD_PREFIX}-{trigger.pr_number}"

    if trigger.kind == "push":
        number = merged_pr_number(trigger.commit_message)
        if number is not None:
            return f"{BUILD_PREFIX}-{number}"

    if not trigger.run_id:
        raise ConfigError(
            "Cannot resolve artifact identity: no PR number, merge commit or run id",
            phase="identity",
        )
    return f"{BUILD_PREFIX}-{trigger.run_id}"


def reuse_identity(content_hash: str) -> str:
    """Name of the long-lived dedup bundle for a content hash."""
    if not content_hash:
        raise ValueError("content_hash is required for a reuse identity")
    return f"{REUSE_PREFIX}-{content_hash}"


def is_untrusted_source(trigger: TriggerFields) -> bool:
    """True for pull requests whose head lives in a different repository (forks)."""
    if trigger.kind != "pull_request":
        return False
    if not trigger.head_repository or not trigger.base_repository:
        return False
    return trigger.head_repository != trigger.base_repository
