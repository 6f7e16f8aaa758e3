# src/identity/events.py — v1
"""CI event payload parsing into TriggerFields."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pinhandoff.core.models import PullRequestInfo, TriggerKind
from pinhandoff.identity.models import TriggerFields

logger = logging.getLogger(__name__)

_EVENT_KINDS: dict[str, TriggerKind] = {
    "pull_request": "pull_request",
    "pull_request_target": "pull_request",
    "push": "push",
    "workflow_dispatch": "manual",
    "repository_dispatch": "manual",
    "schedule": "scheduled",
}

DOWNSTREAM_EVENT = "workflow_run"


def trigger_kind_for_event(event_name: str) -> TriggerKind | None:
    """Map a CI event name onto a trigger kind (None when unknown)."""
    return _EVENT_KINDS.get(event_name)


def read_event_payload(event_path: str | Path | None) -> dict[str, Any]:
    """Read the event payload JSON; an unreadable payload is treated as empty."""
    if not event_path:
        return {}
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read event payload %s: %s", event_path, e)
        return {}
    return payload if isinstance(payload, dict) else {}


def _repo_name(repo: Any) -> str:
    if isinstance(repo, dict):
        return str(repo.get("full_name") or "")
    return ""


def _pr_info(pr: dict[str, Any]) -> PullRequestInfo | None:
    try:
        number = int(pr.get("number") or 0)
    except (TypeError, ValueError):
        return None
    if number <= 0:
        return None
    head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
    user = pr.get("user") if isinstance(pr.get("user"), dict) else {}
    return PullRequestInfo(
        number=number,
        commit_sha=str(head.get("sha") or ""),
        title=str(pr.get("title") or ""),
        author=str(user.get("login") or ""),
    )


def trigger_from_event(
    event_name: str,
    payload: dict[str, Any],
    run_id: str = "",
) -> TriggerFields:
    """Extract identity-relevant fields from a CI event.

    Args:
        event_name: CI event name (pull_request, push, workflow_run, ...).
        payload: Parsed event payload.
        run_id: Id of the current execution.

    Returns:
        TriggerFields. For workflow_run events the fields describe the
        originating run rather than the wrapper.
    """
    if event_name == DOWNSTREAM_EVENT and isinstance(payload.get("workflow_run"), dict):
        return _from_workflow_run(payload["workflow_run"], payload, run_id)

    fields = TriggerFields(
        kind=trigger_kind_for_event(event_name),
        event_name=event_name,
        run_id=str(run_id or ""),
    )

    pr = payload.get("pull_request")
    if fields.kind == "pull_request" and isinstance(pr, dict):
        info = _pr_info(pr)
        if info is not None:
            fields.pr = info
            fields.pr_number = info.number
        head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
        base = pr.get("base") if isinstance(pr.get("base"), dict) else {}
        fields.head_repository = _repo_name(head.get("repo"))
        fields.base_repository = _repo_name(base.get("repo")) or _repo_name(
            payload.get("repository")
        )

    if fields.kind == "push":
        head_commit = payload.get("head_commit")
        if isinstance(head_commit, dict):
            fields.commit_message = str(head_commit.get("message") or "")

    return fields


def _from_workflow_run(
    run: dict[str, Any],
    payload: dict[str, Any],
    run_id: str,
) -> TriggerFields:
    original_event = str(run.get("event") or "")
    fields = TriggerFields(
        kind=trigger_kind_for_event(original_event),
        event_name=original_event,
        run_id=str(run.get("id") or run_id or ""),
        head_repository=_repo_name(run.get("head_repository")),
        base_repository=_repo_name(run.get("repository"))
        or _repo_name(payload.get("repository")),
        downstream=True,
    )

    pulls = run.get("pull_requests")
    if isinstance(pulls, list) and pulls and isinstance(pulls[0], dict):
        pr = pulls[0]
        try:
            number = int(pr.get("number") or 0)
        except (TypeError, ValueError):
            number = 0
        if number > 0:
            head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
            fields.pr_number = number
            fields.pr = PullRequestInfo(
                number=number,
                commit_sha=str(head.get("sha") or run.get("head_sha") or ""),
            )

    head_commit = run.get("head_commit")
    if isinstance(head_commit, dict):
        fields.commit_message = str(head_commit.get("message") or "")

    return fields
