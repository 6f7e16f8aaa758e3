# src/pipeline/outputs.py — v1
"""GitHub step outputs and step summary writers.

Both are no-ops when the target path is empty (not running under Actions).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from pathlib import Path

from pinhandoff.context.models import CombinedContext

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    "build-only": "Built (awaiting upload)",
    "uploaded": "Uploaded",
    "reused-cache": "Reused (local record)",
    "reused-artifact": "Reused (previous run)",
    "blocked": "Blocked",
}


def _format_output(name: str, value: str) -> str:
    if "\n" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def write_outputs(path: str | Path, outputs: Mapping[str, object]) -> None:
    """Append name=value pairs to the GITHUB_OUTPUT file."""
    if not path:
        return
    lines = "".join(
        _format_output(name, "" if value is None else str(value))
        for name, value in outputs.items()
    )
    with Path(path).open("a", encoding="utf-8") as f:
        f.write(lines)


def render_summary(context: CombinedContext, status: str) -> str:
    """Markdown step summary for a record."""
    result = context.publish_result
    if result is not None and result.content_hash != context.content_hash:
        result = None
    provider = result.provider if result else None
    lines = [
        "## Pinned Content Upload",
        "",
        f"- Network: {result.network if result else ''}",
        f"- Content hash: `{context.content_hash}`",
        f"- Dataset ID: {result.dataset_id if result else ''}",
        f"- Piece CID: {result.piece_cid if result else ''}",
        f"- Provider: {provider.name if provider else ''} (ID {provider.id if provider else ''})",
        f"- Preview: {result.preview_locator if result else ''}",
        f"- Status: {_STATUS_LABELS.get(status, status)}",
    ]
    if context.status_reason:
        lines.append(f"- Reason: {context.status_reason}")
    lines += ["", "Artifacts:", f"- Archive: {context.archive_ref}", ""]
    return "\n".join(lines)


def write_summary(path: str | Path, context: CombinedContext, status: str) -> None:
    """Append the markdown summary to GITHUB_STEP_SUMMARY.

    A failing summary write is logged; it never fails the phase.
    """
    if not path:
        return
    try:
        with Path(path).open("a", encoding="utf-8") as f:
            f.write(f"\n{render_summary(context, status)}\n")
    except OSError as e:
        logger.warning("Failed to write step summary: %s", e)
