# src/context/migrate.py — v1
"""Migrate stored context shapes into the versioned CombinedContext layout.

Historical records were flat JSON with inconsistent field names
(ipfs_root_cid, piece_cid, data_set_id, upload_status, camelCase
payment_status keys, camelCase upload.json metadata). They are translated
here, once, so no caller has to guess which shape it holds.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pinhandoff.context.models import SCHEMA_VERSION
from pinhandoff.core.errors import ContextCorruption
from pinhandoff.identity.events import trigger_kind_for_event

logger = logging.getLogger(__name__)

_LEGACY_STATUS = {
    "build-only": "build-only",
    "uploaded": "uploaded",
    "reused-cache": "reused-cache",
    "reused-artifact": "reused-artifact",
    "blocked": "blocked",
    "fork-pr-blocked": "blocked",
}

# Keys that identify a pre-versioning record or an upload.json metadata file.
_LEGACY_MARKERS = frozenset({
    "ipfs_root_cid", "car_path", "car_filename", "artifact_name",
    "build_run_id", "piece_cid", "data_set_id", "upload_status",
    "payment_status", "preview_url",
    "ipfsRootCid", "pieceCid", "dataSetId", "carPath",
})


def is_legacy(data: dict[str, Any]) -> bool:
    """True when data has no schema_version and carries legacy keys."""
    return "schema_version" not in data and bool(_LEGACY_MARKERS & data.keys())


def migrate_record(data: Any) -> dict[str, Any]:
    """Return a dict loadable as CombinedContext.

    Raises:
        ContextCorruption: If data is not an object or declares a schema
            version newer than this code understands.
    """
    if not isinstance(data, dict):
        raise ContextCorruption(
            f"context record must be a JSON object, got {type(data).__name__}"
        )

    version = data.get("schema_version")
    if version is not None:
        if not isinstance(version, int) or version > SCHEMA_VERSION:
            raise ContextCorruption(f"unsupported context schema_version: {version!r}")
        return data

    if not is_legacy(data):
        return {**data, "schema_version": SCHEMA_VERSION}

    logger.debug("Migrating legacy context record with keys: %s", sorted(data))
    return _migrate_legacy(data)


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _migrate_legacy(data: dict[str, Any]) -> dict[str, Any]:
    content_hash = _first(data, "content_hash", "ipfs_root_cid", "ipfsRootCid") or ""
    event_name = data.get("event_name") or ""

    record: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "content_hash": content_hash,
        "archive_ref": _first(data, "archive_ref", "car_path", "carPath") or "",
        "archive_filename": _first(data, "archive_filename", "car_filename") or "",
        "content_path": data.get("content_path") or "",
        "artifact_identity": _first(data, "artifact_identity", "artifact_name") or "",
        "producing_run_id": str(_first(data, "producing_run_id", "build_run_id", "run_id") or ""),
        "event_name": event_name,
        "trigger_kind": trigger_kind_for_event(event_name),
        "repository": data.get("repository") or "",
        "mode": data.get("mode") or "",
    }

    pr = data.get("pr")
    if isinstance(pr, dict) and pr.get("number"):
        try:
            record["pr"] = {
                "number": int(pr["number"]),
                "commit_sha": pr.get("commit_sha") or pr.get("sha") or "",
                "title": pr.get("title") or "",
                "author": pr.get("author") or "",
            }
        except (TypeError, ValueError):
            logger.warning("Dropping unparsable legacy PR number: %r", pr.get("number"))

    piece_cid = _first(data, "piece_cid", "pieceCid") or ""
    dataset_id = _first(data, "data_set_id", "dataSetId") or ""
    if piece_cid or dataset_id:
        provider = data.get("provider") if isinstance(data.get("provider"), dict) else {}
        record["publish_result"] = {
            "content_hash": content_hash,
            "piece_cid": str(piece_cid),
            "piece_id": str(_first(data, "piece_id", "pieceId") or ""),
            "dataset_id": str(dataset_id),
            "provider": {
                "id": str(provider.get("id") or ""),
                "name": str(provider.get("name") or ""),
            },
            "preview_locator": _first(data, "preview_url", "previewURL", "previewUrl") or "",
            "network": data.get("network") or "",
        }

    status = _LEGACY_STATUS.get(str(data.get("upload_status") or ""))
    if status:
        record["status"] = status

    payment = data.get("payment_status")
    if isinstance(payment, dict):
        record["payment_snapshot"] = {
            "balance": _first(payment, "currentBalance", "depositedAmount") or "0",
            "runway_days": _parse_runway(payment.get("storageRunway")),
            "deposited_this_run": payment.get("depositedThisRun") or "0",
        }

    return record


def _parse_runway(value: Any) -> int | None:
    """Historical runway values were free text such as '42 days'."""
    if value is None:
        return None
    match = re.search(r"\d+", str(value))
    return int(match.group(0)) if match else None
