# src/context/models.py — v1
"""CombinedContext: the single durable record shared by the build and upload phases.

The record is versioned. Legacy flat shapes are migrated at the load boundary
(see context.migrate); everything downstream sees only this model.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from pinhandoff.core.models import (
    PaymentSnapshot,
    PublishResult,
    PullRequestInfo,
    TriggerKind,
    UploadStatus,
)

SCHEMA_VERSION = 1


class CombinedContext(BaseModel):
    """All state accumulated so far for one logical pipeline run.

    Every field is optional: an empty record is valid, and a record written
    by an older or newer build of this tool is read with unknown fields
    dropped and missing fields left empty.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION

    # === CONTENT ===
    content_hash: str = ""
    archive_ref: str = ""
    archive_filename: str = ""
    content_path: str = ""

    # === IDENTITY ===
    artifact_identity: str = ""
    producing_run_id: str = ""
    trigger_kind: TriggerKind | None = None
    event_name: str = ""
    repository: str = ""
    mode: str = ""
    pr: PullRequestInfo | None = None

    # === OUTCOME ===
    publish_result: PublishResult | None = None
    status: UploadStatus | None = None
    status_reason: str = ""
    payment_snapshot: PaymentSnapshot | None = None

    def to_record(self) -> dict[str, Any]:
        """JSON-compatible dict of the record, as persisted."""
        return self.model_dump(mode="json")

    def has_publish_for(self, content_hash: str) -> bool:
        """True when this record already holds a complete publish of content_hash."""
        result = self.publish_result
        return (
            bool(content_hash)
            and result is not None
            and result.content_hash == content_hash
            and result.is_complete
        )
