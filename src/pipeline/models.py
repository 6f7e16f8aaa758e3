# src/pipeline/models.py — v1
"""Phase result model returned by the orchestrator."""

from __future__ import annotations

from pydantic import BaseModel, Field

from pinhandoff.context.models import CombinedContext
from pinhandoff.core.models import ProviderInfo, UploadStatus


class PhaseResult(BaseModel):
    """What one execution produced, as reported in step outputs."""

    mode: str
    status: UploadStatus | None = None
    status_reason: str = ""
    content_hash: str = ""
    archive_ref: str = ""
    artifact_identity: str = ""
    piece_cid: str = ""
    piece_id: str = ""
    dataset_id: str = ""
    provider: ProviderInfo = Field(default_factory=ProviderInfo)
    preview_locator: str = ""
    network: str = ""
    reuse_source: str = "none"

    @classmethod
    def from_context(
        cls, context: CombinedContext, mode: str, reuse_source: str = "none"
    ) -> PhaseResult:
        result = context.publish_result
        # A publish result for other content is carried forward but not reported.
        if result is not None and result.content_hash != context.content_hash:
            result = None
        return cls(
            mode=mode,
            status=context.status,
            status_reason=context.status_reason,
            content_hash=context.content_hash,
            archive_ref=context.archive_ref,
            artifact_identity=context.artifact_identity,
            piece_cid=result.piece_cid if result else "",
            piece_id=result.piece_id if result else "",
            dataset_id=result.dataset_id if result else "",
            provider=result.provider if result else ProviderInfo(),
            preview_locator=result.preview_locator if result else "",
            network=result.network if result else "",
            reuse_source=reuse_source,
        )

    def outputs(self) -> dict[str, str]:
        """Step outputs for this result."""
        return {
            "content_hash": self.content_hash,
            "dataset_id": self.dataset_id,
            "piece_cid": self.piece_cid,
            "piece_id": self.piece_id,
            "provider_id": self.provider.id,
            "provider_name": self.provider.name,
            "preview_url": self.preview_locator,
            "archive_path": self.archive_ref,
            "artifact_name": self.artifact_identity,
            "upload_status": self.status or "",
        }
