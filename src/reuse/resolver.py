# src/reuse/resolver.py — v2
"""Three-tier reuse resolution.

Tier 1 is the local record, tier 2 the cross-run reuse bundle, tier 3 a
fresh (paid) publish performed by the caller. Tier 1 always wins over tier 2.
Anything that goes wrong in tiers 1 and 2 is a miss: the worst outcome of a
false miss is a duplicate publish, bounded by the payment caps.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from pinhandoff.channel.base_channel import BaseArtifactChannel
from pinhandoff.channel.bundle import bundle_source_dir
from pinhandoff.channel.lookup import find_bundle
from pinhandoff.context.models import CombinedContext
from pinhandoff.context.store import CONTEXT_FILENAME, ContextStore, merge_context
from pinhandoff.core.models import UploadStatus
from pinhandoff.identity.resolver import reuse_identity
from pinhandoff.logging.logger import notice
from pinhandoff.reuse.models import ReuseDecision

logger = logging.getLogger(__name__)

LEGACY_METADATA_FILENAME = "upload.json"

_STATUS_BY_SOURCE: dict[str, UploadStatus] = {
    "none": "uploaded",
    "local-record": "reused-cache",
    "cross-run-bundle": "reused-artifact",
}


def status_for(decision: ReuseDecision) -> UploadStatus:
    """Terminal status recorded for a resolved upload."""
    return _STATUS_BY_SOURCE[decision.source]


class ReuseResolver:
    """Decides whether content was already published.

    Args:
        channel: Artifact channel holding reuse bundles.
        work_dir: Scratch directory for downloaded bundles. A temporary
            directory is used when omitted.
    """

    def __init__(
        self,
        channel: BaseArtifactChannel,
        work_dir: Path | None = None,
    ) -> None:
        self._channel = channel
        self._work_dir = work_dir

    async def resolve(self, content_hash: str, context: CombinedContext) -> ReuseDecision:
        """Run the tiers in order and return the first match, else fresh."""
        if self._local_hit(content_hash, context):
            logger.info("Content %s already published (local record)", content_hash)
            return ReuseDecision(outcome="reused", source="local-record", context=context)

        merged = await self._bundle_hit(content_hash, context)
        if merged is not None:
            logger.info("Content %s already published (reuse bundle)", content_hash)
            return ReuseDecision(outcome="reused", source="cross-run-bundle", context=merged)

        logger.info("No prior publish found for %s", content_hash)
        return ReuseDecision(outcome="fresh", source="none", context=context)

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    @staticmethod
    def _local_hit(content_hash: str, context: CombinedContext) -> bool:
        try:
            return context.has_publish_for(content_hash)
        except (AttributeError, TypeError) as e:
            notice(logger, "Local record unusable for reuse check: %s", e)
            return False

    async def _bundle_hit(
        self, content_hash: str, context: CombinedContext
    ) -> CombinedContext | None:
        if not content_hash:
            return None
        name = reuse_identity(content_hash)
        scratch: Path | None = None
        try:
            if self._work_dir is not None:
                self._work_dir.mkdir(parents=True, exist_ok=True)
            scratch = Path(tempfile.mkdtemp(prefix="reuse-", dir=self._work_dir))
            lookup = await find_bundle(self._channel, name, scratch)
            if not lookup.is_hit or lookup.path is None:
                return None
            return self._merge_bundle(content_hash, context, bundle_source_dir(lookup.path))
        except Exception as e:  # noqa: BLE001
            notice(logger, "Reuse bundle %s unusable, treating as miss: %s", name, e)
            return None
        finally:
            if scratch is not None:
                shutil.rmtree(scratch, ignore_errors=True)

    @staticmethod
    def _merge_bundle(
        content_hash: str, context: CombinedContext, source: Path
    ) -> CombinedContext | None:
        metadata = source / CONTEXT_FILENAME
        if not metadata.is_file():
            metadata = source / LEGACY_METADATA_FILENAME
        if not metadata.is_file():
            notice(logger, "Reuse bundle carries no context record")
            return None

        prior = ContextStore.parse(metadata.read_text(encoding="utf-8"))
        result = prior.publish_result
        if result is not None and not result.content_hash:
            result = result.model_copy(update={"content_hash": prior.content_hash})
        if result is None or result.content_hash != content_hash or not result.is_complete:
            notice(logger, "Reuse bundle does not describe a complete publish of %s", content_hash)
            return None

        partial: dict[str, object] = {"publish_result": result}
        archive_ref = prior.archive_ref or context.archive_ref
        if archive_ref:
            partial["archive_ref"] = archive_ref
        return merge_context(context, partial)
