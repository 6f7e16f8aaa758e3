# src/pipeline/orchestrator.py — v3
"""Phase orchestrator: build, upload and combined executions.

  build:    pack -> begin record -> stage archive -> publish build bundle
  upload:   resolve identity -> fetch build bundle -> load record
            -> reuse resolution -> (fund + publish) -> merge -> reuse bundle
  combined: build then upload in one process, no build-bundle round trip

Only upload and combined touch the payment ledger. A record marked blocked
never reaches reuse resolution or the payment guard.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pinhandoff.channel.bundle import bundle_source_dir, materialize
from pinhandoff.channel.lookup import find_bundle
from pinhandoff.channel.models import ArtifactScope
from pinhandoff.core.errors import BundleUnavailable, ChannelError, PinHandoffError
from pinhandoff.core.models import TERMINAL_STATUSES
from pinhandoff.identity.resolver import is_untrusted_source, resolve_identity, reuse_identity
from pinhandoff.logging.context import set_artifact_context, set_phase
from pinhandoff.logging.logger import notice
from pinhandoff.payment.funding import ensure_funded
from pinhandoff.pipeline.models import PhaseResult
from pinhandoff.reuse.resolver import ReuseResolver, status_for

if TYPE_CHECKING:
    from pinhandoff.archive.base_packer import BaseArchivePacker
    from pinhandoff.channel.base_channel import BaseArtifactChannel
    from pinhandoff.config.settings import Settings
    from pinhandoff.context.models import CombinedContext
    from pinhandoff.context.store import ContextStore
    from pinhandoff.identity.models import TriggerFields
    from pinhandoff.payment.base_ledger import BasePaymentLedger
    from pinhandoff.publish.base_publisher import BasePublisher

logger = logging.getLogger(__name__)


class PhaseOrchestrator:
    """Drives one execution through the phases selected by settings.mode.

    Args:
        settings: Application settings.
        store: Context store of this working area.
        channel: Artifact channel for build and reuse bundles.
        packer: Archive packer (build).
        ledger: Payment ledger (upload).
        publisher: Paid publisher (upload).
        trigger: Fields of the event that started this execution.
        reuse_resolver: Optional resolver; built from channel when omitted.
    """

    def __init__(
        self,
        settings: Settings,
        store: ContextStore,
        channel: BaseArtifactChannel,
        packer: BaseArchivePacker,
        ledger: BasePaymentLedger | None,
        publisher: BasePublisher | None,
        trigger: TriggerFields,
        reuse_resolver: ReuseResolver | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._channel = channel
        self._packer = packer
        self._ledger = ledger
        self._publisher = publisher
        self._trigger = trigger
        self._resolver = reuse_resolver or ReuseResolver(channel)
        self._phase = "config"

    async def run(self) -> PhaseResult:
        """Execute the configured mode.

        Raises:
            PinHandoffError: Any fatal error, tagged with the failing phase.
        """
        runners = {
            "build": self.run_build,
            "upload": self.run_upload,
            "combined": self.run_combined,
        }
        try:
            return await runners[self._settings.mode]()
        except PinHandoffError as e:
            raise e.with_phase(self._phase)
        except Exception as e:
            raise PinHandoffError(f"{type(e).__name__}: {e}", phase=self._phase) from e
        finally:
            await self._release()

    async def run_build(self) -> PhaseResult:
        context = await self._build()
        await self._publish_build_bundle(context)
        return PhaseResult.from_context(context, mode="build")

    async def run_upload(self) -> PhaseResult:
        self._enter("upload")
        identity = self._identity()
        await self._fetch_build_bundle(identity)
        context = await self._store.load()
        return await self._upload(context)

    async def run_combined(self) -> PhaseResult:
        context = await self._build()
        self._enter("upload")
        result = await self._upload(context)
        return result.model_copy(update={"mode": "combined"})

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def _build(self) -> CombinedContext:
        self._enter("build")
        identity = self._identity()
        content = self._settings.resolved_content_path
        logger.info("Building %s from %s", identity, content)

        packed = await self._packer.pack(content)
        set_artifact_context(identity, packed.content_hash)

        trigger = self._trigger
        partial: dict[str, Any] = {
            "content_hash": packed.content_hash,
            "archive_filename": Path(packed.archive_ref).name,
            "content_path": self._settings.content_path,
            "artifact_identity": identity,
            "producing_run_id": self._settings.github_run_id or trigger.run_id,
            "trigger_kind": trigger.kind,
            "event_name": trigger.event_name,
            "repository": self._settings.github_repository or trigger.base_repository,
            "mode": self._settings.mode,
            "pr": trigger.pr,
            "status": "build-only",
        }
        if is_untrusted_source(trigger):
            partial["status"] = "blocked"
            partial["status_reason"] = (
                f"pull request from {trigger.head_repository} cannot spend from "
                f"{trigger.base_repository}; content built but not uploaded"
            )
            notice(logger, "Untrusted source %s: upload will be blocked", trigger.head_repository)

        await self._store.begin(partial)
        staged = await self._store.stage_archive(Path(packed.archive_ref))
        context = await self._store.merge({"archive_ref": str(staged)})
        logger.info("Packed content hash %s", packed.content_hash)
        return context

    async def _publish_build_bundle(self, context: CombinedContext) -> None:
        files = self._store.bundle_files()
        try:
            await self._channel.publish(
                context.artifact_identity, files, self._settings.build_retention_days,
            )
        except ChannelError as e:
            logger.error("Failed to publish build bundle %s: %s", context.artifact_identity, e)
            raise
        logger.info("Published build bundle %s", context.artifact_identity)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def _fetch_build_bundle(self, identity: str) -> None:
        run_id = self._trigger.run_id if self._trigger.downstream else None
        scratch = Path(tempfile.mkdtemp(prefix="build-bundle-"))
        try:
            lookup = await find_bundle(self._channel, identity, scratch, run_id=run_id)
            if not lookup.is_hit and run_id and not self._settings.artifact_name:
                # wrapper events drop fork PR numbers; the producing run holds one build bundle
                fallback = await self._producing_run_bundle(run_id)
                if fallback and fallback != identity:
                    notice(logger, "Build bundle %s not in run %s, using %s", identity, run_id, fallback)
                    lookup = await find_bundle(self._channel, fallback, scratch, run_id=run_id)
            if not lookup.is_hit or lookup.path is None:
                raise BundleUnavailable(
                    f"build bundle {identity} unavailable ({lookup.reason}); "
                    "nothing to upload",
                    phase="upload",
                )
            materialize(bundle_source_dir(lookup.path), self._store.context_dir)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    async def _producing_run_bundle(self, run_id: str) -> str | None:
        try:
            records = await self._channel.list(ArtifactScope(run_id=run_id))
        except ChannelError as e:
            logger.warning("Listing bundles of run %s failed: %s", run_id, e)
            return None
        for record in records:
            if record.name.startswith("build-") and not record.expired:
                return record.name
        return None

    async def _upload(self, context: CombinedContext) -> PhaseResult:
        if not context.content_hash:
            raise BundleUnavailable("context record holds no content hash", phase="upload")
        content_hash = context.content_hash
        set_artifact_context(context.artifact_identity or None, content_hash)

        if context.status == "blocked":
            notice(logger, "Upload blocked: %s", context.status_reason or "untrusted source")
            return PhaseResult.from_context(context, mode="upload")

        if context.status in TERMINAL_STATUSES:
            logger.info("Record for %s already resolved as %s", content_hash, context.status)
            return PhaseResult.from_context(context, mode="upload")

        if is_untrusted_source(self._trigger):
            context = await self._store.merge({
                "status": "blocked",
                "status_reason": f"triggered from untrusted source {self._trigger.head_repository}",
            })
            notice(logger, "Upload blocked: %s", context.status_reason)
            return PhaseResult.from_context(context, mode="upload")

        decision = await self._resolver.resolve(content_hash, context)
        partial: dict[str, Any] = {"status": status_for(decision)}
        if decision.reused:
            result = decision.context.publish_result
            partial["publish_result"] = result
            if decision.context.archive_ref:
                partial["archive_ref"] = decision.context.archive_ref
        else:
            partial.update(await self._publish_fresh(context))

        context = await self._store.merge(partial)
        logger.info("Upload resolved as %s", context.status)
        await self._publish_reuse_bundle(context)
        return PhaseResult.from_context(context, mode="upload", reuse_source=decision.source)

    async def _publish_fresh(self, context: CombinedContext) -> dict[str, Any]:
        if self._ledger is None or self._publisher is None:
            raise BundleUnavailable("upload requires a payment ledger and publisher", phase="upload")
        archive = self._store.locate_archive(context)
        if archive is None:
            raise BundleUnavailable(
                f"archive {context.archive_filename or context.archive_ref} not found",
                phase="upload",
            )

        self._enter("payment")
        snapshot = await ensure_funded(
            self._ledger,
            min_days=self._settings.min_days,
            max_balance=self._settings.max_balance,
            max_top_up=self._settings.max_top_up,
        )

        self._enter("upload")
        result = await self._publisher.publish(
            archive,
            context.content_hash,
            with_cdn=self._settings.with_cdn,
            provider_address=self._settings.provider_address,
        )
        return {"publish_result": result, "payment_snapshot": snapshot}

    async def _publish_reuse_bundle(self, context: CombinedContext) -> None:
        name = reuse_identity(context.content_hash)
        try:
            await self._channel.publish(
                name, self._store.bundle_files(), self._settings.reuse_retention_days,
            )
        except (ChannelError, OSError) as e:
            logger.warning("Failed to publish reuse bundle %s: %s", name, e)
            return
        logger.info("Published reuse bundle %s", name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enter(self, phase: str) -> None:
        self._phase = phase
        set_phase(phase)

    def _identity(self) -> str:
        return resolve_identity(self._trigger, self._settings.artifact_name or None)

    async def _release(self) -> None:
        """Close collaborator sessions; failures are logged, never raised."""
        for name, resource in (
            ("publisher", self._publisher),
            ("ledger", self._ledger),
            ("channel", self._channel),
            ("packer", self._packer),
        ):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:  # noqa: BLE001
                logger.warning("Failed to release %s session: %s", name, e)
