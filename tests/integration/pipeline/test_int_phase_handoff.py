# tests/integration/pipeline/test_int_phase_handoff.py — v1
"""Integration tests: build and upload as separate executions over the local channel.

Each execution gets its own workspace, as on separate CI machines; they only
share the channel directory and the sandbox ledger/publisher roots.
No external services required.
Coverage targets: orchestrator.py, reuse/resolver.py, channel/lookup.py,
context/store.py, payment/funding.py and the collaborator factories.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from pinhandoff.archive.packer_factory import create_packer
from pinhandoff.channel.channel_factory import create_channel
from pinhandoff.channel.models import ArtifactScope
from pinhandoff.config.settings import Settings
from pinhandoff.context.store import ContextStore
from pinhandoff.core.errors import CapExceeded
from pinhandoff.identity.events import trigger_from_event
from pinhandoff.payment.ledger_factory import create_ledger
from pinhandoff.pipeline.models import PhaseResult
from pinhandoff.pipeline.orchestrator import PhaseOrchestrator
from pinhandoff.publish.publisher_factory import create_publisher
from pinhandoff.publish.sandbox_publisher import stored_results

PR_EVENT: dict[str, Any] = {
    "pull_request": {
        "number": 17,
        "title": "Add docs",
        "user": {"login": "octo"},
        "head": {"sha": "cafe", "repo": {"full_name": "acme/site"}},
        "base": {"repo": {"full_name": "acme/site"}},
    },
}


def _workflow_run_event(
    build_run_id: str,
    pr_number: int | None = 17,
    event: str = "pull_request",
    head_repository: str = "acme/site",
) -> dict[str, Any]:
    return {
        "workflow_run": {
            "id": int(build_run_id),
            "event": event,
            "pull_requests": [{"number": pr_number, "head": {"sha": "cafe"}}] if pr_number else [],
            "head_commit": {"message": "Add docs"},
            "head_repository": {"full_name": head_repository},
            "repository": {"full_name": "acme/site"},
        },
    }


class Pipeline:
    """Runs executions against shared channel, ledger and publisher roots."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.site = root / "site"
        self.site.mkdir()
        (self.site / "index.html").write_text("<h1>v1</h1>", encoding="utf-8")

    def settings(self, workspace: str, run_id: str, mode: str, **overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "mode": mode,
            "workspace": self.root / workspace,
            "content_path": str(self.site),
            "channel_root": self.root / "channel",
            "ledger_root": self.root / "ledger",
            "publisher_root": self.root / "published",
            "github_run_id": run_id,
            "github_repository": "acme/site",
        }
        if mode != "build":
            values["wallet_private_key"] = "0xwallet"
        values.update(overrides)
        return Settings(_env_file=None, **values)

    async def execute(self, settings: Settings, event_name: str, payload: dict[str, Any]) -> PhaseResult:
        trigger = trigger_from_event(event_name, payload, settings.github_run_id)
        orchestrator = PhaseOrchestrator(
            settings=settings,
            store=ContextStore(settings.workspace_path),
            channel=create_channel(settings),
            packer=create_packer(settings, output_dir=self.root / f"pack-{settings.github_run_id}"),
            ledger=create_ledger(settings) if settings.pays else None,
            publisher=create_publisher(settings) if settings.pays else None,
            trigger=trigger,
        )
        return await orchestrator.run()

    async def build(self, run_id: str, workspace: str | None = None) -> PhaseResult:
        settings = self.settings(workspace or f"build-{run_id}", run_id, "build")
        return await self.execute(settings, "pull_request", PR_EVENT)

    async def upload(self, build_run_id: str, run_id: str, **overrides: Any) -> PhaseResult:
        settings = self.settings(f"upload-{run_id}", run_id, "upload", **overrides)
        return await self.execute(settings, "workflow_run", _workflow_run_event(build_run_id))

    def published(self) -> list[dict]:
        return stored_results(self.root / "published")


@pytest.fixture
def pipeline(tmp_path: Path) -> Pipeline:
    return Pipeline(tmp_path)


class TestFreshContent:
    @pytest.mark.asyncio
    async def test_build_then_upload(self, pipeline: Pipeline):
        built = await pipeline.build("1001")
        assert built.status == "build-only"
        assert built.artifact_identity == "build-17"

        uploaded = await pipeline.upload("1001", "1002")

        assert uploaded.status == "uploaded"
        assert uploaded.reuse_source == "none"
        assert uploaded.content_hash == built.content_hash
        assert uploaded.artifact_identity == "build-17"
        assert uploaded.dataset_id
        assert len(pipeline.published()) == 1

        record = await ContextStore(pipeline.root / "upload-1002").load()
        assert record.status == "uploaded"
        assert record.pr is not None and record.pr.number == 17
        assert record.payment_snapshot is not None
        assert record.payment_snapshot.deposited_this_run == Decimal("0.10")

        channel = create_channel(pipeline.settings("x", "0", "build"))
        assert await channel.list(ArtifactScope(name=f"reuse-{built.content_hash}"))


class TestReuse:
    @pytest.mark.asyncio
    async def test_same_workspace_reuses_local_record(self, pipeline: Pipeline):
        settings = pipeline.settings("shared", "1001", "combined")
        first = await pipeline.execute(settings, "pull_request", PR_EVENT)
        second = await pipeline.execute(
            pipeline.settings("shared", "1003", "combined"), "pull_request", PR_EVENT,
        )

        assert first.status == "uploaded"
        assert second.status == "reused-cache"
        assert second.dataset_id == first.dataset_id
        assert len(pipeline.published()) == 1

    @pytest.mark.asyncio
    async def test_new_machine_reuses_cross_run_bundle(self, pipeline: Pipeline):
        await pipeline.build("1001")
        first = await pipeline.upload("1001", "1002")

        await pipeline.build("2001")
        second = await pipeline.upload("2001", "2002")

        assert second.status == "reused-artifact"
        assert second.reuse_source == "cross-run-bundle"
        assert second.piece_cid == first.piece_cid
        assert len(pipeline.published()) == 1

    @pytest.mark.asyncio
    async def test_unreadable_reuse_bundle_falls_through(self, pipeline: Pipeline):
        await pipeline.build("1001")
        first = await pipeline.upload("1001", "1002")

        # listed but no longer downloadable
        channel_root = pipeline.root / "channel"
        channel = create_channel(pipeline.settings("x", "0", "build"))
        for record in await channel.list(ArtifactScope(name=f"reuse-{first.content_hash}")):
            (channel_root / f"{record.id}.zip").unlink()

        await pipeline.build("2001")
        second = await pipeline.upload("2001", "2002")

        assert second.status == "uploaded"
        assert second.reuse_source == "none"

    @pytest.mark.asyncio
    async def test_changed_content_is_published_again(self, pipeline: Pipeline):
        await pipeline.build("1001")
        first = await pipeline.upload("1001", "1002")

        (pipeline.site / "index.html").write_text("<h1>v2</h1>", encoding="utf-8")
        await pipeline.build("2001")
        second = await pipeline.upload("2001", "2002")

        assert second.content_hash != first.content_hash
        assert second.status == "uploaded"
        assert len(pipeline.published()) == 2


class TestPaymentLimits:
    @pytest.mark.asyncio
    async def test_top_up_cap_stops_upload(self, pipeline: Pipeline):
        await pipeline.build("1001")
        with pytest.raises(CapExceeded) as exc_info:
            await pipeline.upload("1001", "1002", min_days=30, max_top_up="0.10")

        assert exc_info.value.phase == "payment"
        assert pipeline.published() == []

    @pytest.mark.asyncio
    async def test_balance_cap_allows_upload_without_deposit(self, pipeline: Pipeline):
        await pipeline.build("1001")
        result = await pipeline.upload("1001", "1002", max_balance="0")

        assert result.status == "uploaded"
        record = await ContextStore(pipeline.root / "upload-1002").load()
        assert record.payment_snapshot is not None
        assert record.payment_snapshot.deposited_this_run == Decimal("0")


class TestUntrustedSource:
    @pytest.mark.asyncio
    async def test_fork_build_is_never_paid_for(self, pipeline: Pipeline):
        fork_event = {"pull_request": {**PR_EVENT["pull_request"], "head": {
            "sha": "cafe", "repo": {"full_name": "mallory/site"},
        }}}
        build_settings = pipeline.settings("build-1001", "1001", "build")
        built = await pipeline.execute(build_settings, "pull_request", fork_event)
        assert built.status == "blocked"

        uploaded = await pipeline.upload("1001", "1002")

        assert uploaded.status == "blocked"
        assert pipeline.published() == []
        assert not (pipeline.root / "ledger").exists()

    @pytest.mark.asyncio
    async def test_fork_upload_without_pr_number_finds_run_bundle(self, pipeline: Pipeline):
        fork_event = {"pull_request": {**PR_EVENT["pull_request"], "head": {
            "sha": "cafe", "repo": {"full_name": "mallory/site"},
        }}}
        await pipeline.execute(pipeline.settings("build-1001", "1001", "build"), "pull_request", fork_event)

        upload_settings = pipeline.settings("upload-1002", "1002", "upload")
        uploaded = await pipeline.execute(
            upload_settings,
            "workflow_run",
            _workflow_run_event("1001", pr_number=None, head_repository="mallory/site"),
        )

        assert uploaded.status == "blocked"
        assert uploaded.artifact_identity == "build-17"
        assert pipeline.published() == []
