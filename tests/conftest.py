# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides settings, content trees, context stores, local channels, sandbox
collaborators and sample triggers. Nothing touches the network.
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from pathlib import Path

import pytest

from pinhandoff.channel.local_channel import LocalArtifactChannel
from pinhandoff.config.settings import Settings
from pinhandoff.context.store import ContextStore
from pinhandoff.core.models import ProviderInfo, PublishResult, PullRequestInfo
from pinhandoff.identity.models import TriggerFields
from pinhandoff.logging.context import clear_context
from pinhandoff.logging.logger import ROOT_LOGGER

_ENV_PREFIXES = ("GITHUB_", "INPUT_", "ACTIONS_")
_ENV_KEYS = (
    "INPUTS_JSON", "MODE", "WORKSPACE", "CHANNEL_BACKEND", "WALLET_PRIVATE_KEY",
    "LOG_LEVEL", "LOG_FORMAT", "MIN_DAYS", "MAX_BALANCE", "MAX_TOP_UP",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Keep CI variables of the host runner out of Settings."""
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES) or key in _ENV_KEYS:
            monkeypatch.delenv(key, raising=False)
    clear_context()
    yield
    clear_context()
    root = logging.getLogger(ROOT_LOGGER)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True


# === FIXTURES: Settings ===


@pytest.fixture
def make_settings(tmp_path: Path):
    """Settings factory rooted in tmp_path."""

    def _make(**overrides) -> Settings:
        values = {
            "workspace": tmp_path / "ws",
            "channel_root": tmp_path / "channel",
            "ledger_root": tmp_path / "ledger",
            "publisher_root": tmp_path / "published",
            "github_run_id": "1001",
            "github_repository": "acme/site",
        }
        values.update(overrides)
        if values.get("mode") in ("upload", "combined"):
            values.setdefault("wallet_private_key", "0xwallet")
        return Settings(_env_file=None, **values)

    return _make


# === FIXTURES: Filesystem ===


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """Small site tree under ws/dist."""
    root = tmp_path / "ws" / "dist"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text("<h1>hello</h1>", encoding="utf-8")
    (root / "assets" / "app.js").write_text("console.log('hi')", encoding="utf-8")
    return root


@pytest.fixture
def store(tmp_path: Path) -> ContextStore:
    return ContextStore(tmp_path / "ws")


@pytest.fixture
def channel(tmp_path: Path) -> LocalArtifactChannel:
    return LocalArtifactChannel(root=tmp_path / "channel", run_id="1001")


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_publish_result() -> PublishResult:
    return PublishResult(
        content_hash="sha256-abc",
        piece_id="42",
        piece_cid="bafkpiece",
        dataset_id="7",
        provider=ProviderInfo(id="3", name="provider-three"),
        preview_locator="https://preview.example/abc",
        network="calibration",
    )


@pytest.fixture
def pr_trigger() -> TriggerFields:
    return TriggerFields(
        kind="pull_request",
        event_name="pull_request",
        pr_number=17,
        run_id="1001",
        pr=PullRequestInfo(number=17, commit_sha="deadbeef", title="Add docs", author="octo"),
        head_repository="acme/site",
        base_repository="acme/site",
    )


@pytest.fixture
def fork_trigger(pr_trigger: TriggerFields) -> TriggerFields:
    return pr_trigger.model_copy(update={"head_repository": "mallory/site"})


@pytest.fixture
def push_trigger() -> TriggerFields:
    return TriggerFields(
        kind="push",
        event_name="push",
        commit_message="Merge pull request #17 from acme/docs\n\nAdd docs",
        run_id="1002",
    )


@pytest.fixture
def runway_rate() -> Decimal:
    return Decimal("0.01")
