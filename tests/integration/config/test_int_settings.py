# tests/integration/config/test_int_settings.py — v2
"""Integration tests for configuration loading.

Tests Settings with real .env files, the action-input environment and
cross-field consistency. No external services required.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from pinhandoff.config.settings import Settings, load_settings
from pinhandoff.core.errors import ConfigError


class TestSettingsLoading:

    def test_from_env_file(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "MODE=upload\n"
            "WALLET_PRIVATE_KEY=0xfromfile\n"
            "MIN_DAYS=45\n"
            "MAX_TOP_UP=2.5\n"
            "LOG_FORMAT=json\n"
        )
        settings = Settings(_env_file=str(env_file))
        assert settings.mode == "upload"
        assert settings.min_days == 45
        assert settings.max_top_up == Decimal("2.5")
        assert settings.log_format == "json"
        assert settings.wallet_private_key.get_secret_value() == "0xfromfile"

    def test_action_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("GITHUB_WORKSPACE", str(tmp_path))
        monkeypatch.setenv("GITHUB_RUN_ID", "555")
        monkeypatch.setenv("GITHUB_EVENT_NAME", "workflow_run")
        monkeypatch.setenv("INPUTS_JSON", '{"mode": "all", "walletPrivateKey": "0xkey", "withCDN": true}')
        monkeypatch.setenv("INPUT_MINDAYS", "3")

        settings = load_settings()

        assert settings.mode == "combined"
        assert settings.with_cdn is True
        assert settings.min_days == 3
        assert settings.github_run_id == "555"
        assert settings.workspace_path == tmp_path.resolve()

    def test_overrides_win(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("INPUT_MODE", "upload")
        settings = load_settings(mode="build")
        assert settings.mode == "build"
        assert settings.pays is False


class TestSettingsConsistency:

    def test_upload_without_wallet(self):
        with pytest.raises(ConfigError, match="walletPrivateKey") as exc_info:
            load_settings(environ={}, mode="upload")
        assert exc_info.value.phase == "config"

    def test_errors_are_reported_together(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PAYMENT_TOKEN", "FIL")
        with pytest.raises(ConfigError) as exc_info:
            load_settings(environ={}, mode="combined")
        message = str(exc_info.value)
        assert "walletPrivateKey" in message
        assert "USDFC" in message

    def test_invalid_cap(self):
        with pytest.raises(ConfigError, match="max_balance"):
            load_settings(environ={}, max_balance="lots")
