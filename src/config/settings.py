# src/config/settings.py — v2
"""Typed configuration loaded from .env and the CI environment via pydantic-settings.

Single source of truth for all deployment-specific settings. The instance is
frozen and built once per process by load_settings(); every component
receives it by parameter.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Literal

from pydantic import SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pinhandoff.config.inputs import collect_action_inputs
from pinhandoff.core.errors import ConfigError

SUPPORTED_PAYMENT_TOKENS = ("USDFC",)


class Settings(BaseSettings):
    """Application settings loaded from .env, action inputs and CI variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # === PHASE ===
    mode: Literal["build", "upload", "combined"] = "build"
    content_path: str = "dist"
    artifact_name: str = ""

    # === PAYMENT ===
    min_days: int = 10
    max_balance: Decimal | None = None
    max_top_up: Decimal | None = None
    payment_token: str = "USDFC"
    wallet_private_key: SecretStr = SecretStr("")

    # === UPLOAD ===
    with_cdn: bool = False
    provider_address: str = ""
    network: str = "calibration"

    # === CI ENVIRONMENT ===
    workspace: Path = Path(".")
    github_event_name: str = ""
    github_event_path: str = ""
    github_run_id: str = ""
    github_repository: str = ""
    github_token: SecretStr = SecretStr("")
    github_api_url: str = "https://api.github.com"
    actions_runtime_token: SecretStr = SecretStr("")
    actions_results_url: str = ""
    github_output: str = ""
    github_step_summary: str = ""

    # === ARTIFACT CHANNEL ===
    channel_backend: Literal["github", "local"] = "local"
    channel_root: Path = Path("~/.pinhandoff/artifacts")
    channel_timeout_seconds: float = 30.0
    build_retention_days: int = 1
    reuse_retention_days: int = 30

    # === COLLABORATORS ===
    packer_backend: Literal["tar"] = "tar"
    ledger_backend: Literal["sandbox"] = "sandbox"
    ledger_root: Path = Path("~/.pinhandoff/ledger")
    sandbox_runway_rate: Decimal = Decimal("0.01")
    publisher_backend: Literal["sandbox"] = "sandbox"
    publisher_root: Path = Path("~/.pinhandoff/published")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "NOTICE", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text", "github"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: Any) -> Any:  # noqa: N805
        """Accept the historical 'all' spelling for combined mode."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "all":
                return "combined"
        return v

    @field_validator("min_days", mode="before")
    @classmethod
    def coerce_min_days(cls, v: Any) -> int:  # noqa: N805
        """Non-numeric or negative runway targets collapse to zero."""
        try:
            days = int(float(v))
        except (TypeError, ValueError):
            return 0
        return max(days, 0)

    @field_validator("max_balance", "max_top_up", mode="before")
    @classmethod
    def parse_cap(cls, v: Any) -> Decimal | None:  # noqa: N805
        """Empty caps are unset; everything else must be a non-negative amount."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            amount = Decimal(str(v).strip())
        except InvalidOperation as e:
            raise ValueError(f"invalid token amount: {v!r}") from e
        if amount < 0:
            raise ValueError("spending caps must be >= 0")
        return amount

    @field_validator("with_cdn", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> Any:  # noqa: N805
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field rules C-01 to C-04."""
        errors: list[str] = []

        # C-01
        if self.pays and not self.wallet_private_key.get_secret_value():
            errors.append(f"walletPrivateKey is required in {self.mode} mode")

        # C-02
        if self.payment_token.upper() not in SUPPORTED_PAYMENT_TOKENS:
            errors.append(
                f"Only {', '.join(SUPPORTED_PAYMENT_TOKENS)} is supported for payments"
            )

        # C-04
        if self.channel_backend == "github":
            if not self.github_repository:
                errors.append("GITHUB_REPOSITORY must be set when CHANNEL_BACKEND=github")
            if self.mode != "build" and not self.github_token.get_secret_value():
                errors.append("GITHUB_TOKEN must be set when CHANNEL_BACKEND=github")

        if errors:
            raise ConfigError("; ".join(errors), phase="config")

        return self

    # --- Helpers ---

    @property
    def pays(self) -> bool:
        """Whether this execution may spend from the wallet."""
        return self.mode in ("upload", "combined")

    @property
    def workspace_path(self) -> Path:
        return self.workspace.expanduser().resolve()

    @property
    def resolved_content_path(self) -> Path:
        """Content path relative to the workspace."""
        return (self.workspace_path / self.content_path).resolve()


def load_settings(
    environ: Mapping[str, str] | None = None,
    **overrides: object,
) -> Settings:
    """Build the process-wide settings once.

    Action inputs (INPUTS_JSON, then INPUT_<NAME>) override plain environment
    variables; explicit overrides win over both.

    Args:
        environ: Environment to read action inputs from. Defaults to os.environ.
        **overrides: Field-level overrides (CLI flags, tests).

    Returns:
        Validated, immutable Settings instance.

    Raises:
        ConfigError: If any input is missing, malformed or inconsistent.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = dict(collect_action_inputs(env))
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings(**values)  # type: ignore[arg-type]
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}", phase="config") from e
