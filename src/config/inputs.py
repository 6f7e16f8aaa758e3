# src/config/inputs.py — v1
"""Action input collection: INPUTS_JSON and INPUT_<NAME> environment variables.

CI actions receive their inputs either as one JSON document (INPUTS_JSON) or
as one INPUT_<NAME> variable per input. Both are mapped onto Settings field
names here; nothing is cached between calls.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from pinhandoff.core.errors import ConfigError

# Action input name -> Settings field
INPUT_FIELDS: dict[str, str] = {
    "mode": "mode",
    "path": "content_path",
    "minDays": "min_days",
    "maxBalance": "max_balance",
    "maxTopUp": "max_top_up",
    "withCDN": "with_cdn",
    "providerAddress": "provider_address",
    "token": "payment_token",
    "walletPrivateKey": "wallet_private_key",
    "artifact_name": "artifact_name",
    "network": "network",
}


def _stringify(value: object) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def read_inputs_json(environ: Mapping[str, str]) -> dict[str, object]:
    """Parse INPUTS_JSON, returning {} when unset.

    Raises:
        ConfigError: If INPUTS_JSON is present but not a JSON object.
    """
    raw = environ.get("INPUTS_JSON")
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse INPUTS_JSON: {e}", phase="config") from e
    if not isinstance(parsed, dict):
        raise ConfigError("INPUTS_JSON must be a JSON object", phase="config")
    return parsed


def collect_action_inputs(environ: Mapping[str, str]) -> dict[str, str]:
    """Map action inputs present in the environment onto Settings fields.

    Precedence per input: INPUTS_JSON, then INPUT_<NAME uppercased>. Inputs
    absent from both are left out so Settings falls back to its own sources.
    """
    from_json = read_inputs_json(environ)
    values: dict[str, str] = {}

    for name, field in INPUT_FIELDS.items():
        if name in from_json:
            values[field] = _stringify(from_json[name]).strip()
            continue
        env_key = f"INPUT_{name.upper()}"
        if env_key in environ:
            values[field] = environ[env_key].strip()

    if "GITHUB_WORKSPACE" in environ and "WORKSPACE" not in environ:
        values["workspace"] = environ["GITHUB_WORKSPACE"]

    return values
