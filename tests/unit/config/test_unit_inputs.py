# tests/unit/config/test_unit_inputs.py — v1
"""Tests for config/inputs.py — INPUTS_JSON and INPUT_<NAME> collection."""

from __future__ import annotations

import pytest

from pinhandoff.config.inputs import collect_action_inputs, read_inputs_json
from pinhandoff.core.errors import ConfigError


class TestReadInputsJson:
    def test_unset(self):
        assert read_inputs_json({}) == {}

    def test_object(self):
        assert read_inputs_json({"INPUTS_JSON": '{"mode": "upload"}'}) == {"mode": "upload"}

    def test_invalid_json(self):
        with pytest.raises(ConfigError, match="INPUTS_JSON"):
            read_inputs_json({"INPUTS_JSON": "{not json"})

    def test_not_an_object(self):
        with pytest.raises(ConfigError, match="JSON object"):
            read_inputs_json({"INPUTS_JSON": "[1, 2]"})


class TestCollectActionInputs:
    def test_maps_input_names_to_fields(self):
        values = collect_action_inputs({
            "INPUT_PATH": " site ",
            "INPUT_MAXTOPUP": "0.5",
            "INPUT_WALLETPRIVATEKEY": "0xkey",
        })
        assert values == {
            "content_path": "site",
            "max_top_up": "0.5",
            "wallet_private_key": "0xkey",
        }

    def test_inputs_json_takes_precedence(self):
        values = collect_action_inputs({
            "INPUTS_JSON": '{"minDays": 30, "withCDN": true}',
            "INPUT_MINDAYS": "5",
        })
        assert values["min_days"] == "30"
        assert values["with_cdn"] == "True"

    def test_null_json_value_is_empty(self):
        values = collect_action_inputs({"INPUTS_JSON": '{"maxBalance": null}'})
        assert values["max_balance"] == ""

    def test_github_workspace(self):
        values = collect_action_inputs({"GITHUB_WORKSPACE": "/home/runner/work"})
        assert values["workspace"] == "/home/runner/work"

    def test_explicit_workspace_wins(self):
        values = collect_action_inputs({"GITHUB_WORKSPACE": "/a", "WORKSPACE": "/b"})
        assert "workspace" not in values
