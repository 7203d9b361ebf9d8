from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from typer.testing import CliRunner

from yds_vault.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("YDS_VAULT_CONFIG", raising=False)


def test_show_config_redacts_private_key(monkeypatch):
    monkeypatch.setenv("YDS_VAULT_PRIVATE_KEY", "0x" + "22" * 32)

    result = runner.invoke(app, ["--rpc-url", "http://node:8545", "--show-config"])

    assert result.exit_code == 0
    config = json.loads(result.stdout)
    assert config["rpc_url"] == "http://node:8545"
    assert config["private_key"] == "***redacted***"


def test_invalid_amount_is_a_usage_error():
    result = runner.invoke(app, ["mint", "1e5"])

    assert result.exit_code == 2


@patch("yds_vault.checks.node_probe.requests.post")
def test_probe_reports_running_node(mock_post):
    response = MagicMock()
    response.json.return_value = {"result": "0x7a69"}
    mock_post.return_value = response

    result = runner.invoke(app, ["probe"])

    assert result.exit_code == 0
    assert "Chain ID: 31337" in result.output


@patch("yds_vault.checks.node_probe.requests.post")
def test_probe_fails_when_node_down(mock_post):
    mock_post.side_effect = requests.exceptions.ConnectionError("refused")

    result = runner.invoke(app, ["probe"])

    assert result.exit_code == 1
    assert "anvil" in result.output
