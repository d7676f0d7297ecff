"""Tests for the enterprise exporter."""

from unittest.mock import patch

import pytest

import export_enterprises
from conftest import FakeResponse, api_error, login_ok, login_rejected


@pytest.fixture
def operator_config(config):
    config.set("VeloCloud", "login_type", "operator")
    config.set("VeloCloud", "enterprise_ids", "")
    return config


@pytest.fixture
def use_session(session):
    with patch("export_enterprises.velocloud_api.create_session", return_value=session) as create_session:
        yield create_session


def test_format_enterprise_config():
    text = export_enterprises.format_enterprise_config([
        {"id": 12, "name": "Globex"},
        {"id": 3, "name": "Acme"},
        {"id": 40, "name": None},
    ])

    lines = text.splitlines()
    assert lines[1:4] == ["# 3: Acme", "# 12: Globex", "# 40: Unnamed"]
    assert lines[-1] == "enterprise_ids = 3, 12, 40"


def test_export_prints_enterprise_ids(operator_config, orchestrator, use_session, capsys):
    orchestrator.respond("login/operatorLogin", login_ok())
    orchestrator.respond("network/getNetworkEnterprises", FakeResponse(body=[
        {"id": 1, "name": "Acme"},
        {"id": 2, "name": "Globex"},
    ]))
    orchestrator.respond("logout", FakeResponse(body={}))

    assert export_enterprises.export_enterprises(operator_config) == 0

    out = capsys.readouterr().out
    assert "enterprise_ids = 1, 2" in out
    assert "Logout successful." in out
    assert orchestrator.methods() == ["login/operatorLogin", "network/getNetworkEnterprises", "logout"]


def test_export_logs_out_after_failed_listing(operator_config, orchestrator, use_session):
    orchestrator.respond("login/operatorLogin", login_ok())
    orchestrator.respond("network/getNetworkEnterprises", api_error())
    orchestrator.respond("logout", FakeResponse(body={}))

    assert export_enterprises.export_enterprises(operator_config) == 1
    assert orchestrator.methods()[-1] == "logout"


def test_export_login_failure(operator_config, orchestrator, use_session):
    orchestrator.respond("login/operatorLogin", login_rejected())

    assert export_enterprises.export_enterprises(operator_config) == 1
    assert orchestrator.methods() == ["login/operatorLogin"]


def test_export_requires_operator_or_partner(config, orchestrator, use_session):
    assert export_enterprises.export_enterprises(config) == 1
    assert orchestrator.calls == []


def test_main_missing_config_file(tmp_path):
    assert export_enterprises.main(["--config", str(tmp_path / "missing.conf")]) == 1
