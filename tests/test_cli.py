"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from template_engine import cli
from template_engine.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch):
    """Record logging setup instead of reconfiguring the test process."""
    calls = []
    monkeypatch.setattr(cli, "setup_logging", lambda: calls.append(True))
    return calls


def test_version(logging_calls):
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "Prompt Template Engine" in result.output
    assert logging_calls == [True]


def test_db_status_reports_health():
    result = runner.invoke(app, ["db-status"])

    assert result.exit_code == 0
    assert "Connected" in result.output
    assert "sqlite" in result.output


def test_validate_valid_template(tmp_path, make_template):
    path = tmp_path / "template.json"
    path.write_text(make_template().model_dump_json(), encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])

    assert result.exit_code == 0
    assert "Valid" in result.output
    assert "Invalid" not in result.output
    assert "overall" in result.output


def test_validate_reports_critical_errors(tmp_path, make_template):
    path = tmp_path / "template.json"
    path.write_text(make_template(name="", voice_configuration=None).model_dump_json(), encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])

    assert result.exit_code == 1
    assert "Invalid" in result.output
    assert "Template name is required" in result.output


def test_validate_rejects_malformed_files(tmp_path):
    path = tmp_path / "template.json"
    path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["validate", str(path)])

    assert result.exit_code == 1
    assert "Could not read template" in result.output
