"""Tests for the ``review-spine`` CLI (``review_spine.cli``)."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from typer.testing import CliRunner

from review_spine import __version__
from review_spine.cli import utils
from review_spine.cli.app import app
from review_spine.core.schema import TableVariant
from review_spine.core.settings import ReviewSpineSettings
from review_spine.scheduling.manager import build_manager

runner = CliRunner()
GOOD_NAME = "FAQ - NonHCP - OA - 20250826 - V2.docx"


@pytest.fixture(autouse=True)
def quiet_logs():
    """Keep structlog output out of the captured command output."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL))
    yield
    structlog.reset_defaults()


@pytest.fixture
def closes() -> list[bool]:
    return []


@pytest.fixture
def manager(monkeypatch, closes):
    """A memory-backed manager shared by every command in a test."""
    m = build_manager(
        ReviewSpineSettings(
            _env_file=None,
            store_backend="memory",
            run_on_start=False,
            copy_settle_seconds=0,
            copy_poll_delay_seconds=0,
        )
    )
    monkeypatch.setattr(utils, "build_manager", lambda settings: m)
    monkeypatch.setattr(utils, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(m, "close", lambda: closes.append(True))
    return m


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_no_args_shows_help():
    result = runner.invoke(app, [])
    assert "intake" in result.output
    assert "archive" in result.output


class TestCycles:
    def test_intake(self, manager, closes):
        manager.intake_monitor.documents.add_file("intake", GOOD_NAME, file_id="f1")
        result = runner.invoke(app, ["intake", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["ingested"] == ["f1"]
        assert closes == [True]

    def test_route(self, manager):
        result = runner.invoke(app, ["route"])
        assert result.exit_code == 0, result.output
        assert "rows_seen" in result.output


class TestArchive:
    def test_success_prints_summary(self, manager):
        documents = manager.intake_monitor.documents
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        manager.trigger_intake()
        manager.tables.update_row(TableVariant.INTAKE, 0, {"status": "fast-track"})
        manager.trigger_routing()

        result = runner.invoke(app, ["archive", "42"])

        assert result.exit_code == 0, result.output
        assert "Archive Process Summary for Sprint: 42" in result.output
        assert "Total rows archived: 1" in result.output

    def test_failures_exit_nonzero(self, manager):
        documents = manager.intake_monitor.documents
        documents.add_file("intake", GOOD_NAME, file_id="f1")
        manager.trigger_intake()
        manager.tables.update_row(TableVariant.INTAKE, 0, {"status": "fast-track"})
        documents.fail_copies.add("f1")

        result = runner.invoke(app, ["archive", "42"])

        assert result.exit_code == 1
        assert "File errors: 1" in result.output


class TestInspection:
    def test_logs(self, manager):
        manager.intake_monitor.documents.add_file("intake", GOOD_NAME, file_id="f1")
        manager.trigger_intake()
        result = runner.invoke(app, ["logs", "--json", "--limit", "5"])
        assert result.exit_code == 0, result.output
        [entry] = json.loads(result.stdout)
        assert entry["action"] == "intake"

    def test_error_logs_empty(self, manager):
        result = runner.invoke(app, ["logs", "--errors"])
        assert result.exit_code == 0
        assert "No items." in result.output

    def test_stats(self, manager):
        manager.intake_monitor.documents.add_file("intake", "bad.docx", file_id="bad")
        manager.trigger_intake()
        result = runner.invoke(app, ["stats", "--json"])
        assert result.exit_code == 0, result.output
        [stat] = json.loads(result.stdout)
        assert (stat["action"], stat["status"], stat["count"]) == ("parse_rejected", "error", 1)


def test_config_error_exits_1(monkeypatch):
    from review_spine.core.errors import ConfigError

    def fail(settings):
        raise ConfigError("REVIEW_SPINE_GRAPH_SITE is required for the graph backend")

    monkeypatch.setattr(utils, "build_manager", fail)
    monkeypatch.setattr(utils, "configure_logging", lambda **kwargs: None)
    result = runner.invoke(app, ["intake"])
    assert result.exit_code == 1
    assert "GRAPH_SITE" in result.output
