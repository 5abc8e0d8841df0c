"""Tests for the Typer CLI and its pipeline runner."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fakes import FakeBackend, make_pool
from typer.testing import CliRunner

from stormswarm.cli import runners
from stormswarm.cli import app as app_module
from stormswarm.cli.app import app
from stormswarm.config import Settings
from stormswarm.swarm.profiles import BackendId

cli = CliRunner()

_KEYS = ("ANTHROPIC_API_KEY", "GEMINI_API_KEY", "MOONSHOT_API_KEY")


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr(app_module.console, "width", 200)


@pytest.fixture
def no_keys(monkeypatch):
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)


def test_roles_lists_every_role():
    result = cli.invoke(app, ["roles"])
    assert result.exit_code == 0
    for role in ("researcher", "architect", "reviewer", "analyst"):
        assert role in result.output


def test_backends_shows_configuration_status(tmp_path, no_keys, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    result = cli.invoke(app, ["backends", "--cwd", str(tmp_path)])
    assert result.exit_code == 0
    assert "Gemini 2.5 Pro" in result.output
    assert "ready" in result.output
    assert "ANTHROPIC_API_KEY" in result.output


def test_route_static_task(tmp_path):
    result = cli.invoke(app, ["route", "research_facts", "--all", "--cwd", str(tmp_path)])
    assert result.exit_code == 0
    assert "research_facts → claude" in result.output


def test_route_architecture_section(tmp_path):
    result = cli.invoke(
        app,
        ["route", "write_section", "--title", "System Architecture", "--all", "-C", str(tmp_path)],
    )
    assert result.exit_code == 0
    assert "write_section → gemini" in result.output


def test_route_unknown_task_type(tmp_path):
    result = cli.invoke(app, ["route", "summon_demons", "--all", "-C", str(tmp_path)])
    assert result.exit_code == 1


def test_run_delegates_to_runner(tmp_path):
    runner = AsyncMock(return_value=0)
    with patch("stormswarm.cli.runners.run_pipeline", runner):
        result = cli.invoke(
            app,
            ["run", "edge computing", "--length", "short", "--sequential", "-C", str(tmp_path)],
        )
    assert result.exit_code == 0
    topic, settings = runner.call_args.args
    assert topic == "edge computing"
    assert settings.pipeline.article_length == "short"
    assert settings.pipeline.parallelization is False


def test_run_rejects_unknown_length(tmp_path):
    result = cli.invoke(app, ["run", "t", "--length", "epic", "-C", str(tmp_path)])
    assert result.exit_code == 2


@pytest.mark.asyncio
async def test_runner_without_backends_fails(no_keys):
    assert await runners.run_pipeline("t", Settings()) == 1


@pytest.mark.asyncio
async def test_runner_writes_article(tmp_path):
    pool = make_pool(*(FakeBackend(b) for b in BackendId))
    output = tmp_path / "article.md"

    with patch("stormswarm.cli.runners.BackendPool.from_settings", return_value=pool):
        code = await runners.run_pipeline("edge computing", Settings(), output=output)

    assert code == 0
    article = output.read_text()
    assert article.startswith("## Introduction")
    assert "## Conclusion" in article


def test_run_reports_malformed_config(tmp_path):
    (tmp_path / ".stormswarm.yml").write_text("pipeline: [unclosed\n")
    result = cli.invoke(app, ["run", "t", "-C", str(tmp_path)])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.output
