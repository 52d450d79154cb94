# File: tests/test_cli.py
"""Tests for the CLI (`link_relay/cli.py`) using click.testing.CliRunner.
Cover `serve`, `inspect`, `config`, `--version` and error handling.
"""
import json

import pytest
import link_relay.cli as cli_module
from click.testing import CliRunner
from link_relay.cli import cli
from link_relay.fetcher import FetchError
from link_relay.logger import init_logging
from link_relay.parser import PageMetadata


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """No default config file and no chat credentials from the real environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)
    yield
    # the CLI bound a handler to the runner's captured stdout
    init_logging()


@pytest.fixture()
def served(monkeypatch):
    """Patch run_server to capture the config instead of serving."""
    captured = []
    monkeypatch.setattr(cli_module, "run_server", captured.append)
    return captured


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "LinkRelay" in result.output


def test_show_config_masks_token(tmp_path):
    cfg_file = tmp_path / "relay.json"
    cfg_file.write_text(json.dumps({"port": 9090, "fallback_title": "Wait"}), encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["--config", str(cfg_file), "config"],
        env={"TELEGRAM_BOT_TOKEN": "secret-token", "TELEGRAM_CHAT_ID": "99"},
    )
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["port"] == 9090
    assert data["fallback_title"] == "Wait"
    assert data["telegram"]["chat_id"] == "99"
    assert "secret-token" not in result.output


def test_invalid_config_reports_error(tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("port: -5\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 1
    assert "Failed to load configuration" in result.output


def test_serve_applies_overrides_and_credentials(served):
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["--telegram-token", "tok", "--telegram-chat-id", "5", "serve", "--host", "127.0.0.1", "-p", "8181"],
    )
    assert result.exit_code == 0, result.output
    (cfg,) = served
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 8181
    assert cfg.telegram.chat_id == "5"


def test_serve_without_telegram_warns(served):
    runner = CliRunner()
    result = runner.invoke(cli, ["serve"])
    assert result.exit_code == 0
    assert served[0].telegram is None
    assert "Telegram is not configured" in result.output


def test_serve_rejects_bad_port(served):
    runner = CliRunner()
    result = runner.invoke(cli, ["serve", "--port", "99999"])
    assert result.exit_code == 1
    assert served == []


def test_inspect_local_file(tmp_path, sample_html):
    page = tmp_path / "page.html"
    page.write_bytes(sample_html)
    runner = CliRunner()
    result = runner.invoke(cli, ["inspect", "https://a.b/x/y", "--file", str(page)])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data == {
        "url": "https://a.b/x/y",
        "title": "Hi",
        "description": "d",
        "favicon": "favicon.png",
        "favicon_url": "https://a.b/x/favicon.png",
        "favicon_tag": '<link rel="icon" href="https://a.b/x/favicon.png">',
    }


def test_inspect_remote(monkeypatch):
    async def fake_fetch(session, url, **kwargs):
        assert kwargs["timeout"] == 10.0
        return PageMetadata(title="Remote", favicon="/r.ico")

    monkeypatch.setattr(cli_module, "fetch_metadata", fake_fetch)
    runner = CliRunner()
    result = runner.invoke(cli, ["inspect", "https://example.com/page", "--pretty"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["title"] == "Remote"
    assert data["favicon_url"] == "https://example.com/r.ico"


def test_inspect_fetch_failure(monkeypatch):
    async def failing_fetch(session, url, **kwargs):
        raise FetchError(url, "HTTP 503")

    monkeypatch.setattr(cli_module, "fetch_metadata", failing_fetch)
    runner = CliRunner()
    result = runner.invoke(cli, ["inspect", "https://example.com/"])
    assert result.exit_code == 1
    assert "HTTP 503" in result.output


def test_inspect_invalid_url():
    runner = CliRunner()
    result = runner.invoke(cli, ["inspect", "not-a-url"])
    assert result.exit_code == 1
    assert "Invalid URL" in result.output
