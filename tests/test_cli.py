"""Tests for the mcp-scout command line."""

import json
import logging

import pytest

from mcp_scout.cli import (
    EXIT_GENERAL_ERROR,
    EXIT_PROBE_FAILED,
    EXIT_SERVER_NOT_FOUND,
    EXIT_SUCCESS,
    build_parser,
    main,
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Point the cache at a temp dir and restore logging afterwards."""
    for name in ("MCP_SCOUT_CONCURRENCY", "MCP_SCOUT_OUTPUT_MODE", "MCP_SCOUT_CACHE_TTL_HOURS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MCP_SCOUT_CACHE_DIR", str(tmp_path / "cache"))

    logger = logging.getLogger("mcp_scout")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    logger.setLevel(saved[0])
    logger.handlers = saved[1]
    logger.propagate = saved[2]


def run_json(capsys, *argv):
    code = main(["--json", *argv])
    return code, json.loads(capsys.readouterr().out)


class TestParser:
    """Test argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_test_all_options(self):
        args = build_parser().parse_args(["test-all", "github", "notion", "--concurrency", "2"])
        assert args.server_ids == ["github", "notion"]
        assert args.concurrency == 2

    def test_verbose_and_quiet_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-v", "-q", "list"])


class TestCommands:
    """Test commands that need no network."""

    def test_list_search(self, capsys):
        code, data = run_json(capsys, "list", "--search", "notion")
        assert code == EXIT_SUCCESS
        assert [server["id"] for server in data] == ["notion"]

    def test_list_filters(self, capsys):
        code, data = run_json(capsys, "list", "--auth-type", "open", "--transport", "sse")
        assert code == EXIT_SUCCESS
        assert [server["id"] for server in data] == ["semgrep"]

    def test_show(self, capsys):
        code, data = run_json(capsys, "show", "github")
        assert code == EXIT_SUCCESS
        assert data["auth_type"] == "api-key"
        assert data["transport"] == "http"

    def test_show_unknown(self, capsys):
        assert main(["show", "ghost"]) == EXIT_SERVER_NOT_FOUND
        assert "Unknown server: ghost" in capsys.readouterr().out

    def test_cache_status_after_list(self, capsys, tmp_path):
        main(["--quiet", "list"])
        capsys.readouterr()

        code, data = run_json(capsys, "cache-status")
        assert code == EXIT_SUCCESS
        assert data["is_cached"] is True
        assert data["is_stale"] is False
        assert data["server_count"] == 15
        assert (tmp_path / "cache" / "remote-mcp-servers.json").exists()

    def test_quiet_prints_nothing(self, capsys):
        assert main(["--quiet", "list"]) == EXIT_SUCCESS
        assert capsys.readouterr().out == ""

    def test_assess(self, capsys):
        code, data = run_json(capsys, "assess", "fetch")
        assert code == EXIT_SUCCESS
        assert data["server_id"] == "fetch"
        assert data["context"]["risk_level"] == "medium"
        assert data["show_dialog"] is True

    def test_assess_unknown(self):
        assert main(["assess", "ghost"]) == EXIT_SERVER_NOT_FOUND

    def test_invalid_url_fails_probe(self, capsys):
        code, data = run_json(capsys, "test", "not a url")
        assert code == EXIT_PROBE_FAILED
        assert data["success"] is False
        assert data["error_code"] == "network-error"

    def test_invalid_configuration(self, monkeypatch):
        monkeypatch.setenv("MCP_SCOUT_CONCURRENCY", "0")
        assert main(["list"]) == EXIT_GENERAL_ERROR
