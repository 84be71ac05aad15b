"""Tests for output mode functionality."""

import io

import pytest
from rich.console import Console
from rich.table import Table

from mcp_scout.catalog import create_curated_servers
from mcp_scout.config import OutputMode
from mcp_scout.models import (
    AuthDiscoveryResult,
    BatchEntry,
    BatchVerificationResult,
    ConnectionErrorCode,
    ConnectionTestResult,
    ConnectionTestStep,
    DirectoryCacheStatus,
    DirectoryFetchResult,
    DiscoveredAuthType,
    StepName,
    StepStatus,
)
from mcp_scout.output import OutputManager
from mcp_scout.security import SecurityAssessor

from .fakes import NOW


@pytest.fixture
def mock_console(monkeypatch):
    """Console writing into a buffer instead of the terminal."""

    class BufferConsole(Console):
        def __init__(self):
            super().__init__(file=io.StringIO(), width=200, color_system=None)

        @property
        def text(self) -> str:
            return self.file.getvalue()

    console = BufferConsole()
    monkeypatch.setattr("mcp_scout.output.Console", lambda: console)
    return console


@pytest.fixture
def servers():
    return create_curated_servers()


@pytest.mark.parametrize(
    "mode", [OutputMode.QUIET, OutputMode.STANDARD, OutputMode.VERBOSE]
)
def test_output_modes(mock_console, mode):
    """Test different output modes."""
    output = OutputManager(mode)

    output.print("Standard message")
    output.print_verbose("Verbose message")
    output.display_status("Status message")

    table = Table()
    table.add_column("Test")
    table.add_row("Value")
    output.display_table(table)

    text = mock_console.text
    if mode == OutputMode.QUIET:
        assert text == ""
    elif mode == OutputMode.STANDARD:
        assert "Standard message" in text
        assert "Status message" in text
        assert "Value" in text
        assert "Verbose message" not in text
    else:
        assert "Standard message" in text
        assert "Verbose message" in text
        assert "Status message" in text


def test_directory_table(mock_console, servers):
    fetch = DirectoryFetchResult(servers=servers, last_updated=NOW)
    OutputManager(OutputMode.STANDARD).display_directory(fetch, servers[:2])

    text = mock_console.text
    assert "Remote MCP Servers" in text
    assert "github" in text
    assert "notion" in text
    assert "linear" not in text
    assert "Source: live" in text


def test_server_details(mock_console, servers):
    OutputManager(OutputMode.STANDARD).display_server(servers[0])
    text = mock_console.text
    assert "https://api.githubcopilot.com/mcp/" in text
    assert "GITHUB_PERSONAL_ACCESS_TOKEN" in text


def test_connection_failure(mock_console):
    result = ConnectionTestResult(
        success=False,
        error="DNS resolution failed: no such host",
        error_code=ConnectionErrorCode.NETWORK_ERROR,
        steps=[ConnectionTestStep(name=StepName.DNS, status=StepStatus.ERROR, details="no such host")],
        suggestions=["Check that the server URL is correct"],
    )
    OutputManager(OutputMode.STANDARD).display_connection_result("https://nowhere.example", result)

    text = mock_console.text
    assert "network-error" in text
    assert "no such host" in text
    assert "Check that the server URL is correct" in text


def test_batch_summary(mock_console):
    batch = BatchVerificationResult(
        results=[
            BatchEntry(server_id="notion", result=ConnectionTestResult(success=True, latency_ms=12)),
            BatchEntry(server_id="ghost", result=ConnectionTestResult(
                success=False, error="Server not found", error_code=ConnectionErrorCode.NOT_MCP_SERVER,
            )),
        ],
        success_count=1,
        failed_count=1,
        total_time_ms=30,
    )
    OutputManager(OutputMode.STANDARD).display_batch(batch)

    text = mock_console.text
    assert "not-mcp-server" in text
    assert "1 succeeded, 1 failed" in text


@pytest.mark.parametrize("mode", [OutputMode.STANDARD, OutputMode.VERBOSE])
def test_discovery_trace_only_in_verbose(mock_console, mode):
    result = AuthDiscoveryResult(
        success=True,
        endpoint="https://mcp.example.com/mcp",
        requires_auth=True,
        auth_type=DiscoveredAuthType.API_KEY,
        discovery_steps=["Probing MCP endpoint: https://mcp.example.com/mcp"],
    )
    OutputManager(mode).display_discovery(result)

    text = mock_console.text
    assert "api-key" in text
    assert ("Discovery steps" in text) == (mode == OutputMode.VERBOSE)


def test_assessment_panel(mock_console, servers):
    fetch_server = next(s for s in servers if s.id == "fetch")
    assessment = SecurityAssessor().assess_server(fetch_server)
    OutputManager(OutputMode.STANDARD).display_assessment(fetch_server, assessment)

    text = mock_console.text
    assert "Risk: MEDIUM" in text
    assert "Open access (no authentication)" in text
    assert "[info] Open Access" in text


def test_cache_status(mock_console):
    output = OutputManager(OutputMode.STANDARD)
    output.display_cache_status(DirectoryCacheStatus(is_cached=False, is_stale=True))
    output.display_cache_status(DirectoryCacheStatus(
        is_cached=True, is_stale=False, last_updated=NOW, server_count=15,
    ))

    text = mock_console.text
    assert "No cached directory" in text
    assert "15 servers" in text
