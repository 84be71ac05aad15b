"""Terminal output for mcp-scout."""

from typing import Any, List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import OutputMode
from .models import (
    AuthDiscoveryResult,
    BatchVerificationResult,
    ConnectionTestResult,
    DirectoryCacheStatus,
    DirectoryFetchResult,
    RemoteServerDescriptor,
    RiskLevel,
    ServerAssessment,
    StepStatus,
    WarningSeverity,
)

STEP_STYLES = {
    StepStatus.SUCCESS: ("✓", "green"),
    StepStatus.WARNING: ("!", "yellow"),
    StepStatus.ERROR: ("✗", "red"),
    StepStatus.PENDING: ("…", "dim"),
}

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "bold red",
    RiskLevel.UNKNOWN: "magenta",
}

SEVERITY_STYLES = {
    WarningSeverity.INFO: "cyan",
    WarningSeverity.WARNING: "yellow",
    WarningSeverity.CRITICAL: "bold red",
}


class OutputManager:
    """Manages terminal output based on configured output mode."""

    def __init__(self, output_mode: OutputMode):
        self.output_mode = output_mode
        self.console = Console()

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print output if not in quiet mode."""
        if self.output_mode != OutputMode.QUIET:
            self.console.print(*args, **kwargs)

    def print_verbose(self, *args: Any, **kwargs: Any) -> None:
        """Print output only in verbose mode."""
        if self.output_mode == OutputMode.VERBOSE:
            self.console.print(*args, **kwargs)

    def display_status(self, message: str, style: str = "yellow") -> None:
        """Display a status message in standard and verbose modes."""
        if self.output_mode != OutputMode.QUIET:
            self.console.print(f"[{style}]{message}[/{style}]")

    def display_table(self, table: Table) -> None:
        if self.output_mode != OutputMode.QUIET:
            self.console.print(table)

    def display_panel(self, panel: Panel) -> None:
        if self.output_mode != OutputMode.QUIET:
            self.console.print(panel)

    def display_directory(
        self, fetch: DirectoryFetchResult, servers: List[RemoteServerDescriptor]
    ) -> None:
        """Display catalog entries as a table."""
        origin = fetch.origin.value + (", stale" if fetch.is_stale else "")
        updated = fetch.last_updated.isoformat() if fetch.last_updated else "never"
        table = Table(
            title=f"[bold cyan]Remote MCP Servers[/bold cyan] ({len(servers)})",
            caption=f"Source: {origin} - updated {updated}",
            header_style="bold green",
        )
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="white")
        table.add_column("Provider", style="magenta")
        table.add_column("Category", style="blue")
        table.add_column("Auth", style="yellow")
        table.add_column("Transport")
        table.add_column("Verified", justify="center")

        for server in servers:
            table.add_row(
                server.id,
                server.name,
                server.provider,
                server.category.value,
                server.auth_type.value,
                server.transport.value,
                "[green]yes[/green]" if server.verified else "[red]no[/red]",
            )
        self.display_table(table)

        if fetch.error:
            self.display_status(fetch.error, style="red")

    def display_server(self, server: RemoteServerDescriptor) -> None:
        table = Table(title=f"[bold cyan]{server.name}[/bold cyan]", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("ID", server.id)
        table.add_row("Description", server.description)
        table.add_row("Endpoint", server.endpoint)
        table.add_row("Transport", server.transport.value)
        table.add_row("Auth", server.auth_type.value)
        if server.auth_config is not None:
            config = server.auth_config.model_dump(exclude_none=True, exclude_defaults=True)
            for key, value in config.items():
                table.add_row(f"  {key}", ", ".join(value) if isinstance(value, list) else str(value))
        table.add_row("Provider", server.provider)
        table.add_row("Category", server.category.value)
        table.add_row("Tags", ", ".join(server.tags) or "-")
        table.add_row("Source", server.source.value)
        if server.documentation_url:
            table.add_row("Docs", server.documentation_url)
        self.display_table(table)

    def display_connection_result(self, target: str, result: ConnectionTestResult) -> None:
        """Display the step list of one connection test."""
        table = Table(title=f"[bold cyan]Connection test[/bold cyan] {target}", header_style="bold green")
        table.add_column("", justify="center")
        table.add_column("Step", style="cyan")
        table.add_column("Details", style="white", overflow="fold")
        for step in result.steps:
            icon, style = STEP_STYLES[step.status]
            table.add_row(f"[{style}]{icon}[/{style}]", step.name.value, step.details or "")
        self.display_table(table)

        if result.success:
            line = f"Connected in {result.latency_ms}ms"
            if result.error_code:
                line += f" ({result.error_code.value})"
            self.display_status(line, style="bold green")
        else:
            code = result.error_code.value if result.error_code else "unknown"
            self.display_status(escape(f"Failed [{code}]: {result.error or 'no details'}"), style="bold red")
        for suggestion in result.suggestions:
            self.print(f"  - {suggestion}")

        if result.server_info is not None:
            self.print_verbose(result.server_info.model_dump(exclude_none=True))

    def display_batch(self, batch: BatchVerificationResult) -> None:
        table = Table(title="[bold cyan]Batch connection test[/bold cyan]", header_style="bold green")
        table.add_column("Server", style="cyan")
        table.add_column("Result")
        table.add_column("Code", style="yellow")
        table.add_column("Latency", justify="right")
        for entry in batch.results:
            result = entry.result
            table.add_row(
                entry.server_id,
                "[green]ok[/green]" if result.success else "[red]failed[/red]",
                result.error_code.value if result.error_code else "",
                f"{result.latency_ms}ms" if result.latency_ms is not None else "-",
            )
        self.display_table(table)
        self.display_status(
            f"{batch.success_count} succeeded, {batch.failed_count} failed "
            f"in {batch.total_time_ms}ms",
            style="bold cyan",
        )

    def display_discovery(self, result: AuthDiscoveryResult) -> None:
        """Display the discovery classification, and the trace in verbose mode."""
        table = Table(title=f"[bold cyan]Auth discovery[/bold cyan] {result.endpoint}", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="white", overflow="fold")
        table.add_row("Requires auth", "yes" if result.requires_auth else "no")
        table.add_row("Auth type", result.auth_type.value)
        table.add_row("Dynamic client registration", "supported" if result.supports_dcr else "not supported")
        if result.scopes:
            table.add_row("Scopes", ", ".join(result.scopes))
        if result.authorization_server is not None:
            table.add_row("Issuer", result.authorization_server.issuer or "-")
            if result.authorization_server.registration_endpoint:
                table.add_row("Registration endpoint", result.authorization_server.registration_endpoint)
        if result.error:
            table.add_row("Error", f"[red]{result.error}[/red]")
        self.display_table(table)

        trace = Text("\n".join(result.discovery_steps), style="dim", overflow="fold")
        if self.output_mode == OutputMode.VERBOSE:
            self.console.print(Panel(trace, title="Discovery steps", border_style="blue", expand=False))

    def display_assessment(self, server: RemoteServerDescriptor, assessment: ServerAssessment) -> None:
        context = assessment.context
        style = RISK_STYLES[context.risk_level]
        lines = [
            f"[{style}]Risk: {context.risk_level.value.upper()}[/{style}]",
            assessment.summary,
            "",
            f"Data access: {context.data_access_description}",
        ]
        if context.requested_scopes:
            lines.append(f"Requested scopes: {', '.join(context.requested_scopes)}")
        if context.risk_factors:
            lines.append("")
            lines.append("Risk factors:")
            lines.extend(f"  - {factor}" for factor in context.risk_factors)
        self.display_panel(Panel("\n".join(lines), title=f"Security assessment: {server.name}",
                                 border_style=style, expand=False))

        for warning in assessment.warnings:
            w_style = SEVERITY_STYLES[warning.severity]
            label = escape(f"[{warning.severity.value}] {warning.title}")
            self.print(f"[{w_style}]{label}[/{w_style}]: {escape(warning.description)}")
            self.print_verbose(f"    Recommendation: {warning.recommendation}")

    def display_cache_status(self, status: DirectoryCacheStatus) -> None:
        if not status.is_cached:
            self.display_status("No cached directory", style="yellow")
            return
        freshness = "[red]stale[/red]" if status.is_stale else "[green]fresh[/green]"
        self.print(
            f"Cached directory: {status.server_count} servers, {freshness}, "
            f"updated {status.last_updated.isoformat() if status.last_updated else 'unknown'}"
        )
