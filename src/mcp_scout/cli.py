"""mcp-scout CLI - vet remote MCP servers before connecting an assistant to them.

USAGE:
    # Browse the directory
    mcp-scout list --search postgres --verified-only

    # Verify one endpoint
    mcp-scout test https://mcp.example.com/mcp --timeout 5

    # Verify catalog entries, three at a time
    mcp-scout test-all github notion linear --concurrency 3

    # Learn how an endpoint authenticates
    mcp-scout discover https://mcp.example.com/mcp --verbose

    # Risk assessment, optionally with a live connection test
    mcp-scout assess notion --test

ENVIRONMENT VARIABLES (also read from .env):
    MCP_SCOUT_CACHE_DIR:           Directory cache location
    MCP_SCOUT_CACHE_TTL_HOURS:     Directory cache lifetime (default 24)
    MCP_SCOUT_CONNECTION_TIMEOUT:  Per-request timeout for connection tests
    MCP_SCOUT_DISCOVERY_TIMEOUT:   Per-request timeout for auth discovery
    MCP_SCOUT_CONCURRENCY:         Batch test concurrency (default 5)
    MCP_SCOUT_OUTPUT_MODE:         quiet, standard or verbose

EXIT CODES:
    0:  Success
    1:  General error
    2:  Server not found
    4:  Connection test or discovery failed
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError
from rich.console import Console

from .config import OutputMode, ScoutConfig, configure_logging
from .inspector import RemoteServerInspector
from .models import ServerFilters, TransportKind
from .output import OutputManager

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_SERVER_NOT_FOUND = 2
EXIT_PROBE_FAILED = 4

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-scout",
        description="Discover, verify and assess remote MCP servers",
    )
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Show probe traces and debug logs")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only report errors")

    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List or search the server directory")
    list_cmd.add_argument("--refresh", action="store_true", help="Rebuild the directory, ignoring the cache")
    list_cmd.add_argument("--search", help="Case-insensitive text to match")
    list_cmd.add_argument("--category", help="Category, e.g. developer-tools")
    list_cmd.add_argument("--auth-type", choices=["oauth", "api-key", "header", "open"])
    list_cmd.add_argument("--transport", choices=["http", "event-stream", "sse"])
    list_cmd.add_argument("--verified-only", action="store_true")

    show_cmd = commands.add_parser("show", help="Show one directory entry")
    show_cmd.add_argument("server_id")

    test_cmd = commands.add_parser("test", help="Run a connection test against a URL")
    test_cmd.add_argument("url")
    test_cmd.add_argument("--transport", default="http", choices=["http", "event-stream", "sse"])
    test_cmd.add_argument("--timeout", type=float, help="Per-request timeout in seconds")

    test_all_cmd = commands.add_parser("test-all", help="Test directory entries (all when no ids given)")
    test_all_cmd.add_argument("server_ids", nargs="*")
    test_all_cmd.add_argument("--concurrency", type=int)
    test_all_cmd.add_argument("--timeout", type=float)

    discover_cmd = commands.add_parser("discover", help="Discover how an endpoint authenticates")
    discover_cmd.add_argument("url")

    assess_cmd = commands.add_parser("assess", help="Security assessment of a directory entry")
    assess_cmd.add_argument("server_id")
    assess_cmd.add_argument("--test", action="store_true", help="Include a live connection test")

    commands.add_parser("cache-status", help="Show the directory cache state")
    return parser


def _print_json(console: Console, model: BaseModel) -> None:
    console.print_json(model.model_dump_json())


async def run(args: argparse.Namespace, inspector: RemoteServerInspector,
              output: OutputManager, console: Console) -> int:
    if args.command == "list":
        fetch = await inspector.fetch_directory(force_refresh=args.refresh)
        if not fetch.success:
            output.display_status(fetch.error or "Directory unavailable", style="bold red")
            return EXIT_GENERAL_ERROR
        servers = await inspector.search_servers(ServerFilters(
            search=args.search,
            category=args.category,
            auth_type=args.auth_type,
            transport=args.transport,
            verified_only=args.verified_only,
        ))
        if args.json:
            console.print_json(data=[s.model_dump(mode="json") for s in servers])
        else:
            output.display_directory(fetch, servers)
        return EXIT_SUCCESS

    if args.command == "show":
        server = await inspector.get_server_details(args.server_id)
        if server is None:
            output.display_status(f"Unknown server: {args.server_id}", style="bold red")
            return EXIT_SERVER_NOT_FOUND
        if args.json:
            _print_json(console, server)
        else:
            output.display_server(server)
        return EXIT_SUCCESS

    if args.command == "test":
        result = await inspector.test_connection(args.url, TransportKind(args.transport), args.timeout)
        if args.json:
            _print_json(console, result)
        else:
            output.display_connection_result(args.url, result)
        return EXIT_SUCCESS if result.success else EXIT_PROBE_FAILED

    if args.command == "test-all":
        server_ids: List[str] = args.server_ids
        if not server_ids:
            fetch = await inspector.fetch_directory()
            server_ids = [server.id for server in fetch.servers]
        batch = await inspector.test_all_connections(server_ids, args.concurrency, args.timeout)
        if args.json:
            _print_json(console, batch)
        else:
            output.display_batch(batch)
        return EXIT_SUCCESS if batch.failed_count == 0 else EXIT_PROBE_FAILED

    if args.command == "discover":
        result = await inspector.discover_auth(args.url)
        if args.json:
            _print_json(console, result)
        else:
            output.display_discovery(result)
        return EXIT_SUCCESS if result.success else EXIT_PROBE_FAILED

    if args.command == "assess":
        server = await inspector.get_server_details(args.server_id)
        if server is None:
            output.display_status(f"Unknown server: {args.server_id}", style="bold red")
            return EXIT_SERVER_NOT_FOUND
        connection = None
        if args.test:
            connection = await inspector.test_connection(server.endpoint, server.transport)
            if not args.json:
                output.display_connection_result(server.endpoint, connection)
        assessment = inspector.assess_server(server, connection)
        if args.json:
            _print_json(console, assessment)
        else:
            output.display_assessment(server, assessment)
        return EXIT_SUCCESS

    if args.command == "cache-status":
        status = inspector.get_cache_status()
        if args.json:
            _print_json(console, status)
        else:
            output.display_cache_status(status)
        return EXIT_SUCCESS

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(override=True)
    args = build_parser().parse_args(argv)
    console = Console()

    mode = None
    if args.verbose:
        mode = OutputMode.VERBOSE
    elif args.quiet:
        mode = OutputMode.QUIET

    try:
        config = ScoutConfig.from_env(output_mode=mode)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        return EXIT_GENERAL_ERROR

    configure_logging(config.output_mode)
    output = OutputManager(config.output_mode)
    inspector = RemoteServerInspector(config)

    try:
        return asyncio.run(run(args, inspector, output, console))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return EXIT_GENERAL_ERROR
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        console.print(f"[red]Error: {type(e).__name__}: {e}[/red]")
        return EXIT_GENERAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
