"""
Connection Verifier

Runs DNS resolution, TLS inspection, HTTP reachability and MCP protocol
detection against one endpoint, strictly in that order, and reports every
stage. ``test_connection`` never raises for network problems.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Union

import httpx

from . import __version__
from .config import ScoutConfig
from .models import (
    ConnectionErrorCode,
    ConnectionTestResult,
    ConnectionTestStep,
    DiscoveredServerInfo,
    StepName,
    StepStatus,
    TLSCertificateInfo,
    TransportKind,
)
from .net import (
    DnsResolver,
    SocketTlsInspector,
    SystemDnsResolver,
    TlsInspector,
    build_http_client,
    parse_jsonrpc_message,
)

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2025-06-18"

SUGGESTIONS = {
    ConnectionErrorCode.NETWORK_ERROR: [
        "The server may be temporarily unavailable",
        "Check if a VPN or firewall is blocking the connection",
        "Try again in a few minutes",
    ],
    ConnectionErrorCode.TIMEOUT: [
        "The server may be slow or unresponsive",
        "Try increasing the timeout",
        "Check your network connection",
    ],
    ConnectionErrorCode.RATE_LIMITED: [
        "Wait a few minutes before trying again",
    ],
    ConnectionErrorCode.SERVER_ERROR: [
        "The server may be experiencing issues",
        "Check the server documentation",
    ],
}

DNS_SUGGESTIONS = [
    "Check that the server URL is correct",
    "Verify your internet connection",
    "The server may be temporarily unavailable",
]


@dataclass
class _Reachability:
    success: bool
    details: str
    status: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[ConnectionErrorCode] = None
    suggestions: List[str] = field(default_factory=list)


@dataclass
class _Detection:
    detected: bool
    details: str
    server_info: Optional[DiscoveredServerInfo] = None


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _is_bearer_challenge(response: httpx.Response) -> bool:
    return "bearer" in response.headers.get("www-authenticate", "").lower()


def _optional_str(value) -> Optional[str]:
    return value if isinstance(value, str) else None


def _initialize_server_info(result: dict) -> DiscoveredServerInfo:
    """Server details from an initialize result; fields of the wrong type are dropped."""
    server = result.get("serverInfo")
    if not isinstance(server, dict):
        server = {}
    capabilities = result.get("capabilities")
    if isinstance(capabilities, dict):
        names = list(capabilities)
    elif isinstance(capabilities, list):
        names = [c for c in capabilities if isinstance(c, str)]
    else:
        names = []
    return DiscoveredServerInfo(
        protocol_version=_optional_str(result.get("protocolVersion")),
        server_name=_optional_str(server.get("name")),
        server_version=_optional_str(server.get("version")),
        capabilities=sorted(names),
        requires_auth=False,
    )


class ConnectionVerifier:
    """Step-by-step connectivity check for a remote MCP endpoint.

    Args:
        config: Timeouts and User-Agent
        resolver: DNS resolver (system resolver by default)
        tls_inspector: TLS certificate probe (socket based by default)
        transport: Optional httpx transport, used by tests to fake HTTP
    """

    def __init__(
        self,
        config: Optional[ScoutConfig] = None,
        resolver: Optional[DnsResolver] = None,
        tls_inspector: Optional[TlsInspector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ScoutConfig()
        self.resolver = resolver or SystemDnsResolver()
        self.tls_inspector = tls_inspector or SocketTlsInspector(self.config.tls_timeout)
        self.transport = transport

    async def test_connection(
        self,
        url: str,
        transport: Union[TransportKind, str] = TransportKind.HTTP,
        timeout: Optional[float] = None,
    ) -> ConnectionTestResult:
        """Verify one endpoint. Timeout is per network call, in seconds."""
        if timeout is None:
            timeout = self.config.connection_timeout
        logger.info("Testing connection to %s (%s, timeout=%ss)", url, transport, timeout)
        started = time.perf_counter()
        steps: List[ConnectionTestStep] = []

        try:
            return await self._run(url, TransportKind(transport), timeout, steps, started)
        except Exception as e:
            logger.error("Connection test for %s failed unexpectedly: %s", url, e)
            return ConnectionTestResult(
                success=False,
                error_code=ConnectionErrorCode.NETWORK_ERROR,
                error=str(e) or type(e).__name__,
                steps=steps,
                latency_ms=_elapsed_ms(started),
                suggestions=["An unexpected error occurred", "Try again in a few minutes"],
            )

    async def _run(
        self,
        url: str,
        transport: TransportKind,
        timeout: float,
        steps: List[ConnectionTestStep],
        started: float,
    ) -> ConnectionTestResult:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL:
            parsed = None
        if parsed is None or parsed.scheme not in ("http", "https") or not parsed.host:
            return ConnectionTestResult(
                success=False,
                error_code=ConnectionErrorCode.NETWORK_ERROR,
                error="Invalid URL format",
                latency_ms=_elapsed_ms(started),
                suggestions=["Check that the server URL is correctly formatted"],
            )

        # Stage 1: DNS
        host = parsed.host
        try:
            resolved = await asyncio.wait_for(self.resolver.resolve(host), timeout=timeout)
        except (OSError, asyncio.TimeoutError, ValueError) as e:
            message = str(e) or f"No answer within {timeout}s"
            logger.info("DNS resolution failed for %s: %s", host, message)
            return ConnectionTestResult(
                success=False,
                error_code=ConnectionErrorCode.NETWORK_ERROR,
                error=f"DNS resolution failed: {message}",
                steps=[ConnectionTestStep(name=StepName.DNS, status=StepStatus.ERROR, details=message)],
                latency_ms=_elapsed_ms(started),
                suggestions=list(DNS_SUGGESTIONS),
            )
        steps.append(ConnectionTestStep(
            name=StepName.DNS,
            status=StepStatus.SUCCESS,
            details=f"Resolved to {resolved.address} (IPv{resolved.family})",
        ))

        # Stage 2: TLS, never fatal
        certificate = await self._check_tls(parsed, steps)

        async with build_http_client(self.transport, self.config.user_agent) as client:
            # Stage 3: HTTP reachability
            reach = await self._check_reachability(client, url, timeout)
            steps.append(ConnectionTestStep(
                name=StepName.HTTP,
                status=StepStatus.SUCCESS if reach.success else StepStatus.ERROR,
                details=reach.details,
            ))
            if not reach.success:
                return ConnectionTestResult(
                    success=False,
                    http_status=reach.status,
                    steps=steps,
                    tls_certificate=certificate,
                    error=reach.error,
                    error_code=reach.error_code,
                    suggestions=reach.suggestions,
                    latency_ms=_elapsed_ms(started),
                )

            # Stage 4: protocol detection, never fatal
            detection = await self._detect_protocol(client, url, transport, timeout)
            steps.append(ConnectionTestStep(
                name=StepName.PROTOCOL_DETECT,
                status=StepStatus.SUCCESS if detection.detected else StepStatus.WARNING,
                details=detection.details,
            ))

        server_info = detection.server_info
        if reach.error_code == ConnectionErrorCode.AUTH_REQUIRED:
            server_info = server_info or DiscoveredServerInfo()
            server_info.requires_auth = True

        latency_ms = _elapsed_ms(started)
        logger.info("Connection test for %s succeeded in %dms", url, latency_ms)
        return ConnectionTestResult(
            success=True,
            latency_ms=latency_ms,
            http_status=reach.status,
            steps=steps,
            server_info=server_info,
            tls_certificate=certificate,
            error_code=reach.error_code,
        )

    async def _check_tls(
        self, parsed: httpx.URL, steps: List[ConnectionTestStep]
    ) -> Optional[TLSCertificateInfo]:
        if parsed.scheme != "https":
            steps.append(ConnectionTestStep(
                name=StepName.TLS,
                status=StepStatus.WARNING,
                details="Plain HTTP endpoint, traffic is not encrypted",
            ))
            return None

        try:
            certificate = await self.tls_inspector.inspect(parsed.host, parsed.port or 443)
        except asyncio.TimeoutError:
            details = "Certificate check timeout"
        except (OSError, ValueError) as e:
            details = str(e) or "Certificate verification issue"
        else:
            steps.append(ConnectionTestStep(
                name=StepName.TLS,
                status=StepStatus.SUCCESS,
                details=f"Valid certificate (expires: {certificate.valid_to}), Issuer: {certificate.issuer}",
            ))
            return certificate

        # Self-signed internal deployments are expected to land here
        logger.info("TLS check for %s raised a warning: %s", parsed.host, details)
        steps.append(ConnectionTestStep(name=StepName.TLS, status=StepStatus.WARNING, details=details))
        return None

    async def _check_reachability(
        self, client: httpx.AsyncClient, url: str, timeout: float
    ) -> _Reachability:
        started = time.perf_counter()
        try:
            response = await client.request(
                "OPTIONS", url, headers={"Accept": "application/json"}, timeout=timeout
            )
        except httpx.TimeoutException:
            return _Reachability(
                success=False,
                details="Request timeout",
                error=f"Server did not respond within {timeout}s",
                error_code=ConnectionErrorCode.TIMEOUT,
                suggestions=list(SUGGESTIONS[ConnectionErrorCode.TIMEOUT]),
            )
        except httpx.RequestError as e:
            message = str(e) or type(e).__name__
            return _Reachability(
                success=False,
                details=message,
                error=message,
                error_code=ConnectionErrorCode.NETWORK_ERROR,
                suggestions=list(SUGGESTIONS[ConnectionErrorCode.NETWORK_ERROR]),
            )

        latency = _elapsed_ms(started)
        status = response.status_code
        if status in (401, 403):
            return _Reachability(
                success=True,
                status=status,
                details=f"Response: {status} (expected - requires authentication), Latency: {latency}ms",
                error_code=ConnectionErrorCode.AUTH_REQUIRED,
            )
        if 200 <= status < 400:
            return _Reachability(
                success=True,
                status=status,
                details=f"Response: {status} OK, Latency: {latency}ms",
            )
        if status == 429:
            return _Reachability(
                success=False,
                status=status,
                details=f"Rate limited ({status})",
                error="Server is rate limiting requests",
                error_code=ConnectionErrorCode.RATE_LIMITED,
                suggestions=list(SUGGESTIONS[ConnectionErrorCode.RATE_LIMITED]),
            )
        return _Reachability(
            success=False,
            status=status,
            details=f"Server returned {status}: {response.reason_phrase}",
            error=f"Server returned {status}",
            error_code=ConnectionErrorCode.SERVER_ERROR,
            suggestions=list(SUGGESTIONS[ConnectionErrorCode.SERVER_ERROR]),
        )

    async def _detect_protocol(
        self,
        client: httpx.AsyncClient,
        url: str,
        transport: TransportKind,
        timeout: float,
    ) -> _Detection:
        try:
            if transport == TransportKind.EVENT_STREAM:
                return await self._detect_event_stream(client, url, timeout)
            return await self._detect_streamable_http(client, url, timeout)
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.debug("Protocol detection for %s failed: %s", url, e)
            return _Detection(
                detected=False,
                details=f"Could not confirm MCP protocol ({type(e).__name__}); server may still work",
            )

    async def _detect_streamable_http(
        self, client: httpx.AsyncClient, url: str, timeout: float
    ) -> _Detection:
        response = await client.post(
            url,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "method": "initialize",
                "params": {
                    "protocolVersion": MCP_PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "mcp-scout", "version": __version__},
                },
            },
            headers={"Accept": "application/json, text/event-stream"},
            timeout=timeout,
        )

        if response.status_code in (401, 403) and _is_bearer_challenge(response):
            return _Detection(
                detected=True,
                details="MCP endpoint protected by bearer authentication, Transport: HTTP",
                server_info=DiscoveredServerInfo(requires_auth=True),
            )

        message = parse_jsonrpc_message(response) if response.is_success else None
        if message is None:
            return _Detection(
                detected=False,
                details=f"Could not confirm MCP protocol (initialize returned {response.status_code}); server may still work",
            )
        if "result" not in message:
            return _Detection(
                detected=True,
                details="JSON-RPC endpoint rejected initialize, Transport: HTTP",
            )

        result = message["result"]
        if not isinstance(result, dict):
            return _Detection(
                detected=False,
                details=f"Could not confirm MCP protocol (initialize result is a {type(result).__name__}); server may still work",
            )
        info = _initialize_server_info(result)
        info.tool_count = await self._count_tools(client, url, response, info, timeout)
        return _Detection(
            detected=True,
            details=f"MCP detected (protocol {info.protocol_version or 'unknown'}), Transport: HTTP",
            server_info=info,
        )

    async def _count_tools(
        self,
        client: httpx.AsyncClient,
        url: str,
        init_response: httpx.Response,
        info: DiscoveredServerInfo,
        timeout: float,
    ) -> Optional[int]:
        headers = {"Accept": "application/json, text/event-stream"}
        session_id = init_response.headers.get("mcp-session-id")
        if session_id:
            headers["Mcp-Session-Id"] = session_id
        if info.protocol_version:
            headers["MCP-Protocol-Version"] = info.protocol_version

        try:
            await client.post(
                url,
                json={"jsonrpc": "2.0", "method": "notifications/initialized"},
                headers=headers,
                timeout=timeout,
            )
            response = await client.post(
                url,
                json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
                headers=headers,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            logger.debug("tools/list against %s failed: %s", url, e)
            return None

        message = parse_jsonrpc_message(response) if response.is_success else None
        result = message.get("result") if message else None
        tools = result.get("tools") if isinstance(result, dict) else None
        return len(tools) if isinstance(tools, list) else None

    async def _detect_event_stream(
        self, client: httpx.AsyncClient, url: str, timeout: float
    ) -> _Detection:
        async with client.stream(
            "GET", url, headers={"Accept": "text/event-stream"}, timeout=timeout
        ) as response:
            content_type = response.headers.get("content-type", "")
            if response.is_success and "text/event-stream" in content_type:
                return _Detection(detected=True, details="MCP event stream detected, Transport: SSE")
            if response.status_code in (401, 403) and _is_bearer_challenge(response):
                return _Detection(
                    detected=True,
                    details="MCP endpoint protected by bearer authentication, Transport: SSE",
                    server_info=DiscoveredServerInfo(requires_auth=True),
                )
            return _Detection(
                detected=False,
                details=(
                    f"Could not confirm MCP protocol (GET returned {response.status_code} "
                    f"{content_type or 'without content type'}); server may still work"
                ),
            )
