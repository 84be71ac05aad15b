"""
Authentication Discovery

Probes a remote MCP endpoint to learn how it authenticates, following the
MCP authorization rules (RFC 9728 protected resource metadata, RFC 8414
authorization server metadata).

Discovery flow:
1. GET the endpoint; 2xx means open, 401/403 means auth is required
2. Read resource_metadata from the WWW-Authenticate bearer challenge
3. Fetch protected resource metadata (challenge URL, then well-known paths)
4. Fetch authorization server metadata for the first authorization server
5. A registration_endpoint means dynamic client registration is supported

Every URL attempted and every outcome is appended to ``discovery_steps``.
"""

import logging
import re
from typing import Dict, List, Optional, Type, TypeVar
from urllib.parse import urljoin, urlsplit

import httpx
from pydantic import BaseModel, ValidationError

from .config import ScoutConfig
from .models import (
    AuthDiscoveryResult,
    AuthorizationServerMetadata,
    DiscoveredAuthType,
    ProtectedResourceMetadata,
)
from .net import build_http_client

logger = logging.getLogger(__name__)

PROTECTED_RESOURCE_PATH = "/.well-known/oauth-protected-resource"
AUTHORIZATION_SERVER_PATH = "/.well-known/oauth-authorization-server"
OPENID_CONFIGURATION_PATH = "/.well-known/openid-configuration"

RESOURCE_METADATA_PATTERN = re.compile(r'resource_metadata="([^"]+)"')
_BEARER_SCHEME = re.compile(r"\bbearer\b", re.IGNORECASE)
_AUTH_PARAM = re.compile(r'([A-Za-z0-9_\-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,"]+))')

MetadataModel = TypeVar("MetadataModel", bound=BaseModel)


def parse_bearer_challenge(header: str) -> Dict[str, str]:
    """Return the auth-params of the Bearer challenge in a WWW-Authenticate value.

    >>> parse_bearer_challenge('Bearer realm="mcp", scope="read write"')
    {'realm': 'mcp', 'scope': 'read write'}
    """
    match = _BEARER_SCHEME.search(header or "")
    if not match:
        return {}
    params = {}
    for param in _AUTH_PARAM.finditer(header, match.end()):
        quoted, token = param.group(2), param.group(3)
        value = quoted.replace('\\"', '"') if quoted is not None else token
        params[param.group(1).lower()] = value
    return params


def _dedupe(urls: List[str]) -> List[str]:
    seen = set()
    unique = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            unique.append(url)
    return unique


def protected_resource_urls(endpoint: str, resource_metadata_url: Optional[str] = None) -> List[str]:
    """Candidate protected resource metadata URLs, in the order they are tried."""
    parts = urlsplit(endpoint)
    origin = f"{parts.scheme}://{parts.netloc}"
    path = parts.path.rstrip("/")

    urls = []
    if resource_metadata_url:
        urls.append(resource_metadata_url)
    if path:
        # https://api.example.com/mcp -> /.well-known/oauth-protected-resource/mcp
        urls.append(f"{origin}{PROTECTED_RESOURCE_PATH}{path}")
    urls.append(f"{origin}{PROTECTED_RESOURCE_PATH}")
    return _dedupe(urls)


def authorization_server_urls(auth_server: str) -> List[str]:
    """Candidate authorization server metadata URLs, in the order they are tried."""
    base = auth_server.rstrip("/")
    urls = [
        f"{base}{AUTHORIZATION_SERVER_PATH}",
        f"{base}{OPENID_CONFIGURATION_PATH}",
    ]
    parts = urlsplit(base)
    if parts.path not in ("", "/"):
        origin = f"{parts.scheme}://{parts.netloc}"
        urls.append(f"{origin}{AUTHORIZATION_SERVER_PATH}")
        urls.append(f"{origin}{OPENID_CONFIGURATION_PATH}")
    return _dedupe(urls)


class AuthDiscoveryEngine:
    """Classify how a remote MCP server expects clients to authenticate."""

    def __init__(
        self,
        config: Optional[ScoutConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ScoutConfig()
        self.timeout = self.config.discovery_timeout
        self.transport = transport

    async def discover(self, endpoint: str) -> AuthDiscoveryResult:
        """Run the discovery chain. Failures are reported, never raised."""
        result = AuthDiscoveryResult(endpoint=endpoint)
        logger.info("Discovering authentication for %s", endpoint)
        try:
            async with build_http_client(
                self.transport, self.config.user_agent, follow_redirects=True
            ) as client:
                await self._discover(client, endpoint, result)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning("Auth discovery for %s failed: %s", endpoint, message)
            result.discovery_steps.append(f"Discovery failed: {message}")
            result.success = False
            result.error = message
        logger.debug("Auth discovery for %s: %s", endpoint, result.auth_type.value)
        return result

    async def _discover(
        self, client: httpx.AsyncClient, endpoint: str, result: AuthDiscoveryResult
    ) -> None:
        trace = result.discovery_steps

        # Step 1: probe; only headers are needed, so the body is never read
        trace.append(f"Probing MCP endpoint: {endpoint}")
        async with client.stream(
            "GET", endpoint, headers={"Accept": "application/json"}, timeout=self.timeout
        ) as response:
            status = response.status_code
            challenge = response.headers.get("www-authenticate")

        if 200 <= status < 300:
            trace.append(f"Server returned {status} - no authentication required")
            result.success = True
            result.requires_auth = False
            result.auth_type = DiscoveredAuthType.OPEN
            return

        if status not in (401, 403):
            trace.append(f"Unexpected status code: {status}")
            result.error = f"Unexpected response: {status}"
            return

        trace.append(f"Server returned {status} - authentication required")
        result.requires_auth = True

        # Step 2: bearer challenge
        resource_metadata_url = None
        if challenge:
            trace.append(f"WWW-Authenticate header: {challenge[:200]}")
            match = RESOURCE_METADATA_PATTERN.search(challenge)
            if match:
                try:
                    resource_metadata_url = urljoin(endpoint, match.group(1))
                except ValueError as e:
                    trace.append(f"Ignoring invalid resource_metadata URL {match.group(1)}: {e}")
                else:
                    trace.append(f"Found resource_metadata URL: {resource_metadata_url}")
            other_params = {
                k: v for k, v in parse_bearer_challenge(challenge).items()
                if k != "resource_metadata"
            }
            if other_params:
                rendered = ", ".join(f"{k}={v}" for k, v in other_params.items())
                trace.append(f"Bearer challenge parameters: {rendered}")
        else:
            trace.append("No WWW-Authenticate header in response")

        # Step 3: protected resource metadata
        protected_resource = await self._first_document(
            client,
            protected_resource_urls(endpoint, resource_metadata_url),
            ProtectedResourceMetadata,
            "protected resource metadata",
            trace,
        )
        result.success = True
        if protected_resource is None:
            trace.append("No protected resource metadata found - assuming API key auth")
            result.auth_type = DiscoveredAuthType.API_KEY
            return

        trace.append(
            "Found protected resource metadata: "
            f"{protected_resource.resource_name or protected_resource.resource or 'unnamed resource'}"
        )
        result.protected_resource = protected_resource
        result.scopes = list(protected_resource.scopes_supported)

        if not protected_resource.authorization_servers:
            trace.append("No authorization_servers in protected resource metadata")
            result.auth_type = DiscoveredAuthType.API_KEY
            return

        # Step 4: authorization server metadata
        auth_server_url = protected_resource.authorization_servers[0]
        trace.append(f"Checking authorization server: {auth_server_url}")
        try:
            candidates = authorization_server_urls(auth_server_url)
        except ValueError as e:
            trace.append(f"Invalid authorization server URL {auth_server_url}: {e}")
            candidates = []
        auth_server = await self._first_document(
            client,
            candidates,
            AuthorizationServerMetadata,
            "authorization server metadata",
            trace,
        )
        if auth_server is None:
            trace.append("Authorization server metadata not available - static OAuth client required")
            result.auth_type = DiscoveredAuthType.OAUTH_STATIC
            return

        trace.append(f"Found authorization server metadata: {auth_server.issuer or auth_server_url}")
        result.authorization_server = auth_server

        # Step 5: dynamic client registration
        if auth_server.registration_endpoint:
            trace.append(f"DCR supported: registration_endpoint found at {auth_server.registration_endpoint}")
            result.supports_dcr = True
            result.auth_type = DiscoveredAuthType.OAUTH_DCR
        else:
            trace.append("No registration_endpoint found - DCR not supported")
            result.supports_dcr = False
            result.auth_type = DiscoveredAuthType.OAUTH_STATIC

        # Step 6: scopes, protected resource first
        if not result.scopes and auth_server.scopes_supported:
            result.scopes = list(auth_server.scopes_supported)

    async def _first_document(
        self,
        client: httpx.AsyncClient,
        urls: List[str],
        model: Type[MetadataModel],
        label: str,
        trace: List[str],
    ) -> Optional[MetadataModel]:
        for url in urls:
            document = await self._fetch_document(client, url, model, label, trace)
            if document is not None:
                return document
        return None

    async def _fetch_document(
        self,
        client: httpx.AsyncClient,
        url: str,
        model: Type[MetadataModel],
        label: str,
        trace: List[str],
    ) -> Optional[MetadataModel]:
        trace.append(f"Fetching {label}: {url}")
        try:
            response = await client.get(
                url, headers={"Accept": "application/json"}, timeout=self.timeout
            )
        except httpx.TimeoutException:
            trace.append(f"{url} timed out after {self.timeout}s")
            return None
        except (httpx.RequestError, httpx.InvalidURL, ValueError) as e:
            trace.append(f"Failed to fetch {url}: {str(e) or type(e).__name__}")
            return None

        if not response.is_success:
            trace.append(f"{url} returned status {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            trace.append(f"{url} returned invalid JSON")
            return None
        if not isinstance(data, dict):
            trace.append(f"{url} returned invalid JSON (expected an object)")
            return None

        try:
            return model.model_validate(data)
        except ValidationError as e:
            trace.append(f"{url} returned an unusable document ({e.error_count()} invalid fields)")
            return None
