"""Main entry point for discovering, verifying and assessing remote MCP servers."""

from typing import List, Optional, Sequence, Union

import httpx

from .auth_discovery import AuthDiscoveryEngine
from .batch import BatchVerifier
from .catalog import CatalogSource
from .config import ScoutConfig
from .directory import Clock, ServerDirectory, utc_now
from .models import (
    AuthDiscoveryResult,
    BatchVerificationResult,
    ConnectionTestResult,
    DirectoryCacheStatus,
    DirectoryFetchResult,
    RemoteServerDescriptor,
    ServerAssessment,
    ServerFilters,
    TransportKind,
)
from .net import DnsResolver, TlsInspector
from .security import SecurityAssessor
from .verifier import ConnectionVerifier


class RemoteServerInspector:
    """Request/response surface used by the host application.

    Args:
        config (ScoutConfig): Cache location, timeouts and concurrency
        source: Catalog source for directory rebuilds
        resolver: DNS resolver for connection tests
        tls_inspector: TLS certificate probe for connection tests
        transport: httpx transport shared by connection tests and discovery
        clock: Returns the current time, used for cache freshness
    """

    def __init__(
        self,
        config: Optional[ScoutConfig] = None,
        source: Optional[CatalogSource] = None,
        resolver: Optional[DnsResolver] = None,
        tls_inspector: Optional[TlsInspector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = utc_now,
    ):
        self.config = config or ScoutConfig()
        self.directory = ServerDirectory(self.config, source=source, clock=clock)
        self.verifier = ConnectionVerifier(
            self.config, resolver=resolver, tls_inspector=tls_inspector, transport=transport
        )
        self.batch = BatchVerifier(self.directory, self.verifier)
        self.discovery = AuthDiscoveryEngine(self.config, transport=transport)
        self.assessor = SecurityAssessor()

    async def fetch_directory(self, force_refresh: bool = False) -> DirectoryFetchResult:
        return await self.directory.fetch(force_refresh)

    async def search_servers(self, filters: ServerFilters) -> List[RemoteServerDescriptor]:
        return await self.directory.search(filters)

    async def get_server_details(self, server_id: str) -> Optional[RemoteServerDescriptor]:
        return await self.directory.get_details(server_id)

    async def get_categories(self) -> List[str]:
        return await self.directory.categories()

    def get_cache_status(self) -> DirectoryCacheStatus:
        return self.directory.cache_status()

    async def test_connection(
        self,
        url: str,
        transport: Union[TransportKind, str] = TransportKind.HTTP,
        timeout: Optional[float] = None,
    ) -> ConnectionTestResult:
        return await self.verifier.test_connection(url, transport, timeout)

    async def test_all_connections(
        self,
        server_ids: Sequence[str],
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> BatchVerificationResult:
        return await self.batch.test_all(
            server_ids,
            self.config.default_concurrency if concurrency is None else concurrency,
            timeout,
        )

    async def discover_auth(self, endpoint: str) -> AuthDiscoveryResult:
        return await self.discovery.discover(endpoint)

    def assess_server(
        self,
        server: RemoteServerDescriptor,
        connection_result: Optional[ConnectionTestResult] = None,
    ) -> ServerAssessment:
        return self.assessor.assess_server(server, connection_result)
