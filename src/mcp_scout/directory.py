"""
Remote Server Directory

Serves the catalog of remote MCP servers from a two-tier cache (in-process,
then on disk) and rebuilds it from a catalog source when both are stale.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from .cache import CacheLayer, FileCacheLayer, MemoryCacheLayer
from .catalog import CatalogSource, CuratedCatalogSource
from .config import ScoutConfig
from .models import (
    DirectoryCacheEntry,
    DirectoryCacheStatus,
    DirectoryFetchResult,
    DirectoryOrigin,
    RemoteServerDescriptor,
    ServerFilters,
    TransportKind,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ALL = "all"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _wanted(value) -> Optional[str]:
    """Normalise a filter value; None means no constraint."""
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    value = str(value)
    if not value or value == ALL:
        return None
    return value


def matches_filters(server: RemoteServerDescriptor, filters: ServerFilters) -> bool:
    """Return True if the server satisfies every filter that is set."""
    query = (filters.search or "").strip().lower()
    if query:
        haystack = [server.name, server.description, server.provider, *server.tags]
        if not any(query in text.lower() for text in haystack):
            return False

    category = _wanted(filters.category)
    if category and server.category.value != category:
        return False

    auth_type = _wanted(filters.auth_type)
    if auth_type and server.auth_type.value != auth_type:
        return False

    transport = _wanted(filters.transport)
    if transport:
        try:
            if server.transport != TransportKind(transport):
                return False
        except ValueError:
            return False

    if filters.verified_only and not server.verified:
        return False

    return True


class ServerDirectory:
    """Catalog of remote MCP servers with time-boxed caching."""

    def __init__(
        self,
        config: Optional[ScoutConfig] = None,
        source: Optional[CatalogSource] = None,
        memory_cache: Optional[CacheLayer] = None,
        durable_cache: Optional[CacheLayer] = None,
        clock: Clock = utc_now,
    ):
        self.config = config or ScoutConfig()
        self.source = source or CuratedCatalogSource()
        self.memory_cache = memory_cache or MemoryCacheLayer()
        self.durable_cache = durable_cache or FileCacheLayer(self.config.cache_file)
        self.clock = clock

    async def fetch(self, force_refresh: bool = False) -> DirectoryFetchResult:
        """Return the catalog, from cache when fresh, otherwise rebuilt."""
        logger.debug("Fetching server directory, force_refresh=%s", force_refresh)
        now = self.clock()
        ttl = self.config.cache_ttl

        if not force_refresh:
            entry = self.memory_cache.load()
            if entry is not None and entry.is_fresh(now, ttl):
                logger.debug("Using in-memory directory cache")
                return self._from_cache(entry, stale=False)

            entry = self.durable_cache.load()
            if entry is not None and entry.is_fresh(now, ttl):
                logger.debug("Using disk directory cache")
                self.memory_cache.store(entry)
                return self._from_cache(entry, stale=False)

        logger.info("Rebuilding server directory")
        try:
            servers = await self.source.load()
        except Exception as e:
            logger.warning("Server directory rebuild failed: %s", e)
            return self._fallback(now, f"Directory rebuild failed: {e}")

        entry = DirectoryCacheEntry(servers=list(servers), timestamp=now)
        self.memory_cache.store(entry)
        self.durable_cache.store(entry)
        return DirectoryFetchResult(
            success=True,
            servers=entry.servers,
            origin=DirectoryOrigin.LIVE,
            last_updated=entry.timestamp,
        )

    async def search(self, filters: ServerFilters) -> List[RemoteServerDescriptor]:
        """Filter the catalog; filters compose with AND."""
        result = await self.fetch()
        found = [s for s in result.servers if matches_filters(s, filters)]
        logger.debug("Found %d servers matching filters", len(found))
        return found

    async def get_details(self, server_id: str) -> Optional[RemoteServerDescriptor]:
        result = await self.fetch()
        for server in result.servers:
            if server.id == server_id:
                return server
        return None

    async def categories(self) -> List[str]:
        result = await self.fetch()
        return sorted({server.category.value for server in result.servers})

    def cache_status(self) -> DirectoryCacheStatus:
        """Describe the durable cache (falling back to the in-process copy)."""
        entry = self.durable_cache.load() or self.memory_cache.load()
        if entry is None:
            return DirectoryCacheStatus(is_cached=False, is_stale=True, server_count=0)

        return DirectoryCacheStatus(
            is_cached=True,
            is_stale=not entry.is_fresh(self.clock(), self.config.cache_ttl),
            last_updated=entry.timestamp,
            server_count=len(entry.servers),
        )

    def invalidate(self) -> None:
        self.memory_cache.invalidate()
        self.durable_cache.invalidate()

    def _from_cache(self, entry: DirectoryCacheEntry, stale: bool,
                    error: Optional[str] = None) -> DirectoryFetchResult:
        return DirectoryFetchResult(
            success=True,
            servers=entry.servers,
            origin=DirectoryOrigin.CACHE,
            last_updated=entry.timestamp,
            is_stale=stale,
            error=error,
        )

    def _fallback(self, now: datetime, error: str) -> DirectoryFetchResult:
        """Serve whatever snapshot survives, or report an explicit failure."""
        candidates = [e for e in (self.memory_cache.load(), self.durable_cache.load()) if e]
        if candidates:
            entry = max(candidates, key=lambda e: e.timestamp)
            stale = not entry.is_fresh(now, self.config.cache_ttl)
            logger.info("Serving %s cached directory after failed rebuild",
                        "stale" if stale else "fresh")
            return self._from_cache(entry, stale=stale, error=error)

        return DirectoryFetchResult(
            success=False,
            servers=[],
            origin=DirectoryOrigin.LIVE,
            error=error,
        )
