"""Tests for the remote server directory and its cache."""

from datetime import timedelta

import pytest

from mcp_scout.cache import FileCacheLayer, MemoryCacheLayer
from mcp_scout.catalog import CuratedCatalogSource, create_curated_servers
from mcp_scout.directory import ServerDirectory, matches_filters
from mcp_scout.exceptions import CatalogSourceError
from mcp_scout.models import (
    AuthType,
    DirectoryCacheEntry,
    DirectoryOrigin,
    ServerCategory,
    ServerFilters,
    TransportKind,
)

from .fakes import NOW, StaticSource, make_server


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def source():
    return StaticSource(create_curated_servers())


@pytest.fixture
def directory(config, source, clock):
    return ServerDirectory(config, source=source, clock=clock)


def write_snapshot(config, age_hours, servers=None):
    entry = DirectoryCacheEntry(
        servers=servers if servers is not None else [make_server(id="cached")],
        timestamp=NOW - timedelta(hours=age_hours),
    )
    FileCacheLayer(config.cache_file).store(entry)
    return entry


class TestCatalog:
    """Test the curated catalog."""

    def test_ids_are_unique(self):
        ids = [server.id for server in create_curated_servers()]
        assert len(ids) == len(set(ids)) == 15

    def test_every_entry_is_remote(self):
        for server in create_curated_servers():
            assert server.endpoint.startswith("https://")
            assert server.transport in (TransportKind.HTTP, TransportKind.EVENT_STREAM)

    @pytest.mark.asyncio
    async def test_curated_source_loads_catalog(self):
        servers = await CuratedCatalogSource().load()
        assert {"github", "notion", "fetch"} <= {s.id for s in servers}

    @pytest.mark.asyncio
    async def test_curated_source_wraps_factory_errors(self):
        def broken():
            raise ValueError("bad entry")

        with pytest.raises(CatalogSourceError):
            await CuratedCatalogSource(factory=broken).load()


class TestFetch:
    """Test cache lookup order and rebuilds."""

    @pytest.mark.asyncio
    async def test_first_fetch_rebuilds_then_caches(self, directory, source):
        first = await directory.fetch()
        second = await directory.fetch()

        assert first.origin == DirectoryOrigin.LIVE
        assert second.origin == DirectoryOrigin.CACHE
        assert first.servers == second.servers
        assert source.loads == 1

    @pytest.mark.asyncio
    async def test_rebuild_writes_durable_cache(self, directory, config):
        await directory.fetch()
        entry = FileCacheLayer(config.cache_file).load()
        assert entry is not None
        assert len(entry.servers) == 15
        assert entry.timestamp == NOW

    @pytest.mark.asyncio
    async def test_durable_cache_shared_between_instances(self, config, source, clock):
        await ServerDirectory(config, source=source, clock=clock).fetch()
        other = ServerDirectory(config, source=source, clock=clock)

        result = await other.fetch()
        assert result.origin == DirectoryOrigin.CACHE
        assert source.loads == 1

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, directory, source):
        await directory.fetch()
        result = await directory.fetch(force_refresh=True)
        assert result.origin == DirectoryOrigin.LIVE
        assert source.loads == 2

    @pytest.mark.asyncio
    async def test_fresh_disk_snapshot_served(self, directory, config, source):
        write_snapshot(config, age_hours=1)
        result = await directory.fetch()

        assert result.origin == DirectoryOrigin.CACHE
        assert [s.id for s in result.servers] == ["cached"]
        assert not result.is_stale
        assert source.loads == 0

    @pytest.mark.asyncio
    async def test_expired_disk_snapshot_rebuilt(self, directory, config, source):
        write_snapshot(config, age_hours=25)
        result = await directory.fetch()

        assert result.origin == DirectoryOrigin.LIVE
        assert source.loads == 1
        assert len(result.servers) == 15

    @pytest.mark.asyncio
    async def test_memory_cache_expires(self, directory, source, clock):
        await directory.fetch()
        clock.now = NOW + timedelta(hours=24, seconds=1)
        result = await directory.fetch()
        assert result.origin == DirectoryOrigin.LIVE
        assert source.loads == 2

    @pytest.mark.asyncio
    async def test_corrupt_cache_treated_as_absent(self, directory, config, source):
        config.cache_file.parent.mkdir(parents=True)
        config.cache_file.write_text("{not json", encoding="utf-8")

        result = await directory.fetch()
        assert result.success
        assert result.origin == DirectoryOrigin.LIVE
        assert source.loads == 1

    @pytest.mark.asyncio
    async def test_stale_cache_served_when_rebuild_fails(self, config, clock):
        write_snapshot(config, age_hours=30)
        failing = StaticSource([], error=CatalogSourceError("registry down"))
        directory = ServerDirectory(config, source=failing, clock=clock)

        result = await directory.fetch()
        assert result.success
        assert result.origin == DirectoryOrigin.CACHE
        assert result.is_stale
        assert [s.id for s in result.servers] == ["cached"]
        assert "registry down" in result.error

    @pytest.mark.asyncio
    async def test_rebuild_failure_without_cache(self, config, clock):
        failing = StaticSource([], error=CatalogSourceError("registry down"))
        directory = ServerDirectory(config, source=failing, clock=clock)

        result = await directory.fetch()
        assert not result.success
        assert result.servers == []
        assert "registry down" in result.error

    @pytest.mark.asyncio
    async def test_unwritable_cache_does_not_fail_fetch(self, tmp_path, source, clock):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        directory = ServerDirectory(
            source=source,
            memory_cache=MemoryCacheLayer(),
            durable_cache=FileCacheLayer(blocker / "servers.json"),
            clock=clock,
        )

        result = await directory.fetch()
        assert result.success
        assert len(result.servers) == 15


class TestCacheStatus:
    """Test cache status reporting."""

    def test_not_cached(self, directory):
        status = directory.cache_status()
        assert not status.is_cached
        assert status.is_stale
        assert status.server_count == 0

    def test_fresh_snapshot(self, directory, config):
        write_snapshot(config, age_hours=1)
        status = directory.cache_status()
        assert status.is_cached
        assert not status.is_stale
        assert status.server_count == 1
        assert status.last_updated == NOW - timedelta(hours=1)

    def test_stale_snapshot(self, directory, config):
        write_snapshot(config, age_hours=25)
        status = directory.cache_status()
        assert status.is_cached
        assert status.is_stale

    @pytest.mark.asyncio
    async def test_invalidate_clears_both_layers(self, directory, config):
        await directory.fetch()
        directory.invalidate()
        assert not config.cache_file.exists()
        assert not directory.cache_status().is_cached


class TestSearch:
    """Test directory filters."""

    @pytest.mark.asyncio
    async def test_text_search_covers_tags_and_description(self, directory):
        found = await directory.search(ServerFilters(search="PostgreSQL"))
        assert {s.id for s in found} == {"supabase", "neon"}

    @pytest.mark.asyncio
    async def test_category_filter(self, directory):
        found = await directory.search(ServerFilters(category="databases"))
        assert {s.id for s in found} == {"supabase", "neon"}

    @pytest.mark.asyncio
    async def test_filters_compose_with_and(self, directory):
        found = await directory.search(ServerFilters(auth_type="open", transport="event-stream"))
        assert [s.id for s in found] == ["semgrep"]

    @pytest.mark.asyncio
    async def test_legacy_transport_spelling(self, directory):
        sse = await directory.search(ServerFilters(transport="sse"))
        stream = await directory.search(ServerFilters(transport="event-stream"))
        assert sse == stream
        assert {s.id for s in sse} == {"linear", "neon", "sentry", "paypal", "semgrep"}

    @pytest.mark.asyncio
    async def test_all_means_no_constraint(self, directory):
        everything = await directory.search(ServerFilters())
        also_everything = await directory.search(
            ServerFilters(category="all", auth_type="all", transport="all", search="")
        )
        assert len(everything) == len(also_everything) == 15

    @pytest.mark.asyncio
    async def test_no_match(self, directory):
        assert await directory.search(ServerFilters(search="mainframe")) == []

    def test_verified_only(self):
        unverified = make_server(verified=False)
        assert matches_filters(unverified, ServerFilters())
        assert not matches_filters(unverified, ServerFilters(verified_only=True))

    def test_enum_filter_values(self):
        server = make_server(category=ServerCategory.PAYMENTS, auth_type=AuthType.API_KEY)
        assert matches_filters(server, ServerFilters(category="payments", auth_type="api-key"))
        assert not matches_filters(server, ServerFilters(auth_type="oauth"))

    def test_unknown_transport_matches_nothing(self):
        assert not matches_filters(make_server(), ServerFilters(transport="stdio"))


class TestLookup:
    """Test single-entry lookups."""

    @pytest.mark.asyncio
    async def test_get_details(self, directory):
        server = await directory.get_details("github")
        assert server.auth_type == AuthType.API_KEY
        assert server.auth_config.api_key_env_var == "GITHUB_PERSONAL_ACCESS_TOKEN"

    @pytest.mark.asyncio
    async def test_get_details_unknown(self, directory):
        assert await directory.get_details("nope") is None

    @pytest.mark.asyncio
    async def test_categories_sorted(self, directory):
        categories = await directory.categories()
        assert categories == sorted(categories)
        assert "databases" in categories
        assert "analytics" not in categories
