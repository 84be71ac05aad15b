"""Tests for network helpers and the disk cache layer."""

import json
from datetime import timezone

import httpx

from mcp_scout.cache import FileCacheLayer, MemoryCacheLayer
from mcp_scout.models import DirectoryCacheEntry
from mcp_scout.net import certificate_info, parse_jsonrpc_message

from .fakes import NOW, make_server

PEER_CERT = {
    "subject": ((("commonName", "mcp.example.com"),),),
    "issuer": (
        (("countryName", "US"),),
        (("organizationName", "Let's Encrypt"),),
        (("commonName", "R11"),),
    ),
    "notBefore": "Oct  1 00:00:00 2025 GMT",
    "notAfter": "Dec 30 00:00:00 2025 GMT",
}


class TestCertificateInfo:
    """Test peer certificate conversion."""

    def test_organization_preferred(self):
        info = certificate_info(PEER_CERT, der=b"\x01\x02")
        assert info.issuer == "Let's Encrypt"
        assert info.subject == "mcp.example.com"
        assert info.valid_to == "2025-12-30T00:00:00+00:00"
        pairs = info.fingerprint.split(":")
        assert len(pairs) == 32
        assert all(len(p) == 2 and p == p.upper() for p in pairs)

    def test_common_name_fallback(self):
        cert = dict(PEER_CERT, issuer=((("commonName", "Internal CA"),),))
        assert certificate_info(cert).issuer == "Internal CA"

    def test_empty_certificate(self):
        info = certificate_info({})
        assert info.issuer == "Unknown"
        assert info.valid_to is None
        assert info.fingerprint is None


class TestJsonRpcParsing:
    """Test JSON-RPC extraction from plain and event-stream bodies."""

    def test_json_body(self):
        response = httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {}})
        assert parse_jsonrpc_message(response)["id"] == 1

    def test_event_stream_body(self):
        body = 'event: message\ndata: {"jsonrpc": "2.0", "id": 1, "result": {"tools": []}}\n\n'
        response = httpx.Response(200, text=body, headers={"Content-Type": "text/event-stream"})
        assert parse_jsonrpc_message(response)["result"] == {"tools": []}

    def test_not_jsonrpc(self):
        assert parse_jsonrpc_message(httpx.Response(200, json={"hello": "world"})) is None
        assert parse_jsonrpc_message(httpx.Response(200, text="<html>")) is None


class TestCacheLayers:
    """Test memory and disk snapshot storage."""

    def test_memory_layer(self):
        layer = MemoryCacheLayer()
        assert layer.load() is None
        entry = DirectoryCacheEntry(servers=[make_server()], timestamp=NOW)
        layer.store(entry)
        assert layer.load() is entry
        layer.invalidate()
        assert layer.load() is None

    def test_file_layer_round_trip(self, tmp_path):
        layer = FileCacheLayer(tmp_path / "nested" / "servers.json")
        layer.store(DirectoryCacheEntry(servers=[make_server()], timestamp=NOW))

        loaded = layer.load()
        assert loaded.servers[0].id == "example"
        assert loaded.timestamp == NOW
        assert list((tmp_path / "nested").iterdir()) == [tmp_path / "nested" / "servers.json"]

    def test_file_layer_format(self, tmp_path):
        path = tmp_path / "servers.json"
        FileCacheLayer(path).store(DirectoryCacheEntry(servers=[], timestamp=NOW))
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"servers", "timestamp"}

    def test_naive_timestamp_on_disk(self, tmp_path):
        path = tmp_path / "servers.json"
        path.write_text('{"servers": [], "timestamp": "2025-12-01T12:00:00"}', encoding="utf-8")
        assert FileCacheLayer(path).load().timestamp.tzinfo == timezone.utc

    def test_invalid_snapshot_ignored(self, tmp_path):
        path = tmp_path / "servers.json"
        path.write_text('{"servers": [{"id": 1}], "timestamp": "yesterday"}', encoding="utf-8")
        assert FileCacheLayer(path).load() is None

    def test_invalidate_missing_file(self, tmp_path):
        FileCacheLayer(tmp_path / "absent.json").invalidate()
