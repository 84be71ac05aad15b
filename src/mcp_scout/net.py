"""Network primitives used by the verifier and the auth discovery engine.

DNS, TLS and HTTP access are passed in explicitly so probes can be run
against fakes. The system implementations live here.
"""

import asyncio
import hashlib
import json
import socket
import ssl
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional, Protocol

import httpx

from .models import TLSCertificateInfo


class ResolvedAddress(NamedTuple):
    address: str
    family: int  # 4 or 6


class DnsResolver(Protocol):
    async def resolve(self, host: str) -> ResolvedAddress:
        """Resolve a host name. Raises OSError when it cannot."""
        ...


class TlsInspector(Protocol):
    async def inspect(self, host: str, port: int = 443) -> TLSCertificateInfo:
        """Handshake with the host and describe its certificate.

        Raises OSError (ssl.SSLError included) or asyncio.TimeoutError.
        """
        ...


class SystemDnsResolver:
    """Resolve through the event loop's getaddrinfo."""

    async def resolve(self, host: str) -> ResolvedAddress:
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        if not infos:
            raise socket.gaierror(f"No addresses found for {host}")
        family, _, _, _, sockaddr = infos[0]
        return ResolvedAddress(sockaddr[0], 6 if family == socket.AF_INET6 else 4)


class SocketTlsInspector:
    """Open a verified TLS connection and read the peer certificate."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    async def inspect(self, host: str, port: int = 443) -> TLSCertificateInfo:
        context = ssl.create_default_context()
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, ssl=context, server_hostname=host),
            timeout=self.timeout,
        )
        try:
            cert = writer.get_extra_info("peercert")
            ssl_object = writer.get_extra_info("ssl_object")
            der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        if not cert:
            raise ssl.SSLError("No certificate received")
        return certificate_info(cert, der)


def _name_attributes(name: Any) -> Dict[str, str]:
    """Flatten the ((('commonName', 'x'),), ...) structure from getpeercert()."""
    attributes = {}
    for rdn in name or ():
        for key, value in rdn:
            attributes[key] = value
    return attributes


def _cert_time(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        seconds = ssl.cert_time_to_seconds(value)
    except ValueError:
        return value
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


def certificate_info(cert: Dict[str, Any], der: Optional[bytes] = None) -> TLSCertificateInfo:
    """Convert a getpeercert() dictionary into TLSCertificateInfo."""
    issuer = _name_attributes(cert.get("issuer"))
    subject = _name_attributes(cert.get("subject"))
    fingerprint = None
    if der:
        digest = hashlib.sha256(der).hexdigest().upper()
        fingerprint = ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))

    return TLSCertificateInfo(
        issuer=issuer.get("organizationName") or issuer.get("commonName") or "Unknown",
        subject=subject.get("commonName"),
        valid_from=_cert_time(cert.get("notBefore")),
        valid_to=_cert_time(cert.get("notAfter")),
        fingerprint=fingerprint,
    )


def build_http_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    user_agent: str = "mcp-scout",
    follow_redirects: bool = False,
) -> httpx.AsyncClient:
    """HTTP client shared by one probe sequence.

    The connection verifier reports redirects as they are; auth discovery
    follows them.
    """
    return httpx.AsyncClient(
        transport=transport,
        headers={"User-Agent": user_agent},
        follow_redirects=follow_redirects,
    )


def parse_jsonrpc_message(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Extract a JSON-RPC message from a JSON or server-sent-events body."""
    content_type = response.headers.get("content-type", "")
    if "text/event-stream" in content_type:
        for line in response.text.splitlines():
            if not line.startswith("data:"):
                continue
            try:
                data = json.loads(line[len("data:"):].strip())
            except ValueError:
                continue
            if isinstance(data, dict) and data.get("jsonrpc") == "2.0":
                return data
        return None

    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("jsonrpc") == "2.0":
        return data
    return None
