"""Remote MCP server discovery, verification and security assessment."""

from typing import List

__version__: str = "0.1.0"

from .auth_discovery import AuthDiscoveryEngine
from .batch import BatchVerifier
from .config import OutputMode, ScoutConfig
from .directory import ServerDirectory
from .inspector import RemoteServerInspector
from .models import (
    AuthDiscoveryResult,
    ConnectionTestResult,
    RemoteServerDescriptor,
    SecurityContext,
    ServerFilters,
)
from .security import SecurityAssessor
from .verifier import ConnectionVerifier

__all__: List[str] = [
    "RemoteServerInspector",
    "ScoutConfig",
    "OutputMode",
    "ServerDirectory",
    "ConnectionVerifier",
    "BatchVerifier",
    "AuthDiscoveryEngine",
    "SecurityAssessor",
    "RemoteServerDescriptor",
    "ConnectionTestResult",
    "AuthDiscoveryResult",
    "SecurityContext",
    "ServerFilters",
]
