"""Data models for remote MCP servers, probe results and security context."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TransportKind(str, Enum):
    """Remote transports (stdio never applies to a remote server)."""
    HTTP = "http"
    EVENT_STREAM = "event-stream"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TransportKind"]:
        # Registries and the assistant CLI still spell it "sse"
        if isinstance(value, str) and value.lower() == "sse":
            return cls.EVENT_STREAM
        return None


class AuthType(str, Enum):
    """Authentication scheme declared by a catalog entry."""
    OAUTH = "oauth"
    API_KEY = "api-key"
    HEADER = "header"
    OPEN = "open"


class ServerSource(str, Enum):
    """Where a catalog entry came from."""
    CURATED = "curated"
    LIVE = "live"
    COMMUNITY = "community"


class ServerCategory(str, Enum):
    DEVELOPER_TOOLS = "developer-tools"
    DATABASES = "databases"
    PRODUCTIVITY = "productivity"
    PAYMENTS = "payments"
    CONTENT = "content"
    UTILITIES = "utilities"
    SECURITY = "security"
    ANALYTICS = "analytics"


class StepName(str, Enum):
    """Ordered stages of a connection test."""
    DNS = "dns"
    TLS = "tls"
    HTTP = "http"
    PROTOCOL_DETECT = "protocol-detect"


class StepStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    PENDING = "pending"


class ConnectionErrorCode(str, Enum):
    """Closed set of connection test failure codes."""
    NETWORK_ERROR = "network-error"
    TIMEOUT = "timeout"
    TLS_ERROR = "tls-error"
    AUTH_REQUIRED = "auth-required"
    AUTH_INVALID = "auth-invalid"
    NOT_MCP_SERVER = "not-mcp-server"
    SERVER_ERROR = "server-error"
    RATE_LIMITED = "rate-limited"


class DiscoveredAuthType(str, Enum):
    """Authentication scheme learned by probing an endpoint."""
    OAUTH_DCR = "oauth-dcr"        # OAuth with dynamic client registration
    OAUTH_STATIC = "oauth-static"  # OAuth, client must be registered by hand
    API_KEY = "api-key"
    OPEN = "open"
    UNKNOWN = "unknown"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class WarningSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class DirectoryOrigin(str, Enum):
    """Whether a directory listing was rebuilt or served from cache."""
    LIVE = "live"
    CACHE = "cache"


class AuthConfig(BaseModel):
    """Authentication hints attached to a catalog entry."""

    model_config = ConfigDict(frozen=True)

    oauth_provider: Optional[str] = None
    oauth_url: Optional[str] = None
    api_key_header: Optional[str] = None
    api_key_env_var: Optional[str] = None
    api_key_url: Optional[str] = None
    api_key_instructions: Optional[str] = None
    required_scopes: List[str] = Field(default_factory=list)


class RemoteServerDescriptor(BaseModel):
    """Immutable catalog entry for a network-accessible MCP server."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    endpoint: str
    transport: TransportKind
    auth_type: AuthType
    auth_config: Optional[AuthConfig] = None
    provider: str
    verified: bool = False
    category: ServerCategory
    tags: List[str] = Field(default_factory=list)
    documentation_url: Optional[str] = None
    source: ServerSource = ServerSource.CURATED

    @property
    def required_scopes(self) -> List[str]:
        if self.auth_config is None:
            return []
        return list(self.auth_config.required_scopes)


class DirectoryCacheEntry(BaseModel):
    """A catalog snapshot and the moment it was built."""

    servers: List[RemoteServerDescriptor] = Field(default_factory=list)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def age(self, now: datetime) -> timedelta:
        return now - self.timestamp

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return self.age(now) < ttl


class ConnectionTestStep(BaseModel):
    """One stage of a connection test."""

    name: StepName
    status: StepStatus
    details: Optional[str] = None


class TLSCertificateInfo(BaseModel):
    """Peer certificate facts gathered during the TLS stage."""

    issuer: str = "Unknown"
    subject: Optional[str] = None
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None
    fingerprint: Optional[str] = None


class DiscoveredServerInfo(BaseModel):
    """What protocol detection learned about the server."""

    protocol_version: Optional[str] = None
    server_name: Optional[str] = None
    server_version: Optional[str] = None
    capabilities: List[str] = Field(default_factory=list)
    tool_count: Optional[int] = None
    requires_auth: Optional[bool] = None


class ConnectionTestResult(BaseModel):
    """Outcome of verifying one endpoint. Never persisted."""

    success: bool
    latency_ms: Optional[int] = None
    http_status: Optional[int] = None
    steps: List[ConnectionTestStep] = Field(default_factory=list)
    server_info: Optional[DiscoveredServerInfo] = None
    tls_certificate: Optional[TLSCertificateInfo] = None
    error: Optional[str] = None
    error_code: Optional[ConnectionErrorCode] = None
    suggestions: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_error_code(self) -> "ConnectionTestResult":
        if not self.success and self.error_code is None:
            raise ValueError("a failed connection test must carry an error_code")
        if self.success and self.error_code not in (None, ConnectionErrorCode.AUTH_REQUIRED):
            raise ValueError(
                f"a successful connection test cannot carry error_code {self.error_code.value}"
            )
        return self

    def step(self, name: StepName) -> Optional[ConnectionTestStep]:
        """Return the step with the given name, if it ran."""
        for step in self.steps:
            if step.name == name:
                return step
        return None


class BatchEntry(BaseModel):
    server_id: str
    result: ConnectionTestResult


class BatchVerificationResult(BaseModel):
    """Per-server results in input order plus aggregate counts."""

    results: List[BatchEntry] = Field(default_factory=list)
    success_count: int = 0
    failed_count: int = 0
    total_time_ms: int = 0


class ProtectedResourceMetadata(BaseModel):
    """RFC 9728 protected resource metadata."""

    model_config = ConfigDict(extra="allow")

    resource: Optional[str] = None
    resource_name: Optional[str] = None
    resource_documentation: Optional[str] = None
    authorization_servers: List[str] = Field(default_factory=list)
    bearer_methods_supported: List[str] = Field(default_factory=list)
    scopes_supported: List[str] = Field(default_factory=list)


class AuthorizationServerMetadata(BaseModel):
    """RFC 8414 authorization server metadata."""

    model_config = ConfigDict(extra="allow")

    issuer: Optional[str] = None
    authorization_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    registration_endpoint: Optional[str] = None
    revocation_endpoint: Optional[str] = None
    response_types_supported: List[str] = Field(default_factory=list)
    grant_types_supported: List[str] = Field(default_factory=list)
    code_challenge_methods_supported: List[str] = Field(default_factory=list)
    token_endpoint_auth_methods_supported: List[str] = Field(default_factory=list)
    scopes_supported: List[str] = Field(default_factory=list)


class AuthDiscoveryResult(BaseModel):
    """Outcome of probing an endpoint for its authentication requirements."""

    success: bool = False
    endpoint: str
    requires_auth: bool = False
    auth_type: DiscoveredAuthType = DiscoveredAuthType.UNKNOWN
    supports_dcr: bool = False
    protected_resource: Optional[ProtectedResourceMetadata] = None
    authorization_server: Optional[AuthorizationServerMetadata] = None
    scopes: List[str] = Field(default_factory=list)
    discovery_steps: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class SecurityContext(BaseModel):
    """Derived risk view over one catalog entry. Recomputed on every call."""

    is_verified_provider: bool
    is_official_server: bool
    has_valid_tls: bool = True
    tls_certificate_info: Optional[TLSCertificateInfo] = None
    risk_level: RiskLevel
    risk_factors: List[str] = Field(default_factory=list)
    requested_scopes: List[str] = Field(default_factory=list)
    data_access_description: str = ""


class SecurityWarning(BaseModel):
    severity: WarningSeverity
    title: str
    description: str
    recommendation: str


class ServerAssessment(BaseModel):
    """Everything a host needs to show a pre-install security prompt."""

    server_id: str
    context: SecurityContext
    warnings: List[SecurityWarning] = Field(default_factory=list)
    summary: str
    show_dialog: bool


class ServerFilters(BaseModel):
    """Directory search filters. Unset or "all" means no constraint."""

    search: Optional[str] = None
    category: Optional[str] = None
    auth_type: Optional[str] = None
    transport: Optional[str] = None
    verified_only: bool = False


class DirectoryCacheStatus(BaseModel):
    is_cached: bool
    is_stale: bool
    last_updated: Optional[datetime] = None
    server_count: int = 0


class DirectoryFetchResult(BaseModel):
    """Catalog listing plus where it came from.

    ``success=False`` with an empty server list means the catalog could not
    be built at all, which is distinct from an empty directory.
    """

    success: bool = True
    servers: List[RemoteServerDescriptor] = Field(default_factory=list)
    origin: DirectoryOrigin = DirectoryOrigin.LIVE
    last_updated: Optional[datetime] = None
    is_stale: bool = False
    error: Optional[str] = None
