"""
Security Assessment

Turns catalog metadata and an optional connection test into a risk level,
a list of risk factors and user-facing warnings. Assessment is a pure
function of its inputs and is recomputed on every call.
"""

import logging
from typing import List, Optional

from .models import (
    AuthType,
    ConnectionTestResult,
    RemoteServerDescriptor,
    RiskLevel,
    SecurityContext,
    SecurityWarning,
    ServerAssessment,
    ServerCategory,
    ServerSource,
    StepName,
    StepStatus,
    WarningSeverity,
)

logger = logging.getLogger(__name__)

UNVERIFIED_PROVIDER = "Unverified provider"
COMMUNITY_SERVER = "Community-submitted server"
OPEN_ACCESS = "Open access (no authentication)"
SENSITIVE_PERMISSIONS = "Requests sensitive permissions"
UNKNOWN_PROVIDER = "Unknown provider"
TLS_ISSUE = "TLS certificate issue"

# Any two of these together make a server high risk on their own
CRITICAL_FACTORS = frozenset({TLS_ISSUE, UNKNOWN_PROVIDER, COMMUNITY_SERVER})

SENSITIVE_SCOPE_WORDS = (
    "write",
    "delete",
    "admin",
    "manage",
    "full",
    "all",
    "workflow",
    "execute",
)

WELL_KNOWN_PROVIDERS = frozenset({
    "GitHub",
    "Notion",
    "Figma",
    "Linear",
    "Supabase",
    "Neon",
    "Sentry",
    "PayPal",
    "Atlassian",
    "Asana",
    "Intercom",
    "MCP Servers",
})

CATEGORY_ACCESS = {
    ServerCategory.DEVELOPER_TOOLS: "Access to development tools and workflows",
    ServerCategory.DATABASES: "Access to database operations and data",
    ServerCategory.PRODUCTIVITY: "Access to productivity tools and documents",
    ServerCategory.PAYMENTS: "Access to payment and financial information",
    ServerCategory.CONTENT: "Access to content and media",
    ServerCategory.UTILITIES: "Access to utility functions",
    ServerCategory.SECURITY: "Access to security scanning tools",
    ServerCategory.ANALYTICS: "Access to analytics and metrics",
}

RISK_SUMMARIES = {
    RiskLevel.LOW: "This server appears to be safe. It is from a verified provider with standard permissions.",
    RiskLevel.MEDIUM: "This server has some risk factors. Review the warnings before proceeding.",
    RiskLevel.HIGH: "This server has significant risk factors. Exercise extreme caution.",
    RiskLevel.UNKNOWN: "Unable to fully assess server security. Proceed with caution.",
}


def sensitive_scopes(server: RemoteServerDescriptor) -> List[str]:
    """Required scopes whose name contains a sensitive word."""
    return [
        scope for scope in server.required_scopes
        if any(word in scope.lower() for word in SENSITIVE_SCOPE_WORDS)
    ]


def _factor_key(factor: str) -> str:
    # The sensitive-permissions factor carries the scope list after a colon
    return factor.split(":", 1)[0]


def tls_is_valid(connection_result: Optional[ConnectionTestResult]) -> bool:
    if connection_result is None:
        return True
    tls_step = connection_result.step(StepName.TLS)
    return not (tls_step and tls_step.status in (StepStatus.WARNING, StepStatus.ERROR))


def risk_factors(
    server: RemoteServerDescriptor,
    connection_result: Optional[ConnectionTestResult] = None,
) -> List[str]:
    """Detect risk factors, always in the same order."""
    factors = []
    if not server.verified:
        factors.append(UNVERIFIED_PROVIDER)
    if server.source == ServerSource.COMMUNITY:
        factors.append(COMMUNITY_SERVER)
    if server.auth_type == AuthType.OPEN:
        factors.append(OPEN_ACCESS)
    scopes = sensitive_scopes(server)
    if scopes:
        factors.append(f"{SENSITIVE_PERMISSIONS}: {', '.join(scopes)}")
    if server.provider not in WELL_KNOWN_PROVIDERS:
        factors.append(UNKNOWN_PROVIDER)
    if not tls_is_valid(connection_result):
        factors.append(TLS_ISSUE)
    return factors


def risk_level(factors: List[str], server: RemoteServerDescriptor) -> RiskLevel:
    """First matching rule wins."""
    critical = [f for f in factors if _factor_key(f) in CRITICAL_FACTORS]
    if len(critical) >= 2:
        return RiskLevel.HIGH
    if len(factors) >= 3:
        return RiskLevel.HIGH
    if factors:
        return RiskLevel.MEDIUM
    if server.verified and server.source == ServerSource.CURATED:
        return RiskLevel.LOW
    return RiskLevel.UNKNOWN


def data_access_description(server: RemoteServerDescriptor) -> str:
    descriptions = []
    if server.category in CATEGORY_ACCESS:
        descriptions.append(CATEGORY_ACCESS[server.category])

    scopes = server.required_scopes
    if any("repo" in s for s in scopes):
        descriptions.append("Read and write to repositories")
    if any("workflow" in s for s in scopes):
        descriptions.append("Manage workflows and automations")
    if any("admin" in s for s in scopes):
        descriptions.append("Administrative access")

    return ". ".join(descriptions) or "General access to server features"


class SecurityAssessor:
    """Stateless risk assessment for remote MCP servers."""

    def assess(
        self,
        server: RemoteServerDescriptor,
        connection_result: Optional[ConnectionTestResult] = None,
    ) -> SecurityContext:
        factors = risk_factors(server, connection_result)
        level = risk_level(factors, server)
        certificate = connection_result.tls_certificate if connection_result else None

        logger.debug("Assessed %s: %s risk, %d factors", server.id, level.value, len(factors))
        return SecurityContext(
            is_verified_provider=server.verified,
            is_official_server=server.source == ServerSource.CURATED,
            has_valid_tls=tls_is_valid(connection_result),
            tls_certificate_info=certificate,
            risk_level=level,
            risk_factors=factors,
            requested_scopes=server.required_scopes,
            data_access_description=data_access_description(server),
        )

    def generate_warnings(
        self, server: RemoteServerDescriptor, context: SecurityContext
    ) -> List[SecurityWarning]:
        warnings = []

        if not context.is_verified_provider:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.WARNING,
                title="Unverified Provider",
                description=(
                    "This server is not from a verified provider. Exercise caution "
                    "when granting access to sensitive data."
                ),
                recommendation="Review the server's documentation and only proceed if you trust the provider.",
            ))

        if server.source == ServerSource.COMMUNITY:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.WARNING,
                title="Community Server",
                description="This server was submitted by the community and has not been officially reviewed.",
                recommendation="Verify the server source and review any available documentation before connecting.",
            ))

        if server.auth_type == AuthType.OPEN:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.INFO,
                title="Open Access",
                description=(
                    "This server allows open access without authentication. Anyone "
                    "can use it and it cannot tell your requests apart from others."
                ),
                recommendation="Avoid sending sensitive or personal data through this server.",
            ))

        scopes = sensitive_scopes(server)
        if scopes:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.WARNING,
                title="Sensitive Permissions",
                description=(
                    f"This server requests access to: {', '.join(scopes)}. "
                    "These permissions allow significant access to your data."
                ),
                recommendation="Only grant access if you understand and need these capabilities.",
            ))

        if UNKNOWN_PROVIDER in context.risk_factors:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.WARNING,
                title="Unknown Provider",
                description=f"{server.provider} is not one of the well-known MCP server providers.",
                recommendation="Confirm who operates this endpoint before sharing credentials with it.",
            ))

        if not context.has_valid_tls:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.CRITICAL,
                title="TLS Certificate Issue",
                description="The server has a TLS certificate issue. Your connection may not be secure.",
                recommendation="Do not proceed unless you understand the security implications.",
            ))

        if context.risk_level == RiskLevel.HIGH:
            warnings.append(SecurityWarning(
                severity=WarningSeverity.CRITICAL,
                title="High Risk Server",
                description=(
                    "Multiple risk factors have been identified with this server. "
                    "Proceed with extreme caution."
                ),
                recommendation="Consider whether you really need this server and if there are safer alternatives.",
            ))

        return warnings

    def risk_summary(self, context: SecurityContext) -> str:
        return RISK_SUMMARIES[context.risk_level]

    def should_show_dialog(self, context: SecurityContext) -> bool:
        """A low-risk server still gets a one-time disclosure if any factor fired."""
        return context.risk_level != RiskLevel.LOW or bool(context.risk_factors)

    def assess_server(
        self,
        server: RemoteServerDescriptor,
        connection_result: Optional[ConnectionTestResult] = None,
    ) -> ServerAssessment:
        context = self.assess(server, connection_result)
        return ServerAssessment(
            server_id=server.id,
            context=context,
            warnings=self.generate_warnings(server, context),
            summary=self.risk_summary(context),
            show_dialog=self.should_show_dialog(context),
        )
