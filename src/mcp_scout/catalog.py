"""
Remote MCP Server Catalog

This module contains the curated seed list of well-known remote MCP servers
and the catalog sources the directory store rebuilds from.
"""

import logging
from typing import Callable, List, Protocol

from .exceptions import CatalogSourceError
from .models import (
    AuthConfig,
    AuthType,
    RemoteServerDescriptor,
    ServerCategory,
    TransportKind,
)

logger = logging.getLogger(__name__)


def create_curated_servers() -> List[RemoteServerDescriptor]:
    """Create the curated remote server entries."""

    servers = []

    servers.append(RemoteServerDescriptor(
        id="github",
        name="GitHub MCP",
        description="GitHub's official MCP Server for repository access",
        endpoint="https://api.githubcopilot.com/mcp/",
        transport=TransportKind.HTTP,
        auth_type=AuthType.API_KEY,
        auth_config=AuthConfig(
            api_key_header="Authorization",
            api_key_env_var="GITHUB_PERSONAL_ACCESS_TOKEN",
            api_key_url="https://github.com/settings/tokens?type=beta",
            api_key_instructions=(
                'Create a Fine-grained Personal Access Token with "Contents" and '
                '"Metadata" read permissions for the repositories you want to access.'
            ),
        ),
        provider="GitHub",
        verified=True,
        category=ServerCategory.DEVELOPER_TOOLS,
        tags=["git", "repositories", "issues", "pull-requests"],
        documentation_url="https://github.com/github/github-mcp-server",
    ))

    # OAuth providers that publish a plain endpoint with no extra config
    oauth_servers = [
        ("notion", "Notion MCP", "Collaboration and productivity tool integration",
         "https://mcp.notion.com/mcp", TransportKind.HTTP, "Notion",
         ServerCategory.PRODUCTIVITY, ["notes", "wiki", "documents", "collaboration"]),
        ("figma", "Figma MCP", "Collaborative design and prototyping platform",
         "https://mcp.figma.com/mcp", TransportKind.HTTP, "Figma",
         ServerCategory.DEVELOPER_TOOLS, ["design", "prototyping", "ui", "collaboration"]),
        ("linear", "Linear MCP", "Project management tool for software teams",
         "https://mcp.linear.app/sse", TransportKind.EVENT_STREAM, "Linear",
         ServerCategory.DEVELOPER_TOOLS, ["project-management", "issues", "sprints", "agile"]),
        ("supabase", "Supabase MCP", "Open-source Firebase alternative with PostgreSQL",
         "https://mcp.supabase.com/mcp", TransportKind.HTTP, "Supabase",
         ServerCategory.DATABASES, ["database", "postgresql", "authentication", "storage"]),
        ("neon", "Neon MCP", "Serverless PostgreSQL database",
         "https://mcp.neon.tech/sse", TransportKind.EVENT_STREAM, "Neon",
         ServerCategory.DATABASES, ["database", "postgresql", "serverless"]),
        ("sentry", "Sentry MCP", "Error tracking and performance monitoring",
         "https://mcp.sentry.dev/sse", TransportKind.EVENT_STREAM, "Sentry",
         ServerCategory.DEVELOPER_TOOLS, ["errors", "monitoring", "debugging", "performance"]),
        ("paypal", "PayPal MCP", "Global online payment system integration",
         "https://mcp.paypal.com/sse", TransportKind.EVENT_STREAM, "PayPal",
         ServerCategory.PAYMENTS, ["payments", "transactions", "commerce"]),
        ("asana", "Asana MCP", "Work management platform for teams",
         "https://mcp.asana.com/mcp", TransportKind.HTTP, "Asana",
         ServerCategory.PRODUCTIVITY, ["tasks", "projects", "teams", "workflow"]),
        ("intercom", "Intercom MCP", "Customer messaging platform",
         "https://mcp.intercom.io/mcp", TransportKind.HTTP, "Intercom",
         ServerCategory.CONTENT, ["customer-support", "messaging", "chat", "crm"]),
    ]
    for server_id, name, description, endpoint, transport, provider, category, tags in oauth_servers:
        servers.append(RemoteServerDescriptor(
            id=server_id,
            name=name,
            description=description,
            endpoint=endpoint,
            transport=transport,
            auth_type=AuthType.OAUTH,
            auth_config=AuthConfig(oauth_provider=provider),
            provider=provider,
            verified=True,
            category=category,
            tags=tags,
        ))

    servers.append(RemoteServerDescriptor(
        id="atlassian",
        name="Atlassian MCP",
        description="Jira, Confluence, and Atlassian tools integration",
        endpoint="https://mcp.atlassian.com/mcp",
        transport=TransportKind.HTTP,
        auth_type=AuthType.OAUTH,
        auth_config=AuthConfig(
            oauth_provider="Atlassian",
            required_scopes=["read:jira-work", "write:jira-work", "read:confluence-content.all"],
        ),
        provider="Atlassian",
        verified=True,
        category=ServerCategory.DEVELOPER_TOOLS,
        tags=["jira", "confluence", "project-management", "documentation"],
    ))

    # Open servers
    servers.append(RemoteServerDescriptor(
        id="fetch",
        name="Fetch MCP",
        description="Web content retrieval, converts HTML to markdown",
        endpoint="https://remote.mcpservers.org/fetch/mcp",
        transport=TransportKind.HTTP,
        auth_type=AuthType.OPEN,
        provider="MCP Servers",
        verified=True,
        category=ServerCategory.UTILITIES,
        tags=["web", "scraping", "markdown", "fetch"],
    ))
    servers.append(RemoteServerDescriptor(
        id="sequential-thinking",
        name="Sequential Thinking MCP",
        description="Structured thinking process for problem-solving",
        endpoint="https://remote.mcpservers.org/sequentialthinking/mcp",
        transport=TransportKind.HTTP,
        auth_type=AuthType.OPEN,
        provider="MCP Servers",
        verified=True,
        category=ServerCategory.UTILITIES,
        tags=["thinking", "reasoning", "problem-solving"],
    ))
    servers.append(RemoteServerDescriptor(
        id="semgrep",
        name="Semgrep MCP",
        description="Static code analysis and security scanning",
        endpoint="https://mcp.semgrep.dev/sse",
        transport=TransportKind.EVENT_STREAM,
        auth_type=AuthType.OPEN,
        provider="Semgrep",
        verified=True,
        category=ServerCategory.SECURITY,
        tags=["security", "code-analysis", "vulnerabilities", "sast"],
    ))
    servers.append(RemoteServerDescriptor(
        id="deepwiki",
        name="DeepWiki MCP",
        description="Wikipedia and knowledge base access",
        endpoint="https://mcp.deepwiki.com/mcp",
        transport=TransportKind.HTTP,
        auth_type=AuthType.OPEN,
        provider="DeepWiki",
        verified=True,
        category=ServerCategory.CONTENT,
        tags=["wikipedia", "knowledge", "research", "information"],
    ))

    return servers


class CatalogSource(Protocol):
    """Anything that can build the full server catalog.

    Implementations raise CatalogSourceError when they cannot.
    """

    async def load(self) -> List[RemoteServerDescriptor]:
        ...


class CuratedCatalogSource:
    """Catalog source backed by the static curated list.

    A live registry source can replace this by implementing ``load``.
    """

    def __init__(self, factory: Callable[[], List[RemoteServerDescriptor]] = create_curated_servers):
        self.factory = factory

    async def load(self) -> List[RemoteServerDescriptor]:
        try:
            servers = self.factory()
        except ValueError as e:
            # pydantic ValidationError is a ValueError
            raise CatalogSourceError(f"Curated catalog is invalid: {e}") from e
        logger.debug("Loaded %d curated servers", len(servers))
        return servers
