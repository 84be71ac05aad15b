"""Configuration schema for mcp-scout."""

import logging
import os
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field
from rich.console import Console
from rich.logging import RichHandler


class OutputMode(str, Enum):
    """Terminal output modes."""
    QUIET = "quiet"      # No terminal output
    STANDARD = "standard"  # Tables and status lines
    VERBOSE = "verbose"   # Adds probe traces and debug logging


ENV_PREFIX = "MCP_SCOUT_"

# environment variable suffix -> ScoutConfig field
_ENV_FIELDS: Dict[str, str] = {
    "CACHE_DIR": "cache_dir",
    "CACHE_TTL_HOURS": "cache_ttl_hours",
    "CONNECTION_TIMEOUT": "connection_timeout",
    "DISCOVERY_TIMEOUT": "discovery_timeout",
    "CONCURRENCY": "default_concurrency",
    "USER_AGENT": "user_agent",
    "OUTPUT_MODE": "output_mode",
}


class ScoutConfig(BaseModel):
    """Main configuration for directory caching and network probes."""
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".mcp-scout" / "cache",
        description="Directory holding the durable directory cache"
    )
    cache_file_name: str = Field(
        default="remote-mcp-servers.json",
        description="File name of the durable directory cache"
    )
    cache_ttl_hours: float = Field(
        default=24.0,
        gt=0,
        description="Age after which a cached directory is stale"
    )
    connection_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Default per-request timeout in seconds for connection tests"
    )
    tls_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout in seconds for the TLS certificate probe"
    )
    discovery_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout in seconds for auth discovery"
    )
    default_concurrency: int = Field(
        default=5,
        ge=1,
        description="Number of servers verified at once by batch tests"
    )
    user_agent: str = Field(
        default="mcp-scout/0.1",
        description="User-Agent header sent with every probe"
    )
    output_mode: OutputMode = Field(
        default=OutputMode.STANDARD,
        description="Controls the level of terminal output"
    )

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / self.cache_file_name

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_ttl_hours)

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "ScoutConfig":
        """Build a config from ``MCP_SCOUT_*`` variables.

        Explicit keyword overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for suffix, field_name in _ENV_FIELDS.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw:
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)


_LOG_LEVELS = {
    OutputMode.QUIET: logging.WARNING,
    OutputMode.STANDARD: logging.INFO,
    OutputMode.VERBOSE: logging.DEBUG,
}


def configure_logging(output_mode: OutputMode) -> None:
    """Route mcp_scout log records to a rich handler.

    Only applications call this; the library itself never installs handlers.
    """
    logger = logging.getLogger("mcp_scout")
    logger.setLevel(_LOG_LEVELS[output_mode])
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        # Log lines on stderr, command output on stdout
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True))
    logger.propagate = False
