from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from haute_garonne_mcp.shared.logging import LogLevel

DEFAULT_API_BASE_URL = "https://data.haute-garonne.fr/api/explore/v2.1"


class Settings(BaseSettings):
    """Server settings.

    All settings can be configured via environment variables with the prefix
    HAUTE_GARONNE_MCP_, e.g. HAUTE_GARONNE_MCP_LOG_LEVEL=DEBUG. The listen port
    and upstream URL also honour the plain PORT and API_BASE_URL variables
    that hosting platforms set.
    """

    model_config = SettingsConfigDict(
        env_prefix="HAUTE_GARONNE_MCP_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Server settings
    debug: bool = False
    log_level: LogLevel = "INFO"

    # HTTP settings
    host: str = "127.0.0.1"
    port: int = Field(default=3000, validation_alias=AliasChoices("HAUTE_GARONNE_MCP_PORT", "PORT"))
    message_path: str = "/message"
    """GET opens an event stream here; POSTs to this prefix carry JSON-RPC messages."""
    health_path: str = "/ping"
    cors_allow_origin: str = "*"
    max_body_bytes: int | None = 1_000_000
    sse_ping_interval: int = 15

    # Upstream open-data API
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        validation_alias=AliasChoices("HAUTE_GARONNE_MCP_API_BASE_URL", "API_BASE_URL"),
    )
    upstream_timeout: float = 30.0
    catalog_ttl: float = 300.0
    catalog_fetch_limit: int = 1000
    resource_list_limit: int = 100
