from __future__ import annotations

from typing import Any

import click
import uvicorn

from haute_garonne_mcp.server.app import create_app
from haute_garonne_mcp.settings import Settings
from haute_garonne_mcp.shared.logging import configure_logging


@click.command()
@click.option("--host", default=None, help="Interface to bind (default: 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: 3000, or $PORT)")
@click.option("--api-base-url", default=None, help="Root of the Opendatasoft explore v2.1 API")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level",
)
@click.option("--debug/--no-debug", default=None, help="Enable Starlette debug mode")
def main(
    host: str | None,
    port: int | None,
    api_base_url: str | None,
    log_level: str | None,
    debug: bool | None,
) -> int:
    """Serve the Haute-Garonne open-data MCP server over HTTP."""
    overrides: dict[str, Any] = {
        "host": host,
        "port": port,
        "api_base_url": api_base_url,
        "log_level": log_level.upper() if log_level else None,
        "debug": debug,
    }
    settings = Settings(**{key: value for key, value in overrides.items() if value is not None})
    configure_logging(settings.log_level)

    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    server.run()
    return 0
