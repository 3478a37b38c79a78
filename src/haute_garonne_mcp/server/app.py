from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from starlette.applications import Starlette
from starlette.routing import Route

from haute_garonne_mcp import __version__
from haute_garonne_mcp.catalog.client import CatalogClient
from haute_garonne_mcp.catalog.service import CatalogService
from haute_garonne_mcp.server.capabilities import CapabilityRegistry
from haute_garonne_mcp.server.dispatcher import RequestDispatcher
from haute_garonne_mcp.server.lowlevel import LowLevelServer
from haute_garonne_mcp.server.prompts import PROMPTS
from haute_garonne_mcp.server.resources import RESOURCES
from haute_garonne_mcp.server.session_registry import SessionRegistry
from haute_garonne_mcp.server.sse import SseServerTransport
from haute_garonne_mcp.server.tools import TOOLS
from haute_garonne_mcp.settings import Settings
from haute_garonne_mcp.shared.httpx_utils import create_http_client

logger = logging.getLogger(__name__)

SERVER_NAME = "haute-garonne-mcp-server"


def build_server(catalog: CatalogService, settings: Settings) -> tuple[LowLevelServer, CapabilityRegistry]:
    """Create the protocol core with every tool, resource and prompt installed."""
    server = LowLevelServer(name=SERVER_NAME, version=__version__)
    capabilities = CapabilityRegistry(
        catalog,
        tools=TOOLS,
        resources=RESOURCES,
        prompts=PROMPTS,
        resource_list_limit=settings.resource_list_limit,
    )
    capabilities.install(server)
    return server, capabilities


def create_app(settings: Settings | None = None, *, http_client: httpx.AsyncClient | None = None) -> Starlette:
    """Build the Starlette application.

    Every component is created eagerly and stored on ``app.state``, so the app
    serves requests even when the ASGI lifespan is not run. The lifespan only
    releases resources on shutdown.

    Args:
        settings: server settings; read from the environment when omitted.
        http_client: client used for the upstream API. Its ``base_url`` must
            point at the API root. A client is created from
            ``settings.api_base_url`` when omitted.
    """
    settings = settings or Settings()
    if http_client is None:
        http_client = create_http_client(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(settings.upstream_timeout),
        )

    catalog = CatalogService(
        CatalogClient(http_client),
        ttl=settings.catalog_ttl,
        fetch_limit=settings.catalog_fetch_limit,
    )
    server, capabilities = build_server(catalog, settings)
    registry = SessionRegistry()
    transport = SseServerTransport(
        registry,
        endpoint=settings.message_path,
        max_body_bytes=settings.max_body_bytes,
        ping_interval=settings.sse_ping_interval,
        allow_origin=settings.cors_allow_origin,
    )
    dispatcher = RequestDispatcher(server=server, registry=registry, transport=transport, settings=settings)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(f"Serving {SERVER_NAME} {__version__} against {settings.api_base_url}")
        try:
            yield
        finally:
            registry.clear()
            await http_client.aclose()

    app = Starlette(
        debug=settings.debug,
        routes=[Route("/{path:path}", endpoint=dispatcher)],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.server = server
    app.state.capabilities = capabilities
    app.state.catalog = catalog
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    return app
