"""Utilities for creating standardized httpx AsyncClient instances."""

from typing import Any, Protocol

import httpx

__all__ = ["HttpClientFactory", "create_http_client"]

DEFAULT_TIMEOUT_SECONDS = 30.0
USER_AGENT = "haute-garonne-mcp (+https://data.haute-garonne.fr)"


class HttpClientFactory(Protocol):
    def __call__(self, **kwargs: Any) -> httpx.AsyncClient: ...


def create_http_client(**kwargs: Any) -> httpx.AsyncClient:
    """Create an httpx AsyncClient for talking to the upstream open-data API.

    Defaults:
    - follow_redirects=True (always enabled)
    - a 30 second timeout unless ``timeout`` is given
    - a descriptive User-Agent merged under any ``headers`` passed in

    Any other keyword accepted by httpx.AsyncClient (base_url, transport,
    verify, ...) is passed through.

    Examples:
        async with create_http_client(base_url="https://data.example.org/api") as client:
            response = await client.get("/catalog/datasets")

        # In tests, route requests to a handler instead of the network
        client = create_http_client(transport=httpx.MockTransport(handler))
    """
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    default_kwargs: dict[str, Any] = {
        "timeout": httpx.Timeout(DEFAULT_TIMEOUT_SECONDS),
    }
    default_kwargs.update(kwargs)
    default_kwargs["follow_redirects"] = True
    return httpx.AsyncClient(headers=headers, **default_kwargs)
