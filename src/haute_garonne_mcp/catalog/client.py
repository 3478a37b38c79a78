"""Thin async client for the Opendatasoft explore v2.1 API."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from haute_garonne_mcp.shared.exceptions import CatalogError

logger = logging.getLogger(__name__)


def dataset_path(dataset_id: str) -> str:
    """Path of one dataset, with the id encoded as a single path segment."""
    return f"catalog/datasets/{quote(dataset_id, safe='')}"


class CatalogClient:
    """Issues the three upstream calls the server needs.

    The httpx client is owned by the caller and must have ``base_url`` set to
    the API root (e.g. ``https://data.haute-garonne.fr/api/explore/v2.1/``).
    Every httpx failure, including non-2xx statuses, is raised as
    :class:`CatalogError`. Nothing is retried.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise CatalogError(f"Upstream returned HTTP {exc.response.status_code} for {exc.request.url}") from exc
        except httpx.HTTPError as exc:
            raise CatalogError(f"Upstream request failed: {exc}") from exc
        except ValueError as exc:
            raise CatalogError(f"Upstream returned invalid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise CatalogError("Upstream returned an unexpected payload")
        return payload

    async def fetch_catalog(self, limit: int) -> dict[str, Any]:
        logger.debug(f"Fetching dataset catalog (limit={limit})")
        return await self._get_json("catalog/datasets", params={"limit": limit})

    async def get_dataset(self, dataset_id: str) -> dict[str, Any]:
        return await self._get_json(dataset_path(dataset_id))

    async def query_records(
        self,
        dataset_id: str,
        *,
        limit: int = 100,
        offset: int = 0,
        where: str | None = None,
        select: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if where:
            params["where"] = where
        if select:
            params["select"] = select
        return await self._get_json(f"{dataset_path(dataset_id)}/records", params=params)
