from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from haute_garonne_mcp.catalog.cache import DEFAULT_TTL_SECONDS, TTLCache
from haute_garonne_mcp.catalog.client import CatalogClient
from haute_garonne_mcp.catalog.models import Catalog, Dataset
from haute_garonne_mcp.shared.exceptions import CatalogError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_LIMIT = 1000


class CatalogService:
    """Cached view of the dataset catalog plus pass-through dataset calls."""

    def __init__(
        self,
        client: CatalogClient,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.fetch_limit = fetch_limit
        self.cache: TTLCache[Catalog] = TTLCache(self._fetch_catalog, ttl=ttl, clock=clock)

    async def _fetch_catalog(self) -> Catalog:
        try:
            payload = await self.client.fetch_catalog(self.fetch_limit)
            catalog = Catalog.model_validate(payload)
        except (CatalogError, ValidationError) as exc:
            logger.error(f"Error fetching dataset catalog: {exc}")
            raise CatalogError(f"Failed to fetch dataset catalog: {exc}") from exc
        logger.info(f"Fetched dataset catalog with {len(catalog.datasets)} datasets")
        return catalog

    async def get_catalog(self) -> Catalog:
        return await self.cache.get_or_refresh()

    async def list_datasets(self, *, limit: int, offset: int = 0) -> tuple[int, list[Dataset]]:
        """Return the number of cached datasets and the requested page of them."""
        catalog = await self.get_catalog()
        return len(catalog.datasets), catalog.datasets[offset : offset + limit]

    async def search(self, query: str, *, limit: int) -> list[Dataset]:
        catalog = await self.get_catalog()
        return [dataset for dataset in catalog.datasets if dataset.matches(query)][:limit]

    async def filter(self, predicate: Callable[[Dataset], bool]) -> list[Dataset]:
        catalog = await self.get_catalog()
        return [dataset for dataset in catalog.datasets if predicate(dataset)]

    async def get_dataset(self, dataset_id: str) -> dict[str, Any]:
        return await self.client.get_dataset(dataset_id)

    async def query_records(self, dataset_id: str, **kwargs: Any) -> dict[str, Any]:
        return await self.client.query_records(dataset_id, **kwargs)
