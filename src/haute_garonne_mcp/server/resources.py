from __future__ import annotations

from haute_garonne_mcp.catalog.service import CatalogService
from haute_garonne_mcp.server.capabilities import ResourceDefinition
from haute_garonne_mcp.server.tools import to_json_text
from haute_garonne_mcp.types.mcp import Resource

CATALOG_URI = "haute-garonne://catalog"
DATASET_URI_PREFIX = "haute-garonne://dataset/"


def dataset_uri(dataset_id: str) -> str:
    return f"{DATASET_URI_PREFIX}{dataset_id}"


async def read_catalog(catalog: CatalogService, uri: str) -> str:
    return to_json_text((await catalog.get_catalog()).to_json())


async def read_dataset(catalog: CatalogService, uri: str) -> str:
    return to_json_text(await catalog.get_dataset(uri.removeprefix(DATASET_URI_PREFIX)))


async def list_dataset_resources(catalog: CatalogService, limit: int) -> list[Resource]:
    _, datasets = await catalog.list_datasets(limit=limit)
    return [
        Resource(
            uri=dataset_uri(dataset.dataset_id),
            name=dataset.display_name,
            description=dataset.description or "No description available",
            mime_type="application/json",
        )
        for dataset in datasets
    ]


RESOURCES: tuple[ResourceDefinition, ...] = (
    ResourceDefinition(
        uri=CATALOG_URI,
        name="Dataset Catalog",
        description="Complete catalog of all available datasets",
        read=read_catalog,
    ),
    ResourceDefinition(
        uri=DATASET_URI_PREFIX,
        name="Dataset",
        description="Metadata of one dataset",
        read=read_dataset,
        expand=list_dataset_resources,
    ),
)
