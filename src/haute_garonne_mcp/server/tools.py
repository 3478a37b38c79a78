from __future__ import annotations

import json
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from haute_garonne_mcp.catalog.service import CatalogService
from haute_garonne_mcp.server.capabilities import ToolDefinition


def to_json_text(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def or_default(default: int) -> BeforeValidator:
    """Treat a zero or null limit like an omitted one."""
    return BeforeValidator(lambda value: default if value is None or value == 0 else value)


class ListDatasetsArguments(BaseModel):
    limit: Annotated[int, or_default(100)] = Field(
        default=100, ge=1, description="Maximum number of datasets to return"
    )
    offset: int = Field(default=0, ge=0, description="Offset for pagination")


class QueryDatasetArguments(BaseModel):
    dataset_id: str = Field(min_length=1, description="The identifier of the dataset to query")
    limit: Annotated[int, or_default(100)] = Field(default=100, ge=1, description="Maximum number of records to return")
    offset: int = Field(default=0, ge=0, description="Offset for pagination")
    where: str | None = Field(default=None, description="Filter expression (SQL-like WHERE clause)")
    select: str | None = Field(default=None, description="Comma-separated list of fields to select")


class SearchDatasetsArguments(BaseModel):
    query: str = Field(min_length=1, description="Search query to find datasets by name or keywords")
    limit: Annotated[int, or_default(50)] = Field(default=50, ge=1, description="Maximum number of results to return")


class GetDatasetInfoArguments(BaseModel):
    dataset_id: str = Field(min_length=1, description="The identifier of the dataset")


async def list_datasets(catalog: CatalogService, args: ListDatasetsArguments) -> str:
    total, page = await catalog.list_datasets(limit=args.limit, offset=args.offset)
    return (
        f"Found {total} total datasets. Showing {len(page)} datasets (offset: {args.offset}):\n\n"
        f"{to_json_text([dataset.to_json() for dataset in page])}"
    )


async def query_dataset(catalog: CatalogService, args: QueryDatasetArguments) -> str:
    payload = await catalog.query_records(
        args.dataset_id, limit=args.limit, offset=args.offset, where=args.where, select=args.select
    )
    records = payload.get("results") or []
    total = payload.get("total_count") or len(records)
    return (
        f'Found {total} records in dataset "{args.dataset_id}". Showing {len(records)} records:\n\n'
        f"{to_json_text(records)}"
    )


async def search_datasets(catalog: CatalogService, args: SearchDatasetsArguments) -> str:
    matches = await catalog.search(args.query, limit=args.limit)
    return f'Found {len(matches)} datasets matching "{args.query}":\n\n{to_json_text([m.to_json() for m in matches])}'


async def get_dataset_info(catalog: CatalogService, args: GetDatasetInfoArguments) -> str:
    payload = await catalog.get_dataset(args.dataset_id)
    return f'Dataset information for "{args.dataset_id}":\n\n{to_json_text(payload)}'


TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="list_datasets",
        description="List all available datasets from the Haute Garonne Open Data API",
        arguments=ListDatasetsArguments,
        fn=list_datasets,
    ),
    ToolDefinition(
        name="query_dataset",
        description="Query records from a specific dataset with optional filters",
        arguments=QueryDatasetArguments,
        fn=query_dataset,
    ),
    ToolDefinition(
        name="search_datasets",
        description="Search datasets by name or keywords",
        arguments=SearchDatasetsArguments,
        fn=search_datasets,
    ),
    ToolDefinition(
        name="get_dataset_info",
        description="Get detailed metadata about a specific dataset",
        arguments=GetDatasetInfoArguments,
        fn=get_dataset_info,
    ),
)
