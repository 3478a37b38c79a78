from __future__ import annotations

from haute_garonne_mcp.catalog.models import Dataset
from haute_garonne_mcp.catalog.service import CatalogService
from haute_garonne_mcp.server.capabilities import PromptDefinition
from haute_garonne_mcp.types.mcp import PromptArgument, PromptMessage, TextContent, ToolCallContent

CULTURE_TERMS = ("culturel", "culture")
TRANSPORT_LISTING_SIZE = 5


def _is_cultural(dataset: Dataset) -> bool:
    title = dataset.title.lower()
    description = dataset.description.lower()
    return any(term in title or term in description for term in CULTURE_TERMS)


async def find_cultural_sites(catalog: CatalogService, arguments: dict[str, str]) -> list[PromptMessage]:
    location = arguments.get("location", "")
    cultural = await catalog.filter(_is_cultural)

    where = f" in {location}" if location else ""
    messages = [PromptMessage(role="user", content=TextContent(text=f"Find cultural sites{where} in Haute Garonne."))]
    if cultural:
        first = cultural[0]
        messages.append(
            PromptMessage(
                role="assistant",
                content=TextContent(
                    text=f"I found {len(cultural)} cultural-related datasets. "
                    f'Let me query the most relevant one: "{first.display_name}".'
                ),
            )
        )
        messages.append(
            PromptMessage(
                role="user",
                content=ToolCallContent(
                    tool_call_id="call-1",
                    name="query_dataset",
                    arguments={"dataset_id": first.dataset_id, "limit": 50},
                ),
            )
        )
    return messages


async def search_transportation_data(catalog: CatalogService, arguments: dict[str, str]) -> list[PromptMessage]:
    transport_type = arguments.get("transport_type", "")
    needle = f"transport {transport_type}".lower() if transport_type else "transport"

    def is_transport(dataset: Dataset) -> bool:
        title = dataset.title.lower()
        description = dataset.description.lower()
        return (
            dataset.matches(needle)
            or "transport" in title
            or "transport" in description
        )

    transport = await catalog.filter(is_transport)

    related = f" related to {transport_type}" if transport_type else ""
    messages = [
        PromptMessage(
            role="user", content=TextContent(text=f"Search for transportation data{related} in Haute Garonne.")
        )
    ]
    if transport:
        listing = "\n".join(
            f"{index}. {dataset.display_name}"
            for index, dataset in enumerate(transport[:TRANSPORT_LISTING_SIZE], start=1)
        )
        messages.append(
            PromptMessage(
                role="assistant",
                content=TextContent(
                    text=f"I found {len(transport)} transportation-related datasets. "
                    f"Here are the most relevant ones:\n\n{listing}"
                ),
            )
        )
    return messages


PROMPTS: tuple[PromptDefinition, ...] = (
    PromptDefinition(
        name="find_cultural_sites",
        description="Find cultural sites and equipment in Haute Garonne",
        arguments=(PromptArgument(name="location", description="Optional location filter", required=False),),
        render=find_cultural_sites,
    ),
    PromptDefinition(
        name="search_transportation_data",
        description="Search for transportation-related datasets",
        arguments=(
            PromptArgument(
                name="transport_type",
                description="Type of transportation (bus, train, bike, etc.)",
                required=False,
            ),
        ),
        render=search_transportation_data,
    ),
)
