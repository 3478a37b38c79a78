"""Static tool, resource and prompt descriptors and the registry serving them.

Descriptors are immutable and built once at startup. The registry is what the
protocol handlers call through; it never sees HTTP or sessions.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from haute_garonne_mcp.catalog.service import CatalogService
from haute_garonne_mcp.server.lowlevel import LowLevelServer, validate_params
from haute_garonne_mcp.shared.exceptions import CatalogError, McpError, ToolError
from haute_garonne_mcp.types.json_rpc import INTERNAL_ERROR, ErrorData
from haute_garonne_mcp.types.mcp import (
    CallToolRequestParams,
    CallToolResult,
    GetPromptRequestParams,
    GetPromptResult,
    ListPromptsResult,
    ListResourcesResult,
    ListToolsResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    ReadResourceRequestParams,
    ReadResourceResult,
    Resource,
    TextContent,
    TextResourceContents,
    Tool,
)

logger = logging.getLogger(__name__)

ToolFn = Callable[[CatalogService, Any], Awaitable[str]]
ResourceReader = Callable[[CatalogService, str], Awaitable[str]]
ResourceExpander = Callable[[CatalogService, int], Awaitable[list[Resource]]]
PromptRenderer = Callable[[CatalogService, dict[str, str]], Awaitable[list[PromptMessage]]]


def unknown_tool_error(name: object) -> McpError:
    return McpError(ErrorData(code=INTERNAL_ERROR, message="Internal error", data=f"Unknown tool: {name}"))


def format_validation_error(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'arguments'}: {error['msg']}" for error in exc.errors()
    )


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    arguments: type[BaseModel]
    fn: ToolFn
    kind: Literal["tool"] = field(default="tool", init=False)

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, input_schema=self.arguments.model_json_schema())


@dataclass(frozen=True)
class ResourceDefinition:
    """A readable resource.

    With ``expand`` set, ``uri`` is a prefix: the resource stands for every URI
    under it, and listing asks ``expand`` for the concrete entries.
    """

    uri: str
    name: str
    description: str
    read: ResourceReader
    mime_type: str = "application/json"
    expand: ResourceExpander | None = None
    kind: Literal["resource"] = field(default="resource", init=False)

    def matches(self, uri: str) -> bool:
        if self.expand is None:
            return uri == self.uri
        return uri.startswith(self.uri) and len(uri) > len(self.uri)

    def to_resource(self) -> Resource:
        return Resource(uri=self.uri, name=self.name, description=self.description, mime_type=self.mime_type)


@dataclass(frozen=True)
class PromptDefinition:
    name: str
    description: str
    arguments: tuple[PromptArgument, ...]
    render: PromptRenderer
    kind: Literal["prompt"] = field(default="prompt", init=False)

    def to_prompt(self) -> Prompt:
        return Prompt(name=self.name, description=self.description, arguments=list(self.arguments))


Capability = ToolDefinition | ResourceDefinition | PromptDefinition


class CapabilityRegistry:
    """Looks up descriptors by name or URI and runs them against the catalog."""

    def __init__(
        self,
        catalog: CatalogService,
        *,
        tools: Sequence[ToolDefinition] = (),
        resources: Sequence[ResourceDefinition] = (),
        prompts: Sequence[PromptDefinition] = (),
        resource_list_limit: int = 100,
    ):
        self.catalog = catalog
        self.resource_list_limit = resource_list_limit
        self._tools = {tool.name: tool for tool in tools}
        self._resources = tuple(resources)
        self._prompts = {prompt.name: prompt for prompt in prompts}

    def __iter__(self) -> Iterator[Capability]:
        yield from self._tools.values()
        yield from self._resources
        yield from self._prompts.values()

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def find_resource(self, uri: str) -> ResourceDefinition | None:
        return next((resource for resource in self._resources if resource.matches(uri)), None)

    def get_prompt(self, name: str) -> PromptDefinition | None:
        return self._prompts.get(name)

    # Tools

    def list_tools(self) -> ListToolsResult:
        return ListToolsResult(tools=[tool.to_tool() for tool in self._tools.values()])

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        tool = self.get_tool(name)
        if tool is None:
            raise unknown_tool_error(name)

        logger.info(f"Tool call requested: {name}")
        try:
            parsed = tool.arguments.model_validate(arguments or {})
        except ValidationError as exc:
            return _tool_error(f"Invalid arguments for tool '{name}': {format_validation_error(exc)}")

        try:
            text = await tool.fn(self.catalog, parsed)
        except (ToolError, CatalogError) as exc:
            logger.warning(f"Error in tool {name}: {exc}")
            return _tool_error(f"Error executing tool {name}: {exc}")

        logger.debug(f"Tool {name} completed successfully")
        return CallToolResult(content=[TextContent(text=text)])

    # Resources

    async def list_resources(self) -> ListResourcesResult:
        resources: list[Resource] = []
        try:
            for resource in self._resources:
                if resource.expand is None:
                    resources.append(resource.to_resource())
                else:
                    resources.extend(await resource.expand(self.catalog, self.resource_list_limit))
        except CatalogError as exc:
            logger.error(f"Error listing resources: {exc}")
            return ListResourcesResult(resources=[])
        return ListResourcesResult(resources=resources)

    async def read_resource(self, uri: str) -> ReadResourceResult:
        resource = self.find_resource(uri)
        try:
            if resource is None:
                raise CatalogError(f"Unknown resource URI: {uri}")
            text = await resource.read(self.catalog, uri)
        except CatalogError as exc:
            return ReadResourceResult(
                contents=[TextResourceContents(uri=uri, mime_type="text/plain", text=f"Error reading resource: {exc}")],
                is_error=True,
            )
        return ReadResourceResult(contents=[TextResourceContents(uri=uri, mime_type=resource.mime_type, text=text)])

    # Prompts

    def list_prompts(self) -> ListPromptsResult:
        return ListPromptsResult(prompts=[prompt.to_prompt() for prompt in self._prompts.values()])

    async def get_prompt_messages(self, name: str, arguments: dict[str, Any] | None) -> GetPromptResult:
        prompt = self.get_prompt(name)
        try:
            if prompt is None:
                raise CatalogError(f"Unknown prompt: {name}")
            # Null arguments count as not given.
            rendered_args = {key: str(value) for key, value in (arguments or {}).items() if value is not None}
            messages = await prompt.render(self.catalog, rendered_args)
        except CatalogError as exc:
            error_message = PromptMessage(role="assistant", content=TextContent(text=f"Error: {exc}"))
            return GetPromptResult(messages=[error_message])
        return GetPromptResult(description=prompt.description, messages=messages)

    def install(self, server: LowLevelServer) -> None:
        """Register the tools/resources/prompts methods on ``server``."""

        @server.request_handler("tools/list")
        async def _list_tools(params: dict[str, Any]) -> ListToolsResult:
            return self.list_tools()

        @server.request_handler("tools/call")
        async def _call_tool(params: dict[str, Any]) -> CallToolResult:
            # A missing or non-string name is just another tool we do not have.
            if not isinstance(params.get("name"), str):
                raise unknown_tool_error(params.get("name"))
            call = validate_params(CallToolRequestParams, params)
            return await self.call_tool(call.name, call.arguments)

        @server.request_handler("resources/list")
        async def _list_resources(params: dict[str, Any]) -> ListResourcesResult:
            return await self.list_resources()

        @server.request_handler("resources/read")
        async def _read_resource(params: dict[str, Any]) -> ReadResourceResult:
            read = validate_params(ReadResourceRequestParams, params)
            return await self.read_resource(read.uri)

        @server.request_handler("prompts/list")
        async def _list_prompts(params: dict[str, Any]) -> ListPromptsResult:
            return self.list_prompts()

        @server.request_handler("prompts/get")
        async def _get_prompt(params: dict[str, Any]) -> GetPromptResult:
            get = validate_params(GetPromptRequestParams, params)
            return await self.get_prompt_messages(get.name, get.arguments)


def _tool_error(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=text)], is_error=True)
