"""MCP result and descriptor types for the methods this server implements.

Type naming follows the MCP specification. Only the fields this server
produces or reads are modelled; unknown fields are preserved.
"""

from __future__ import annotations

from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROTOCOL_VERSION: Final[str] = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS: Final[tuple[str, ...]] = (
    "2024-11-05",
    "2025-03-26",
    "2025-06-18",
)


class MCPModel(BaseModel):
    """Base class for all MCP domain types. Allows extra fields for forward compatibility."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Initialization
# =============================================================================


class Implementation(MCPModel):
    """Describes the name and version of an MCP implementation."""

    name: str
    version: str


class ServerCapabilities(MCPModel):
    """Capabilities that a server may support."""

    prompts: dict[str, Any] | None = None
    resources: dict[str, Any] | None = None
    tools: dict[str, Any] | None = None


class InitializeRequestParams(MCPModel):
    protocol_version: Annotated[str | None, Field(alias="protocolVersion")] = None
    capabilities: dict[str, Any] | None = None
    client_info: Annotated[Implementation | None, Field(alias="clientInfo")] = None


class InitializeResult(MCPModel):
    """Server's response to an initialize request."""

    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ServerCapabilities
    server_info: Annotated[Implementation, Field(alias="serverInfo")]
    instructions: str | None = None


# =============================================================================
# Content
# =============================================================================


class TextContent(MCPModel):
    """Text provided to or from an LLM."""

    type: Literal["text"] = "text"
    text: str


class ToolCallContent(MCPModel):
    """A suggested tool invocation embedded in a prompt message."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: Annotated[str, Field(alias="toolCallId")]
    name: str
    arguments: dict[str, Any]


# =============================================================================
# Tools
# =============================================================================


class Tool(MCPModel):
    """Definition of a tool the server provides."""

    name: str
    description: str | None = None
    input_schema: Annotated[dict[str, Any], Field(alias="inputSchema")]


class ListToolsResult(MCPModel):
    tools: list[Tool]


class CallToolRequestParams(MCPModel):
    name: str
    arguments: dict[str, Any] | None = None


class CallToolResult(MCPModel):
    """The server's response to a tool call."""

    content: list[TextContent]
    is_error: Annotated[bool | None, Field(alias="isError")] = None


# =============================================================================
# Resources
# =============================================================================


class Resource(MCPModel):
    """A known resource that the server is capable of reading."""

    # Custom schemes such as haute-garonne:// are kept as plain strings.
    uri: str
    name: str
    description: str | None = None
    mime_type: Annotated[str | None, Field(alias="mimeType")] = None


class ListResourcesResult(MCPModel):
    resources: list[Resource]


class ReadResourceRequestParams(MCPModel):
    uri: str


class TextResourceContents(MCPModel):
    """Text contents of a resource."""

    uri: str
    mime_type: Annotated[str | None, Field(alias="mimeType")] = None
    text: str


class ReadResourceResult(MCPModel):
    contents: list[TextResourceContents]
    is_error: Annotated[bool | None, Field(alias="isError")] = None


# =============================================================================
# Prompts
# =============================================================================


class PromptArgument(MCPModel):
    name: str
    description: str | None = None
    required: bool | None = None


class Prompt(MCPModel):
    """A prompt or prompt template that the server offers."""

    name: str
    description: str | None = None
    arguments: list[PromptArgument] | None = None


class ListPromptsResult(MCPModel):
    prompts: list[Prompt]


class GetPromptRequestParams(MCPModel):
    name: str
    arguments: dict[str, Any] | None = None


class PromptMessage(MCPModel):
    """Describes a message returned as part of a prompt."""

    role: Literal["user", "assistant"]
    content: TextContent | ToolCallContent


class GetPromptResult(MCPModel):
    description: str | None = None
    messages: list[PromptMessage]
