from __future__ import annotations

from typing import Any

from haute_garonne_mcp.types.json_rpc import ErrorData, RequestId


class McpError(Exception):
    """Exception surfaced to the peer as a JSON-RPC error object.

    Attributes:
        error: The ErrorData sent back to the client, containing the error
               code, message, and optional additional data
    """

    error: ErrorData

    def __init__(self, error: ErrorData):
        super().__init__(error.message)
        self.error = error


class InvalidMessageError(McpError):
    """Raised when an inbound HTTP body is not a valid JSON-RPC request or notification.

    ``request_id`` holds the id of the offending envelope when one could be
    recovered from the raw JSON, so the error response can echo it.
    """

    def __init__(self, code: int, message: str, *, request_id: RequestId | None = None, data: Any = None):
        super().__init__(ErrorData(code=code, message=message, data=data))
        self.request_id = request_id


class ToolError(Exception):
    """Error in tool operations, reported to the client as an ``isError`` result."""


class CatalogError(Exception):
    """Error talking to the upstream open-data API."""


class SessionClosedError(Exception):
    """Raised when a message is forwarded to a session that is no longer open."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is closed")
        self.session_id = session_id
