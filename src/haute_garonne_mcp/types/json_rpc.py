"""JSON-RPC 2.0 envelope models shared by every transport."""

from __future__ import annotations

from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION: Final[str] = "2.0"

PARSE_ERROR: Final[int] = -32700
INVALID_REQUEST: Final[int] = -32600
METHOD_NOT_FOUND: Final[int] = -32601
INVALID_PARAMS: Final[int] = -32602
INTERNAL_ERROR: Final[int] = -32603

# Opaque: echoed back exactly as received. Booleans and non-finite numbers are not ids.
RequestId = Annotated[int, Field(strict=True)] | Annotated[float, Field(strict=True, allow_inf_nan=False)] | str


class JSONRPCBase(BaseModel):
    """Base class for all JSON-RPC messages."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION


class JSONRPCRequest(JSONRPCBase):
    """A request that expects a response."""

    # Inbound envelopes must state the version explicitly.
    jsonrpc: Literal["2.0"]
    id: RequestId
    method: Annotated[str, Field(min_length=1)]
    params: dict[str, Any] | None = None


class JSONRPCNotification(JSONRPCBase):
    """A notification which does not expect a response."""

    jsonrpc: Literal["2.0"]
    method: Annotated[str, Field(min_length=1)]
    params: dict[str, Any] | None = None


class ErrorData(BaseModel):
    """Error information in a JSON-RPC error response."""

    model_config = ConfigDict(extra="allow")

    code: int
    message: str
    data: Any | None = None


class JSONRPCResultResponse(JSONRPCBase):
    """A successful (non-error) response to a request."""

    id: RequestId | None
    result: dict[str, Any]


class JSONRPCErrorResponse(JSONRPCBase):
    """A response to a request that indicates an error occurred."""

    id: RequestId | None = None
    error: ErrorData


JSONRPCResponse = JSONRPCResultResponse | JSONRPCErrorResponse
IncomingMessage = JSONRPCRequest | JSONRPCNotification


def serialize_message(message: JSONRPCBase) -> dict[str, Any]:
    """Dump a message for the wire.

    ``None`` values are dropped except the response ``id``, which stays
    present as ``null`` when the request id could not be determined.
    """
    payload = message.model_dump(by_alias=True, exclude_none=True)
    if isinstance(message, JSONRPCResultResponse | JSONRPCErrorResponse):
        payload["id"] = message.id
    return payload


def error_response(request_id: RequestId | None, error: ErrorData) -> JSONRPCErrorResponse:
    return JSONRPCErrorResponse(id=request_id, error=error)
