"""Handler registry and dispatch for the MCP method surface.

No I/O and no transport knowledge: both the stateless POST path and the SSE
sessions hand parsed messages to :meth:`LowLevelServer.handle_message` and
decide themselves how to deliver what comes back.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from haute_garonne_mcp.shared.exceptions import McpError
from haute_garonne_mcp.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    ErrorData,
    IncomingMessage,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
)
from haute_garonne_mcp.types.mcp import (
    DEFAULT_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    Implementation,
    InitializeRequestParams,
    InitializeResult,
    ServerCapabilities,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

RequestHandler = Callable[[dict[str, Any]], Awaitable[BaseModel | dict[str, Any] | None]]


def validate_params(model: type[ModelT], params: dict[str, Any] | None) -> ModelT:
    """Validate request params, turning failures into an INVALID_PARAMS protocol error."""
    try:
        return model.model_validate(params or {})
    except ValidationError as exc:
        raise McpError(
            ErrorData(
                code=INVALID_PARAMS,
                message="Invalid params",
                data=exc.errors(include_url=False, include_context=False, include_input=False),
            )
        ) from exc


class LowLevelServer:
    """Name to handler table plus the protocol machinery around it.

    ``initialize`` and ``ping`` are built in; everything else is registered:

        server = LowLevelServer(name="my-server", version="1.0")

        @server.request_handler("tools/list")
        async def list_tools(params: dict[str, Any]) -> ListToolsResult:
            return ListToolsResult(tools=[...])

    Notifications (``notifications/*``) are acknowledged and never fail.
    """

    def __init__(self, *, name: str, version: str, instructions: str | None = None) -> None:
        self.name = name
        self.version = version
        self.instructions = instructions
        self._request_handlers: dict[str, RequestHandler] = {
            "initialize": self._initialize,
            "ping": self._ping,
        }

    def request_handler(self, method: str) -> Callable[[RequestHandler], RequestHandler]:
        """Decorator to register a request handler for a given method."""

        def decorator(fn: RequestHandler) -> RequestHandler:
            self._request_handlers[method] = fn
            return fn

        return decorator

    @property
    def methods(self) -> list[str]:
        return list(self._request_handlers)

    def get_capabilities(self) -> ServerCapabilities:
        """Derive capabilities from registered handlers."""
        caps = ServerCapabilities()
        if "tools/list" in self._request_handlers or "tools/call" in self._request_handlers:
            caps.tools = {}
        if "prompts/list" in self._request_handlers or "prompts/get" in self._request_handlers:
            caps.prompts = {}
        if "resources/list" in self._request_handlers or "resources/read" in self._request_handlers:
            caps.resources = {}
        return caps

    async def _initialize(self, params: dict[str, Any]) -> InitializeResult:
        init_params = validate_params(InitializeRequestParams, params)
        requested = init_params.protocol_version
        protocol_version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else DEFAULT_PROTOCOL_VERSION
        if init_params.client_info is not None:
            logger.info(
                f"Initialize from {init_params.client_info.name} {init_params.client_info.version} "
                f"(protocol {requested}, negotiated {protocol_version})"
            )
        return InitializeResult(
            protocol_version=protocol_version,
            capabilities=self.get_capabilities(),
            server_info=Implementation(name=self.name, version=self.version),
            instructions=self.instructions,
        )

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def dispatch(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        """Run the handler for ``method`` and return its result as a JSON object.

        Returns ``None`` for notification methods. Raises :class:`McpError`
        for unknown methods; any other handler exception propagates.
        """
        if method.startswith("notifications/"):
            logger.debug(f"Received notification: {method}")
            return None

        handler = self._request_handlers.get(method)
        if handler is None:
            raise McpError(
                ErrorData(code=METHOD_NOT_FOUND, message="Method not found", data=f"Unknown method: {method}")
            )

        result = await handler(params or {})
        # Handler can return a BaseModel (serialized) or a raw dict
        if isinstance(result, BaseModel):
            return result.model_dump(mode="json", by_alias=True, exclude_none=True)
        if isinstance(result, dict):
            return result
        return {}

    async def handle_request(self, request: JSONRPCRequest) -> JSONRPCResponse:
        """Dispatch a request and wrap the outcome in exactly one response envelope."""
        try:
            result = await self.dispatch(request.method, request.params)
        except McpError as exc:
            logger.info(f"Request {request.id!r} ({request.method}) failed: {exc.error.message}")
            return JSONRPCErrorResponse(id=request.id, error=exc.error)
        except Exception as exc:
            logger.exception("Handler error for %s", request.method)
            return JSONRPCErrorResponse(
                id=request.id,
                error=ErrorData(code=INTERNAL_ERROR, message="Internal error", data=str(exc)),
            )
        return JSONRPCResultResponse(id=request.id, result=result or {})

    async def handle_notification(self, notification: JSONRPCNotification) -> None:
        """Run a notification for its side effects; failures are logged and discarded."""
        try:
            await self.dispatch(notification.method, notification.params)
        except Exception:
            logger.exception("Notification handler error for %s", notification.method)

    async def handle_message(self, message: IncomingMessage) -> JSONRPCResponse | None:
        if isinstance(message, JSONRPCRequest):
            return await self.handle_request(message)
        await self.handle_notification(message)
        return None
