"""ASGI entry point that classifies every inbound request.

Classification, first match wins:

1. ``OPTIONS`` on any path: CORS preflight.
2. ``GET <message_path>``: open an SSE session.
3. ``POST <message_path>...``: stateful when a live session id is given or
   can be inferred, stateless otherwise.
4. ``GET <health_path>``: health check.
5. Anything else: 404 listing the available endpoints.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import Message, Receive, Scope, Send

from haute_garonne_mcp.server.lowlevel import LowLevelServer
from haute_garonne_mcp.server.responses import cors_headers, jsonrpc_error_data_response, jsonrpc_error_response
from haute_garonne_mcp.server.session_registry import SessionRegistry
from haute_garonne_mcp.server.sse import SseServerTransport
from haute_garonne_mcp.settings import Settings
from haute_garonne_mcp.shared.exceptions import InvalidMessageError, SessionClosedError
from haute_garonne_mcp.shared.http_body import BodyTooLargeError, read_request_body
from haute_garonne_mcp.shared.message import parse_message
from haute_garonne_mcp.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSONRPCNotification,
    JSONRPCResultResponse,
    serialize_message,
)

logger = logging.getLogger(__name__)


class _TrackingSend:
    """Wraps ``send`` and remembers whether the response has started."""

    def __init__(self, send: Send):
        self._send = send
        self.response_started = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.response_started = True
        await self._send(message)


class RequestDispatcher:
    def __init__(
        self,
        *,
        server: LowLevelServer,
        registry: SessionRegistry,
        transport: SseServerTransport,
        settings: Settings,
    ) -> None:
        self.server = server
        self.registry = registry
        self.transport = transport
        self.settings = settings
        self.headers = cors_headers(settings.cors_allow_origin)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        tracking_send = _TrackingSend(send)
        try:
            await self._dispatch(scope, receive, tracking_send)
        except Exception as exc:
            logger.exception(f"Error handling {scope.get('method')} {scope.get('path')}")
            if tracking_send.response_started:
                return
            response = jsonrpc_error_response(
                None, INTERNAL_ERROR, "Internal error", status_code=500, data=str(exc), headers=self.headers
            )
            await response(scope, receive, send)

    async def _dispatch(self, scope: Scope, receive: Receive, send: _TrackingSend) -> None:
        request = Request(scope, receive)
        method = request.method
        path = request.url.path
        message_path = self.settings.message_path

        if method == "OPTIONS":
            response: Response = Response(status_code=200, headers=self.headers)
        elif method == "GET" and path == message_path:
            async with self.transport.connect_sse(scope, receive, send) as session:
                await session.run(self.server)
            return
        elif method == "POST" and path.startswith(message_path):
            session_id = self._resolve_session_id(request)
            if session_id is None:
                response = await self._handle_stateless(request)
            else:
                await self._handle_stateful(session_id, scope, receive, send)
                return
        elif method == "GET" and path == self.settings.health_path:
            response = self._health()
        else:
            response = JSONResponse(
                {"error": "Not found", "availableEndpoints": [message_path, self.settings.health_path]},
                status_code=404,
                headers=self.headers,
            )

        await response(scope, receive, send)

    def _resolve_session_id(self, request: Request) -> str | None:
        session_id = request.query_params.get("sessionId") or None
        if session_id is not None:
            return session_id

        sole = self.registry.sole_session_id()
        if sole is not None:
            logger.info(f"No sessionId in request, using the only active session {sole}")
            return sole
        if len(self.registry) > 1:
            logger.warning(
                f"No sessionId in request and {len(self.registry)} sessions are active "
                f"({', '.join(self.registry.session_ids())}); handling it statelessly"
            )
        return None

    async def _handle_stateless(self, request: Request) -> Response:
        try:
            body = await read_request_body(request, max_body_bytes=self.settings.max_body_bytes)
        except BodyTooLargeError as exc:
            return jsonrpc_error_response(
                None, INVALID_REQUEST, "Request body too large", status_code=413, data=str(exc), headers=self.headers
            )

        try:
            message = parse_message(body)
        except InvalidMessageError as exc:
            logger.warning(f"Rejected stateless message: {exc.error.message}")
            return jsonrpc_error_data_response(exc.request_id, exc.error, status_code=400, headers=self.headers)

        if isinstance(message, JSONRPCNotification):
            await self.server.handle_notification(message)
            return Response(status_code=204, headers=self.headers)

        logger.debug(f"Stateless request {message.id!r}: {message.method}")
        result = await self.server.handle_request(message)
        status_code = 200 if isinstance(result, JSONRPCResultResponse) else 500
        return JSONResponse(serialize_message(result), status_code=status_code, headers=self.headers)

    async def _handle_stateful(self, session_id: str, scope: Scope, receive: Receive, send: _TrackingSend) -> None:
        session = self.registry.get(session_id)
        if session is None:
            await self._session_not_found(session_id)(scope, receive, send)
            return

        try:
            await session.handle_post_message(scope, receive, send)
        except SessionClosedError:
            logger.info(f"Session {session_id} closed before the message could be delivered")
            if not send.response_started:
                await self._session_not_found(session_id)(scope, receive, send)
        except Exception as exc:
            logger.exception(f"Error forwarding message to session {session_id}")
            if not send.response_started:
                response = JSONResponse(
                    {"error": "Internal server error", "message": str(exc)}, status_code=500, headers=self.headers
                )
                await response(scope, receive, send)

    def _session_not_found(self, session_id: str) -> Response:
        logger.warning(f"No active session for sessionId {session_id}")
        return JSONResponse(
            {
                "error": "SSE connection not found for session",
                "sessionId": session_id,
                "activeSessions": self.registry.session_ids(),
            },
            status_code=404,
            headers=self.headers,
        )

    def _health(self) -> Response:
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "activeSessions": self.registry.session_ids(),
                "sessionCount": len(self.registry),
            },
            headers=self.headers,
        )
