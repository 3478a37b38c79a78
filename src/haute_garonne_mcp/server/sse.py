"""
SSE Server Transport Module

A session starts with a GET that opens a long-lived event stream. The first
event on the stream is ``endpoint``; its data is the URL (relative to the
server root) that the client must POST messages to, including the minted
session id:

    event: endpoint
    data: /message?sessionId=0f6c8c2e-...

Each POST is validated, queued, and acknowledged with ``202 Accepted``. A
per-session worker handles queued messages one at a time, in arrival order,
and emits every response as an ``event: message`` on the stream.

Example usage:
```
    transport = SseServerTransport(registry, endpoint="/message")

    async def handle_sse(scope, receive, send):
        async with transport.connect_sse(scope, receive, send) as session:
            await session.run(server)
```

The registry is what routes later POSTs back to ``session``: the stream
owner registers the session when the stream opens and removes it when the
stream closes or fails.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

import anyio
from sse_starlette.sse import EventSourceResponse, ServerSentEvent
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from haute_garonne_mcp.server.lowlevel import LowLevelServer
from haute_garonne_mcp.server.responses import cors_headers, jsonrpc_error_data_response, jsonrpc_error_response
from haute_garonne_mcp.server.session_registry import SessionRegistry
from haute_garonne_mcp.shared.exceptions import InvalidMessageError, SessionClosedError
from haute_garonne_mcp.shared.http_body import DEFAULT_MAX_BODY_BYTES, BodyTooLargeError, read_request_body
from haute_garonne_mcp.shared.message import parse_message
from haute_garonne_mcp.types.json_rpc import INVALID_REQUEST, IncomingMessage, serialize_message

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 15


class SessionState(Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


class SseSession:
    """One client's event stream plus the queue of messages posted to it."""

    def __init__(
        self,
        *,
        endpoint: str,
        max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES,
        headers: dict[str, str] | None = None,
    ):
        self.session_id = str(uuid4())
        self.created_at = datetime.now(timezone.utc)
        self.state = SessionState.OPENING
        self.endpoint = endpoint
        self._max_body_bytes = max_body_bytes
        self._headers = headers or {}

        self._inbound_writer, self._inbound_reader = anyio.create_memory_object_stream[IncomingMessage](math.inf)
        self._outbound_writer, self._outbound_reader = anyio.create_memory_object_stream[dict[str, Any]](math.inf)

    @property
    def endpoint_url(self) -> str:
        return f"{self.endpoint}?sessionId={self.session_id}"

    def open(self) -> None:
        if self.state is not SessionState.OPENING:
            raise RuntimeError(f"Session {self.session_id} cannot be opened from state {self.state.value}")
        self.state = SessionState.OPEN

    def close(self) -> None:
        """Stop accepting messages and end the stream. Safe to call more than once."""
        self.state = SessionState.CLOSED
        self._inbound_writer.close()
        self._outbound_reader.close()

    async def event_source(self) -> AsyncIterator[ServerSentEvent]:
        yield ServerSentEvent(event="endpoint", data=self.endpoint_url)
        async with self._outbound_reader:
            async for payload in self._outbound_reader:
                logger.debug(f"Sending message via SSE: {payload}")
                yield ServerSentEvent(event="message", data=json.dumps(payload))

    async def run(self, server: LowLevelServer) -> None:
        """Handle queued messages sequentially until the session closes."""
        async with self._inbound_reader, self._outbound_writer:
            async for message in self._inbound_reader:
                if self.state is SessionState.CLOSED:
                    break
                response = await server.handle_message(message)
                if response is None:
                    continue
                try:
                    await self._outbound_writer.send(serialize_message(response))
                except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                    logger.debug(f"Session {self.session_id} closed, discarding response to {response.id!r}")

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.state is not SessionState.OPEN:
            raise SessionClosedError(self.session_id)

        request = Request(scope, receive)
        try:
            body = await read_request_body(request, max_body_bytes=self._max_body_bytes)
            message = parse_message(body)
        except BodyTooLargeError as exc:
            response: Response = jsonrpc_error_response(
                None, INVALID_REQUEST, "Request body too large", status_code=413, data=str(exc), headers=self._headers
            )
        except InvalidMessageError as exc:
            logger.warning(f"Rejected message for session {self.session_id}: {exc.error.message}")
            response = jsonrpc_error_data_response(exc.request_id, exc.error, status_code=400, headers=self._headers)
        else:
            try:
                self._inbound_writer.send_nowait(message)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
                raise SessionClosedError(self.session_id) from exc
            logger.debug(f"Queued {message.method} for session {self.session_id}")
            response = Response("Accepted", status_code=202, headers=self._headers)

        await response(scope, receive, send)


class SseServerTransport:
    """Opens SSE sessions and keeps the registry in step with their lifetime."""

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        endpoint: str,
        max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES,
        ping_interval: int = DEFAULT_PING_INTERVAL,
        allow_origin: str = "*",
    ) -> None:
        self.registry = registry
        self.endpoint = endpoint
        self.max_body_bytes = max_body_bytes
        self.ping_interval = ping_interval
        self.headers = cors_headers(allow_origin)

    def close_session(self, session: SseSession) -> None:
        """Close ``session`` and remove it from the registry. Idempotent."""
        if session.state is SessionState.CLOSED:
            return
        session.close()
        self.registry.remove(session.session_id)
        logger.info(f"SSE session {session.session_id} closed ({len(self.registry)} active)")

    @asynccontextmanager
    async def connect_sse(self, scope: Scope, receive: Receive, send: Send) -> AsyncIterator[SseSession]:
        if scope["type"] != "http":
            logger.error("connect_sse received non-HTTP request")
            raise ValueError("connect_sse can only handle HTTP requests")

        session = SseSession(endpoint=self.endpoint, max_body_bytes=self.max_body_bytes, headers=self.headers)
        # Opened and registered before the endpoint event goes out: an advertised endpoint is always routable.
        session.open()
        self.registry.insert(session)
        logger.info(f"SSE session {session.session_id} opened ({len(self.registry)} active)")

        response = EventSourceResponse(session.event_source(), headers=self.headers, ping=self.ping_interval)

        async def response_wrapper() -> None:
            try:
                await response(scope, receive, send)
            except Exception:
                logger.exception(f"SSE stream for session {session.session_id} failed")
            finally:
                self.close_session(session)

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(response_wrapper)
                yield session
        finally:
            self.close_session(session)
