"""Capped reading of JSON-RPC POST bodies."""

from __future__ import annotations

from starlette.requests import Request

DEFAULT_MAX_BODY_BYTES = 1_000_000


class BodyTooLargeError(Exception):
    """The POST body is bigger than the configured cap. Answered with HTTP 413."""

    def __init__(self, max_body_bytes: int):
        super().__init__(f"Request body exceeds max_body_bytes={max_body_bytes}")
        self.max_body_bytes = max_body_bytes


def declared_length(request: Request) -> int | None:
    """The Content-Length header as an int, or None when absent or unparseable."""
    value = request.headers.get("content-length", "")
    return int(value) if value.isdigit() else None


async def read_request_body(request: Request, *, max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES) -> bytes:
    """Read a whole POST body, refusing anything over ``max_body_bytes``.

    ``None`` disables the cap. A declared length over the cap is refused
    before reading; otherwise the stream is counted as it arrives, because
    clients may omit or understate the header.
    """
    if max_body_bytes is None:
        return await request.body()
    if max_body_bytes < 1:
        raise ValueError("max_body_bytes must be positive or None")

    length = declared_length(request)
    if length is not None and length > max_body_bytes:
        raise BodyTooLargeError(max_body_bytes)

    received = 0
    chunks: list[bytes] = []
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_body_bytes:
            raise BodyTooLargeError(max_body_bytes)
        chunks.append(chunk)
    return b"".join(chunks)
