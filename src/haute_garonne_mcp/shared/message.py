"""Parsing of raw HTTP bodies into JSON-RPC messages.

Both the stateless POST path and the in-band session path go through
:func:`parse_message`, so they reject exactly the same inputs.
"""

from __future__ import annotations

import json
import math
from typing import Any

from pydantic import ValidationError

from haute_garonne_mcp.shared.exceptions import InvalidMessageError
from haute_garonne_mcp.types.json_rpc import (
    INVALID_REQUEST,
    PARSE_ERROR,
    IncomingMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    RequestId,
)


def recover_request_id(raw: Any) -> RequestId | None:
    """Best-effort extraction of an id from a JSON value that failed validation."""
    if not isinstance(raw, dict):
        return None
    candidate = raw.get("id")
    if isinstance(candidate, bool):
        return None
    if isinstance(candidate, float) and not math.isfinite(candidate):
        return None
    if isinstance(candidate, str | int | float):
        return candidate
    return None


def parse_message(body: bytes | str) -> IncomingMessage:
    """Parse a raw HTTP body into a request or a notification.

    A message whose ``id`` is absent or ``null`` is a notification.

    Raises:
        InvalidMessageError: with ``PARSE_ERROR`` when the body is not JSON,
            or ``INVALID_REQUEST`` when it is JSON but not a valid envelope.
    """
    try:
        raw = json.loads(body)
    except ValueError as exc:
        raise InvalidMessageError(PARSE_ERROR, "Parse error", data=str(exc)) from exc

    if not isinstance(raw, dict):
        raise InvalidMessageError(INVALID_REQUEST, "Invalid Request", data="Expected a JSON object")

    try:
        if raw.get("id") is None:
            fields = {key: value for key, value in raw.items() if key != "id"}
            return JSONRPCNotification.model_validate(fields)
        return JSONRPCRequest.model_validate(raw)
    except ValidationError as exc:
        raise InvalidMessageError(
            INVALID_REQUEST,
            "Invalid Request",
            request_id=recover_request_id(raw),
            data=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc
