"""Response helpers shared by the dispatcher and the SSE sessions."""

from __future__ import annotations

from typing import Any

from starlette.responses import JSONResponse

from haute_garonne_mcp.types.json_rpc import ErrorData, RequestId, error_response, serialize_message

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"


def cors_headers(allow_origin: str = "*") -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


def jsonrpc_error_response(
    request_id: RequestId | None,
    code: int,
    message: str,
    *,
    status_code: int,
    data: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return jsonrpc_error_data_response(
        request_id, ErrorData(code=code, message=message, data=data), status_code=status_code, headers=headers
    )


def jsonrpc_error_data_response(
    request_id: RequestId | None,
    error: ErrorData,
    *,
    status_code: int,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        serialize_message(error_response(request_id, error)),
        status_code=status_code,
        headers=headers,
    )
