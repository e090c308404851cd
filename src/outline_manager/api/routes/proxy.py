"""Forwarding boundary for remote management API calls.

Provides:
- GET|POST|PUT|DELETE /api/outline-proxy?targetURL=...[&certSha256=...]

The upstream JSON body is returned with 200; a successful response with no
body (or an unreadable one) comes back as {}. Failures return
{"error": "Error proxying request: <detail>"} with the upstream status, or
500 when there is none.
"""

__all__ = ["router"]

import json
from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from outline_manager.api.deps import ConfigDep, GatewayDep
from outline_manager.api.errors import ErrorCode, error_response
from outline_manager.constants import GATEWAY_METHODS
from outline_manager.gateway import Empty, Err, ErrorKind, Ok

router = APIRouter()

_ERROR_PREFIX = "Error proxying request"

# Status and code returned for each failure kind; UPSTREAM passes its own status
_ERROR_STATUS: dict[ErrorKind, tuple[int, ErrorCode]] = {
    ErrorKind.MISSING_TARGET: (400, ErrorCode.PROXY_MISSING_TARGET),
    ErrorKind.INVALID_METHOD: (405, ErrorCode.METHOD_NOT_ALLOWED),
    ErrorKind.TRANSPORT: (500, ErrorCode.PROXY_TRANSPORT_ERROR),
    ErrorKind.UPSTREAM: (500, ErrorCode.PROXY_UPSTREAM_ERROR),
    ErrorKind.CERT_MISMATCH: (502, ErrorCode.PROXY_CERTIFICATE_MISMATCH),
}


async def _read_body(request: Request) -> tuple[Any, JSONResponse | None]:
    """Read the JSON body for POST/PUT.

    POST requires a JSON body. PUT treats a missing or unreadable body as {}.
    GET and DELETE carry no body.
    """
    if request.method not in ("POST", "PUT"):
        return None, None
    try:
        return await request.json(), None
    except (json.JSONDecodeError, UnicodeDecodeError):
        if request.method == "PUT":
            return {}, None
        return None, error_response(
            400,
            f"{_ERROR_PREFIX}: Request body is not valid JSON",
            ErrorCode.PROXY_INVALID_BODY,
        )


@router.api_route("", methods=sorted(GATEWAY_METHODS), response_model=None)
async def proxy_request(
    request: Request,
    gateway: GatewayDep,
    config: ConfigDep,
    target_url: str | None = Query(default=None, alias="targetURL"),
    cert_sha256: str | None = Query(default=None, alias="certSha256"),
) -> JSONResponse:
    """Forward the request to targetURL.

    When certSha256 is given and pinning is enabled, the target's
    certificate must match it.
    """
    if not target_url:
        return error_response(400, "URL not specified", ErrorCode.PROXY_MISSING_TARGET)

    body, body_error = await _read_body(request)
    if body_error is not None:
        return body_error

    pin = cert_sha256 if config.pin_certificates else None
    result = await gateway.forward(request.method, target_url, body, cert_sha256=pin)

    if isinstance(result, Ok):
        return JSONResponse(content=result.value)
    if isinstance(result, Empty):
        return JSONResponse(content={})

    assert isinstance(result, Err)
    status_code, code = _ERROR_STATUS[result.kind]
    if result.status_code is not None:
        status_code = result.status_code
    return error_response(status_code, f"{_ERROR_PREFIX}: {result.detail}", code)
