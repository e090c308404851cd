"""Connection test for a server that is not registered yet.

Provides:
- POST /api/server - {apiUrl, certSha256} -> {success: true, data: ServerInfo}
"""

__all__ = ["router"]

import json
from typing import Any

from fastapi import APIRouter, Request

from outline_manager.api.deps import ConfigDep, GatewayDep
from outline_manager.api.errors import APIError, ErrorCode
from outline_manager.exceptions import ManagementApiError
from outline_manager.management import check_connection

router = APIRouter()


@router.post("")
async def check_server_connection(request: Request, gateway: GatewayDep, config: ConfigDep) -> dict[str, Any]:
    """Fetch server info from apiUrl to check the URL and fingerprint.

    Raises:
        APIError: 400 if apiUrl or certSha256 is missing, 500 if the server
            cannot be reached.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    api_url = body.get("apiUrl") if isinstance(body, dict) else None
    cert_sha256 = body.get("certSha256") if isinstance(body, dict) else None
    if not isinstance(api_url, str) or not api_url or not isinstance(cert_sha256, str) or not cert_sha256:
        raise APIError(
            status_code=400,
            code=ErrorCode.SERVER_FIELDS_REQUIRED,
            message="API URL and certificate are required",
        )

    try:
        info = await check_connection(gateway, api_url, cert_sha256, pin_certificate=config.pin_certificates)
    except ManagementApiError as e:
        raise APIError(
            status_code=500,
            code=ErrorCode.SERVER_UNREACHABLE,
            message="Unable to connect to server. Check API URL and certificate.",
            details={"reason": e.message},
        ) from e

    return {"success": True, "data": info.to_json_dict()}
