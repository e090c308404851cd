"""Durable store boundary for the server document.

Provides:
- GET /api/servers - The document ({servers: []} if none stored yet)
- POST /api/servers - Replace the document
- PUT /api/servers - Replace the document after checking {servers: [...]}

A body carrying "revision" makes POST/PUT a compare-and-swap: the write is
applied only if the stored document is still at that revision, otherwise
409 with the stored revision. Successful writes answer with the new revision.
"""

__all__ = ["router"]

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from outline_manager.api.deps import StoreDep
from outline_manager.api.errors import APIError, ErrorCode
from outline_manager.constants import APP_NAME
from outline_manager.exceptions import DocumentValidationError, RevisionConflictError
from outline_manager.models import ConfigDocument, ServerRecord
from outline_manager.store import ConfigStore

_logger = logging.getLogger(f"{APP_NAME}.api.servers")

router = APIRouter()

_INVALID_FORMAT = "Invalid configuration format"


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DocumentValidationError("Request body is not valid JSON") from e


def _parse_document(
    raw: Any,
    *,
    require_servers: bool,
    carried: list[Any],
) -> tuple[ConfigDocument, int | None]:
    """Validate a request body as a document.

    Args:
        raw: Decoded JSON body.
        require_servers: Reject bodies without a "servers" array (PUT).
        carried: Invalid entries the stored document already holds. A body
            may send these back unchanged; any other invalid entry is rejected.

    Returns:
        The document and the revision the writer based it on (None when the
        body carries none).

    Raises:
        DocumentValidationError: Wrong shape or invalid server entries.
    """
    if not isinstance(raw, dict):
        raise DocumentValidationError(_INVALID_FORMAT)
    if require_servers and not isinstance(raw.get("servers"), list):
        raise DocumentValidationError(_INVALID_FORMAT)

    expected_revision = raw.get("revision")
    if expected_revision is not None and (
        isinstance(expected_revision, bool) or not isinstance(expected_revision, int) or expected_revision < 0
    ):
        raise DocumentValidationError(_INVALID_FORMAT)

    entries = raw.get("servers", [])
    if not isinstance(entries, list):
        raise DocumentValidationError(_INVALID_FORMAT)

    servers: list[ServerRecord] = []
    unreadable: list[Any] = []
    for entry in entries:
        try:
            servers.append(ServerRecord.model_validate(entry))
        except ValidationError as e:
            if entry not in carried:
                raise DocumentValidationError(_INVALID_FORMAT) from e
            unreadable.append(entry)
    return ConfigDocument(servers=servers, unreadable=unreadable), expected_revision


async def _replace(request: Request, store: ConfigStore, *, require_servers: bool, verb: str) -> dict[str, Any]:
    current = await store.read()
    try:
        doc, expected_revision = _parse_document(
            await _read_json(request),
            require_servers=require_servers,
            carried=current.unreadable,
        )
    except DocumentValidationError as e:
        _logger.warning(
            {
                "event": "document_rejected",
                "message": f"Rejected server document: {e}",
                "method": request.method,
            }
        )
        raise APIError(status_code=400, code=ErrorCode.CONFIG_INVALID, message=_INVALID_FORMAT) from e

    try:
        stored = await store.write(doc, expected_revision=expected_revision)
    except RevisionConflictError as e:
        raise APIError(
            status_code=409,
            code=ErrorCode.CONFIG_REVISION_CONFLICT,
            message=str(e),
            details={"revision": e.actual},
        ) from e
    except OSError as e:
        _logger.error(
            {
                "event": "document_save_failed",
                "message": f"Failed to write server document: {e}",
                "error_type": type(e).__name__,
            }
        )
        raise APIError(
            status_code=500,
            code=ErrorCode.CONFIG_SAVE_FAILED,
            message=f"Failed to {verb} servers configuration",
        ) from e

    return {
        "success": True,
        "message": f"Servers configuration {verb}d",
        "revision": stored.revision,
    }


@router.get("", response_model=None)
async def get_servers(store: StoreDep) -> JSONResponse:
    """Return the stored document, including its revision."""
    doc = await store.read()
    return JSONResponse(content=doc.to_json_dict())


@router.post("")
async def save_servers(request: Request, store: StoreDep) -> dict[str, Any]:
    """Replace the document. A body without servers stores an empty list."""
    return await _replace(request, store, require_servers=False, verb="save")


@router.put("")
async def update_servers(request: Request, store: StoreDep) -> dict[str, Any]:
    """Replace the document. The body must carry a servers array."""
    return await _replace(request, store, require_servers=True, verb="update")
