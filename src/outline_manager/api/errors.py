"""Structured API error handling.

This module provides:
- ErrorCode enum with domain-grouped error codes
- APIError exception class for structured error responses
- error_response() for routes that return errors instead of raising
- Global exception handlers for consistent error formatting

Every error body keeps the `{"error": "<message>"}` shape that existing
callers of the proxy and servers boundaries rely on, plus a code for
programmatic handling.

Usage:
    from outline_manager.api.errors import APIError, ErrorCode

    raise APIError(
        status_code=409,
        code=ErrorCode.CONFIG_REVISION_CONFLICT,
        message="Revision conflict: ...",
        details={"revision": 4},
    )

Response format:
    {
        "error": "Revision conflict: ...",
        "code": "CONFIG_REVISION_CONFLICT",
        "revision": 4
    }
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ErrorCode",
    "api_error_handler",
    "error_response",
    "http_exception_handler",
    "validation_error_handler",
]

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ErrorCode(str, Enum):
    """API error codes for programmatic handling.

    Codes are namespaced by domain:
    - PROXY_*: Forwarding to a remote management API
    - CONFIG_*: Durable server document
    - SERVER_*: Connection test
    - VALIDATION_*: Input validation errors
    - INTERNAL_*: Internal server errors
    """

    # Forwarding errors (400, 4xx/5xx passthrough)
    PROXY_MISSING_TARGET = "PROXY_MISSING_TARGET"
    PROXY_INVALID_BODY = "PROXY_INVALID_BODY"
    PROXY_TRANSPORT_ERROR = "PROXY_TRANSPORT_ERROR"
    PROXY_UPSTREAM_ERROR = "PROXY_UPSTREAM_ERROR"
    PROXY_CERTIFICATE_MISMATCH = "PROXY_CERTIFICATE_MISMATCH"

    # Document errors (400, 409, 500)
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_REVISION_CONFLICT = "CONFIG_REVISION_CONFLICT"
    CONFIG_SAVE_FAILED = "CONFIG_SAVE_FAILED"

    # Connection test errors (400, 500)
    SERVER_FIELDS_REQUIRED = "SERVER_FIELDS_REQUIRED"
    SERVER_UNREACHABLE = "SERVER_UNREACHABLE"

    # Resource errors (404, 405)
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Validation errors (400, 422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Internal errors (500, 503)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class APIError(HTTPException):
    """Structured API error with error code.

    Extends HTTPException to provide consistent structured error responses
    with error codes for programmatic handling.

    Attributes:
        status_code: HTTP status code.
        code: Error code from ErrorCode enum.
        error_message: Human-readable error message.
        error_details: Optional fields merged into the response body.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize structured API error.

        Args:
            status_code: HTTP status code.
            code: Error code from ErrorCode enum.
            message: Human-readable error message.
            details: Optional fields merged into the body (e.g., current revision).
        """
        self.code = code
        self.error_message = message
        self.error_details = details

        detail: dict[str, Any] = {"error": message, "code": code.value}
        if details:
            detail.update(details)

        super().__init__(status_code=status_code, detail=detail)


def error_response(
    status_code: int,
    message: str,
    code: ErrorCode | None = None,
) -> JSONResponse:
    """Create standardized error response.

    Args:
        status_code: HTTP status code.
        message: Error message for the "error" field.
        code: Optional error code.

    Returns:
        JSONResponse with error structure.
    """
    content: dict[str, Any] = {"error": message}
    if code is not None:
        content["code"] = code.value
    return JSONResponse(status_code=status_code, content=content)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with structured response.

    Args:
        request: FastAPI request object.
        exc: APIError exception instance.

    Returns:
        JSONResponse with the structured error body.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with structured response.

    Converts Pydantic validation errors to our structured format while
    preserving the detailed field-level error information.

    Args:
        request: FastAPI request object.
        exc: RequestValidationError from Pydantic.

    Returns:
        JSONResponse with structured error detail including validation_errors.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    loc = first_error.get("loc", [])
    msg = first_error.get("msg", "Validation error")

    if len(errors) == 1:
        # Filter out 'body' from location path
        field_parts = [str(part) for part in loc if part != "body"]
        field_name = ".".join(field_parts)
        message = f"{field_name}: {msg}" if field_name else msg
    else:
        message = f"{len(errors)} validation errors"

    content: dict[str, Any] = {
        "error": message,
        "code": ErrorCode.VALIDATION_ERROR.value,
        "validation_errors": [
            {
                "loc": list(e.get("loc", [])),
                "msg": e.get("msg", ""),
                "type": e.get("type", ""),
            }
            for e in errors
        ],
    }

    return JSONResponse(status_code=422, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTPException (404, 405, ...) with the error body shape.

    Passes through already-structured details from APIError.

    Args:
        request: FastAPI request object.
        exc: HTTPException (Starlette or FastAPI).

    Returns:
        JSONResponse with structured error body.
    """
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"
    return error_response(exc.status_code, message, _status_to_error_code(exc.status_code))


def _status_to_error_code(status_code: int) -> ErrorCode:
    """Map HTTP status code to default error code.

    Used for wrapping plain HTTPException in structured format.

    Args:
        status_code: HTTP status code.

    Returns:
        Appropriate ErrorCode for the status code.
    """
    mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.METHOD_NOT_ALLOWED,
        409: ErrorCode.CONFIG_REVISION_CONFLICT,
        500: ErrorCode.INTERNAL_ERROR,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }
    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)
