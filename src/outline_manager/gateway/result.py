"""Tagged result of a forwarded request.

A forward either succeeded with a parsed body (Ok), succeeded with no
content (Empty), or failed (Err). Callers branch with isinstance() instead
of guessing at the shape of the remote JSON.
"""

from __future__ import annotations

__all__ = [
    "EMPTY",
    "Empty",
    "Err",
    "ErrorKind",
    "GatewayResult",
    "Ok",
    "unwrap",
]

from dataclasses import dataclass
from enum import Enum
from typing import Any

from outline_manager.exceptions import ManagementApiError


class ErrorKind(str, Enum):
    """Why a forward failed."""

    MISSING_TARGET = "MissingTarget"
    INVALID_METHOD = "InvalidMethod"
    TRANSPORT = "TransportError"
    UPSTREAM = "UpstreamError"
    CERT_MISMATCH = "CertificateMismatch"


@dataclass(frozen=True)
class Ok:
    """2xx with a body. Unparsable bodies arrive here as {}."""

    value: Any


@dataclass(frozen=True)
class Empty:
    """2xx with an empty body."""


@dataclass(frozen=True)
class Err:
    """Forward failed.

    Attributes:
        kind: Failure category.
        detail: Human-readable description.
        status_code: Upstream HTTP status (UPSTREAM only).
    """

    kind: ErrorKind
    detail: str
    status_code: int | None = None


EMPTY = Empty()

GatewayResult = Ok | Empty | Err


def unwrap(result: GatewayResult) -> Any:
    """Return the payload of a successful result.

    Args:
        result: Result of ProxyGateway.forward().

    Returns:
        Parsed body for Ok, None for Empty.

    Raises:
        ManagementApiError: For Err, carrying kind and status code.
    """
    if isinstance(result, Ok):
        return result.value
    if isinstance(result, Empty):
        return None
    raise ManagementApiError(result.detail, kind=result.kind, status_code=result.status_code)
