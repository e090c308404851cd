"""Custom exceptions for outline-manager.

Exceptions are organized by the layer that raises them:

Remote management API:
    - ManagementApiError: transport or upstream failure, one readable message

Durable document:
    - DocumentValidationError: document replace with the wrong shape
    - RevisionConflictError: compare-and-swap write rejected
    - DurableTierError: durable tier unreachable or refused the request

Registration:
    - ImportFormatError: server import payload could not be parsed

Startup:
    - ConfigurationError: config missing or invalid (strict load only)

Unreadable documents and malformed 2xx bodies are not exceptions: they are
logged and read as empty.

Usage:
    from outline_manager.exceptions import ManagementApiError
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "DocumentValidationError",
    "DurableTierError",
    "ImportFormatError",
    "ManagementApiError",
    "OutlineManagerError",
    "RevisionConflictError",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from outline_manager.gateway.result import ErrorKind


class OutlineManagerError(Exception):
    """Base class for all outline-manager errors."""


class ManagementApiError(OutlineManagerError):
    """A call to a server's management API failed.

    Attributes:
        message: Human-readable error, suitable for display as-is.
        kind: Gateway error kind (transport, upstream, ...).
        status_code: Upstream HTTP status, None for transport failures.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: "ErrorKind | None" = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class DocumentValidationError(OutlineManagerError):
    """Document does not have the `{servers: [...]}` shape."""


class RevisionConflictError(OutlineManagerError):
    """Durable tier rejected a write made against a stale revision.

    Attributes:
        expected: Revision the writer based its change on.
        actual: Revision the durable tier currently holds.
    """

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Revision conflict: document is at revision {actual}, write was based on {expected}")
        self.expected = expected
        self.actual = actual


class ImportFormatError(OutlineManagerError):
    """Server import payload was rejected. Nothing was written."""


class ConfigurationError(OutlineManagerError):
    """Configuration is invalid or incomplete.

    Raised when:
    - Config file contains invalid JSON
    - Config file fails Pydantic validation
    - Config file cannot be read
    """


class DurableTierError(OutlineManagerError):
    """Durable tier could not be reached or refused the request.

    Raised by RemoteTier for transport failures and unexpected HTTP statuses.
    """
