"""Forward a single request to a remote management endpoint.

ProxyGateway relays GET/POST/PUT/DELETE to an arbitrary absolute URL with
certificate-chain verification disabled (management endpoints are
self-signed), optionally pinning the certificate fingerprint, and
normalizes the outcome into a GatewayResult:

    2xx, empty body        -> Empty
    2xx, JSON body         -> Ok(parsed)
    2xx, unparsable body   -> Ok({})          (logged, not surfaced)
    non-2xx                -> Err(UPSTREAM, status_code=...)
    connect/DNS/timeout    -> Err(TRANSPORT)
    no/invalid target      -> Err(MISSING_TARGET)

forward() does not raise for any of these.
"""

from __future__ import annotations

__all__ = [
    "ProxyGateway",
    "redact_target",
]

import json
import logging
import time
from typing import Any

import httpx

from outline_manager.constants import (
    BODY_METHODS,
    DEFAULT_BODY_PREVIEW_CHARS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    GATEWAY_METHODS,
)
from outline_manager.utils.logging.logger_setup import get_component_logger

from .pinning import fingerprints_match, peer_certificate_fingerprint
from .result import EMPTY, Err, ErrorKind, GatewayResult, Ok


def redact_target(url: httpx.URL) -> str:
    """Render a target URL for logs with its secret path segment masked.

    Outline API URLs carry the access secret as the first path segment
    (https://host:port/<secret>/access-keys).
    """
    segments = url.path.split("/")
    if len(segments) > 1 and segments[1]:
        segments[1] = "***"
    rendered = f"{url.scheme}://{url.netloc.decode('ascii')}{'/'.join(segments)}"
    if url.query:
        rendered = f"{rendered}?{url.query.decode('ascii')}"
    return rendered


def _parse_target(target_url: str) -> httpx.URL | None:
    """Parse an absolute http(s) URL, or None if it is not one."""
    try:
        url = httpx.URL(target_url.strip())
    except httpx.InvalidURL:
        return None
    if url.scheme not in ("http", "https") or not url.host:
        return None
    return url


class ProxyGateway:
    """Relays requests to remote management APIs.

    Owns one httpx.AsyncClient. Use as an async context manager or call
    aclose() when done.

    Usage:
        async with ProxyGateway(timeout=30) as gateway:
            result = await gateway.forward("GET", "https://host:1234/secret/server")
            if isinstance(result, Ok):
                ...
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        body_preview_chars: int = DEFAULT_BODY_PREVIEW_CHARS,
        logger: logging.Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            timeout: Transport timeout in seconds for connect/read/write.
            body_preview_chars: Bodies are truncated to this length in logs.
            logger: Parent logger; the gateway logs to its "gateway" child.
            transport: Custom httpx transport (tests inject MockTransport).
        """
        self._logger = get_component_logger(logger, "gateway")
        self._body_preview_chars = body_preview_chars
        self._client = httpx.AsyncClient(
            verify=False,
            timeout=timeout,
            transport=transport,
            follow_redirects=False,
        )

    async def __aenter__(self) -> "ProxyGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _preview(self, text: str) -> str:
        limit = self._body_preview_chars
        if len(text) <= limit:
            return text
        return text[:limit] + "..."

    async def forward(
        self,
        method: str,
        target_url: str | None,
        body: Any = None,
        *,
        cert_sha256: str | None = None,
    ) -> GatewayResult:
        """Forward one request and normalize the response.

        Args:
            method: GET, POST, PUT or DELETE (case-insensitive).
            target_url: Absolute http(s) URL of the remote endpoint.
            body: JSON-serializable body, sent when not None.
            cert_sha256: Pinned fingerprint. When set and the target is
                https, a certificate mismatch yields Err(CERT_MISMATCH)
                before the body is read.

        Returns:
            Ok, Empty or Err (see module docstring).
        """
        method = method.upper()
        if method not in GATEWAY_METHODS:
            return Err(ErrorKind.INVALID_METHOD, f"Unsupported method: {method}")

        if not target_url or not target_url.strip():
            return Err(ErrorKind.MISSING_TARGET, "URL not specified")
        url = _parse_target(target_url)
        if url is None:
            return Err(ErrorKind.MISSING_TARGET, "Invalid target URL: an absolute http(s) URL is required")

        target = redact_target(url)
        request_log: dict[str, Any] = {
            "event": "gateway_request",
            "message": f"Proxying {method} request to {target}",
            "method": method,
            "target": target,
        }
        if body is not None:
            request_log["body"] = self._preview(json.dumps(body))
        self._logger.info(request_log)

        request_kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json"}}
        if body is not None:
            request_kwargs["json"] = body
        elif method in BODY_METHODS:
            request_kwargs["content"] = b""

        start_time = time.monotonic()
        try:
            async with self._client.stream(method, url, **request_kwargs) as response:
                if cert_sha256 is not None and url.scheme == "https":
                    presented = peer_certificate_fingerprint(response)
                    if presented is None or not fingerprints_match(presented, cert_sha256):
                        self._logger.warning(
                            {
                                "event": "certificate_mismatch",
                                "message": f"Certificate fingerprint mismatch for {target}",
                                "target": target,
                                "presented": presented,
                            }
                        )
                        return Err(
                            ErrorKind.CERT_MISMATCH,
                            "Server certificate does not match the stored fingerprint",
                        )
                await response.aread()
        except httpx.TimeoutException as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            self._logger.warning(
                {
                    "event": "gateway_timeout",
                    "message": f"Timeout proxying {method} request to {target}",
                    "target": target,
                    "duration_ms": duration_ms,
                }
            )
            return Err(ErrorKind.TRANSPORT, f"Request timed out: {str(e) or type(e).__name__}")
        except httpx.HTTPError as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            self._logger.warning(
                {
                    "event": "gateway_transport_error",
                    "message": f"Failed to reach {target}",
                    "target": target,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "duration_ms": duration_ms,
                }
            )
            return Err(ErrorKind.TRANSPORT, str(e) or type(e).__name__)

        return self._interpret(response, method, target, start_time)

    def _interpret(
        self,
        response: httpx.Response,
        method: str,
        target: str,
        start_time: float,
    ) -> GatewayResult:
        """Map a fully read response onto a GatewayResult."""
        status = response.status_code
        text = response.text
        duration_ms = int((time.monotonic() - start_time) * 1000)

        self._logger.info(
            {
                "event": "gateway_response",
                "message": f"Response received from {target}, status: {status}",
                "method": method,
                "target": target,
                "status_code": status,
                "duration_ms": duration_ms,
                "body": self._preview(text),
            }
        )

        if 200 <= status < 300:
            if not text.strip():
                return EMPTY
            try:
                return Ok(json.loads(text))
            except json.JSONDecodeError as e:
                # Upstream accepted the request; an unreadable body is not a failure
                self._logger.warning(
                    {
                        "event": "malformed_response",
                        "message": f"Unparsable JSON in successful response from {target}",
                        "target": target,
                        "status_code": status,
                        "error_message": str(e),
                    }
                )
                return Ok({})

        detail = f"HTTP Error: {status} {response.reason_phrase}".rstrip()
        self._logger.warning(
            {
                "event": "upstream_error",
                "message": f"{detail} from {target}",
                "target": target,
                "status_code": status,
                "body": self._preview(text),
            }
        )
        return Err(ErrorKind.UPSTREAM, detail, status_code=status)
