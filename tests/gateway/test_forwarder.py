"""Unit tests for ProxyGateway.forward().

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

import json

import httpx
import pytest

from outline_manager.exceptions import ManagementApiError
from outline_manager.gateway import EMPTY, Empty, Err, ErrorKind, Ok, ProxyGateway, redact_target, unwrap
from tests.conftest import API_URL, SECRET, FakeOutlineServer, RecordingHandler


def _gateway(handler, logger=None, **kwargs) -> ProxyGateway:
    return ProxyGateway(timeout=5, transport=httpx.MockTransport(handler), logger=logger, **kwargs)


# ============================================================================
# Success shapes
# ============================================================================


class TestSuccess:
    """2xx responses normalize to Ok or Empty."""

    async def test_json_body_is_ok(self, gateway: ProxyGateway) -> None:
        """Given a JSON 2xx body, returns Ok with the parsed value."""
        # Act
        result = await gateway.forward("GET", f"{API_URL}/server")

        # Assert
        assert isinstance(result, Ok)
        assert result.value["name"] == "Outline Server"

    async def test_empty_body_is_empty(self, gateway: ProxyGateway) -> None:
        """Given 204 No Content, returns Empty."""
        # Act
        result = await gateway.forward("PUT", f"{API_URL}/name", {"name": "x"})

        # Assert
        assert result == EMPTY
        assert isinstance(result, Empty)

    async def test_whitespace_body_is_empty(self) -> None:
        """Given a 200 whose body is only whitespace, returns Empty."""
        # Arrange
        gw = _gateway(lambda request: httpx.Response(200, text="  \n"))

        # Act
        result = await gw.forward("DELETE", "http://host.test/x")

        # Assert
        assert isinstance(result, Empty)

    async def test_unparsable_body_is_ok_empty_dict(self, app_logger, log_handler: RecordingHandler) -> None:
        """Given a 2xx with invalid JSON, returns Ok({}) and logs it."""
        # Arrange
        gw = _gateway(lambda request: httpx.Response(200, text="<html>"), logger=app_logger)

        # Act
        result = await gw.forward("GET", "http://host.test/x")

        # Assert
        assert result == Ok({})
        assert "malformed_response" in log_handler.events

    async def test_method_is_case_insensitive(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given a lowercase verb, forwards it uppercased."""
        # Act
        result = await gateway.forward("get", f"{API_URL}/access-keys")

        # Assert
        assert isinstance(result, Ok)
        assert fake_server.requests[-1].method == "GET"


# ============================================================================
# Request shape
# ============================================================================


class TestRequest:
    """What the gateway sends upstream."""

    async def test_body_sent_as_json(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given a body, sends it JSON-encoded with a JSON content type."""
        # Act
        await gateway.forward("POST", f"{API_URL}/access-keys", {"name": "Carol"})

        # Assert
        request = fake_server.requests[-1]
        assert json.loads(request.content) == {"name": "Carol"}
        assert request.headers["content-type"] == "application/json"

    async def test_get_sends_no_body(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given GET without a body, sends an empty body."""
        # Act
        await gateway.forward("GET", f"{API_URL}/server")

        # Assert
        assert fake_server.requests[-1].content == b""
        assert fake_server.requests[-1].headers["content-type"] == "application/json"

    async def test_query_string_forwarded(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given a target with a query string, forwards it unchanged."""
        # Act
        await gateway.forward("GET", f"{API_URL}/access-keys?limit=2&offset=1")

        # Assert
        assert fake_server.requests[-1].url.params["limit"] == "2"
        assert fake_server.requests[-1].url.params["offset"] == "1"


# ============================================================================
# Failures
# ============================================================================


class TestFailures:
    """forward() reports failures as Err instead of raising."""

    @pytest.mark.parametrize("target", [None, "", "   "])
    async def test_missing_target(self, gateway: ProxyGateway, target: str | None) -> None:
        """Given no target URL, returns MISSING_TARGET."""
        # Act
        result = await gateway.forward("GET", target)

        # Assert
        assert result == Err(ErrorKind.MISSING_TARGET, "URL not specified")

    @pytest.mark.parametrize("target", ["not a url", "ftp://host.test/x", "/relative/path"])
    async def test_invalid_target(self, gateway: ProxyGateway, fake_server: FakeOutlineServer, target: str) -> None:
        """Given a target that is not an absolute http(s) URL, returns MISSING_TARGET without sending."""
        # Act
        result = await gateway.forward("GET", target)

        # Assert
        assert isinstance(result, Err)
        assert result.kind == ErrorKind.MISSING_TARGET
        assert fake_server.requests == []

    async def test_unsupported_method(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given PATCH, returns INVALID_METHOD without sending."""
        # Act
        result = await gateway.forward("PATCH", f"{API_URL}/server")

        # Assert
        assert isinstance(result, Err)
        assert result.kind == ErrorKind.INVALID_METHOD
        assert fake_server.requests == []

    async def test_non_2xx_is_upstream_error(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given a 404, returns UPSTREAM with the status."""
        # Act
        result = await gateway.forward("DELETE", f"{API_URL}/access-keys/does-not-exist")

        # Assert
        assert result == Err(ErrorKind.UPSTREAM, "HTTP Error: 404 Not Found", status_code=404)

    async def test_server_error_is_upstream_error(self, gateway: ProxyGateway, fake_server: FakeOutlineServer) -> None:
        """Given a 500, returns UPSTREAM with the status."""
        # Arrange
        fake_server.fail("GET", "server", 500)

        # Act
        result = await gateway.forward("GET", f"{API_URL}/server")

        # Assert
        assert isinstance(result, Err)
        assert result.kind == ErrorKind.UPSTREAM
        assert result.status_code == 500
        assert result.detail == "HTTP Error: 500 Internal Server Error"

    async def test_connect_error_is_transport_error(self, app_logger, log_handler: RecordingHandler) -> None:
        """Given a connection failure, returns TRANSPORT."""

        # Arrange
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        gw = _gateway(refuse, logger=app_logger)

        # Act
        result = await gw.forward("GET", "http://host.test/x")

        # Assert
        assert result == Err(ErrorKind.TRANSPORT, "Connection refused")
        assert "gateway_transport_error" in log_handler.events

    async def test_timeout_is_transport_error(self, app_logger, log_handler: RecordingHandler) -> None:
        """Given a read timeout, returns TRANSPORT and logs gateway_timeout."""

        # Arrange
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        gw = _gateway(slow, logger=app_logger)

        # Act
        result = await gw.forward("GET", "http://host.test/x")

        # Assert
        assert isinstance(result, Err)
        assert result.kind == ErrorKind.TRANSPORT
        assert result.detail.startswith("Request timed out")
        assert "gateway_timeout" in log_handler.events


# ============================================================================
# Certificate pinning
# ============================================================================


class TestPinning:
    """Fingerprint pinning applies to https targets only."""

    async def test_https_without_verifiable_certificate_fails_closed(self) -> None:
        """Given https and a pin but no TLS info, returns CERT_MISMATCH before reading the body."""
        # Arrange
        gw = _gateway(lambda request: httpx.Response(200, json={"ok": True}))

        # Act
        result = await gw.forward("GET", "https://host.test:8081/secret/server", cert_sha256="AB" * 32)

        # Assert
        assert isinstance(result, Err)
        assert result.kind == ErrorKind.CERT_MISMATCH

    async def test_http_target_ignores_pin(self, gateway: ProxyGateway) -> None:
        """Given an http target, the pin is not checked."""
        # Act
        result = await gateway.forward("GET", f"{API_URL}/server", cert_sha256="AB" * 32)

        # Assert
        assert isinstance(result, Ok)

    async def test_no_pin_skips_check_on_https(self) -> None:
        """Given https without a pin, forwards normally."""
        # Arrange
        gw = _gateway(lambda request: httpx.Response(200, json={"ok": True}))

        # Act
        result = await gw.forward("GET", "https://host.test:8081/secret/server")

        # Assert
        assert result == Ok({"ok": True})


# ============================================================================
# Logging
# ============================================================================


class TestLogging:
    """Request/response logging never exposes the access secret."""

    async def test_secret_masked_in_logs(
        self, gateway: ProxyGateway, log_handler: RecordingHandler
    ) -> None:
        """Given a target with the secret path, logs mask it."""
        # Act
        await gateway.forward("GET", f"{API_URL}/access-keys")

        # Assert
        request_log = log_handler.find("gateway_request")
        response_log = log_handler.find("gateway_response")
        assert SECRET not in request_log["target"]
        assert SECRET not in response_log["message"]
        assert response_log["status_code"] == 200

    async def test_body_preview_truncated(self, fake_server: FakeOutlineServer, app_logger, log_handler) -> None:
        """Given body_preview_chars, logged bodies are cut to that length."""
        # Arrange
        gw = ProxyGateway(transport=fake_server.transport, logger=app_logger, body_preview_chars=10)

        # Act
        await gw.forward("GET", f"{API_URL}/access-keys")

        # Assert
        body = log_handler.find("gateway_response")["body"]
        assert body.endswith("...")
        assert len(body) == 13


class TestRedactTarget:
    """Tests for redact_target()."""

    def test_masks_first_path_segment(self) -> None:
        """Given an Outline API URL, masks the secret segment only."""
        # Act
        rendered = redact_target(httpx.URL("https://1.2.3.4:8081/abcDEF/access-keys?limit=2"))

        # Assert
        assert rendered == "https://1.2.3.4:8081/***/access-keys?limit=2"

    def test_root_path_unchanged(self) -> None:
        """Given no path, renders the origin."""
        # Act
        rendered = redact_target(httpx.URL("http://host.test"))

        # Assert
        assert rendered == "http://host.test"


class TestUnwrap:
    """Tests for unwrap()."""

    def test_ok_returns_value(self) -> None:
        assert unwrap(Ok({"a": 1})) == {"a": 1}

    def test_empty_returns_none(self) -> None:
        assert unwrap(EMPTY) is None

    def test_err_raises_with_kind_and_status(self) -> None:
        """Given Err, raises ManagementApiError carrying its details."""
        # Act & Assert
        with pytest.raises(ManagementApiError) as exc_info:
            unwrap(Err(ErrorKind.UPSTREAM, "HTTP Error: 404 Not Found", status_code=404))

        assert exc_info.value.kind == ErrorKind.UPSTREAM
        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "HTTP Error: 404 Not Found"
