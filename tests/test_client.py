"""Tests for the httpx client: payload parsing, error taxonomy, wire mapping."""

import json

import httpx
import pytest

from qrlogin_client import (
    ClientEndpoints,
    QRClientError,
    QRLoginClient,
    QRNetworkError,
    QRPayload,
    QRPayloadError,
    QRProtocolError,
    QRServerUnavailableError,
)

BASE = "https://api.example.com/auth"


def _client(handler, **kwargs) -> QRLoginClient:
    return QRLoginClient(BASE, transport=httpx.MockTransport(handler), **kwargs)


def _error(status: int, code: str, /, message: str = "nope", **extra) -> httpx.Response:
    return httpx.Response(status, json={"detail": {"error": code, "message": message, **extra}})


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


class TestPayload:
    def test_parse(self):
        raw = '{"tokenId":"t","token":"s","serverUrl":"https://x"}'
        payload = QRPayload.parse(raw)
        assert payload == QRPayload(token_id="t", token="s", server_url="https://x")
        assert QRPayload.parse(payload.to_json()) == payload

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            '{"tokenId": "t", "token": "s"}',
            '{"tokenId": "", "token": "s", "serverUrl": "https://x"}',
            '{"tokenId": 1, "token": "s", "serverUrl": "https://x"}',
        ],
    )
    def test_parse_rejects(self, raw):
        with pytest.raises(QRPayloadError):
            QRPayload.parse(raw)

    def test_error_classes_distinct(self):
        assert issubclass(QRPayloadError, QRClientError)
        assert issubclass(QRNetworkError, QRClientError)
        assert issubclass(QRProtocolError, QRClientError)
        assert QRNetworkError.retryable is True
        assert QRProtocolError.retryable is False
        assert QRPayloadError.retryable is False
        assert issubclass(QRServerUnavailableError, QRProtocolError)
        assert QRServerUnavailableError.retryable is True


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestClientRequests:
    async def test_generate(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "tokenId": "t1",
                "qrCode": "data:image/png;base64,AAAA",
                "expiresAt": "2026-01-01T12:05:00Z",
            })

        async with _client(handler) as client:
            generated = await client.generate(ttl_minutes=2)

        assert generated.token_id == "t1"
        assert generated.expires_at.tzinfo is not None
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/auth/qr/generate"
        assert seen[0].headers["X-Client-Type"] == "python"
        assert json.loads(seen[0].content) == {"ttlMinutes": 2}

    async def test_poll_completed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["tokenId"] == "t1"
            return httpx.Response(200, json={
                "status": "completed",
                "userId": "u1",
                "user": {"name": "User One"},
                "verifiedAt": "2026-01-01T12:01:00+00:00",
                "sessionCreationToken": "sct",
                "sessionCreationTokenExpiresAt": "2026-01-01T12:06:00+00:00",
            })

        async with _client(handler) as client:
            status = await client.poll_status("t1")

        assert status.status == "completed"
        assert status.user_id == "u1"
        assert status.user == {"name": "User One"}
        assert status.session_creation_token == "sct"

    @pytest.mark.parametrize("code,status_code", [("token_not_found", 404), ("token_expired", 410)])
    async def test_poll_expired_is_a_status(self, code, status_code):
        def handler(request):
            return _error(status_code, code, status="expired")

        async with _client(handler) as client:
            status = await client.poll_status("t1")

        assert status.status == "expired"
        assert status.reason == code

    async def test_poll_other_errors_raise(self):
        async with _client(lambda r: _error(400, "missing_token_id")) as client:
            with pytest.raises(QRProtocolError) as exc_info:
                await client.poll_status("")
        assert exc_info.value.code == "missing_token_id"
        assert exc_info.value.status_code == 400

    async def test_verify_scan_sends_bearer(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "userId": "u1",
                "user": None,
                "sessionCreationToken": "sct",
                "sessionCreationTokenExpiresAt": "2026-01-01T12:06:00+00:00",
            })

        async with _client(handler) as client:
            result = await client.verify_scan("t1", "s1", session_token="phone-token")

        assert result.session_creation_token == "sct"
        assert seen[0].headers["Authorization"] == "Bearer phone-token"
        assert json.loads(seen[0].content) == {"tokenId": "t1", "token": "s1"}

    async def test_handle_qr_scan_bad_payload_never_hits_network(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with _client(handler) as client:
            with pytest.raises(QRPayloadError):
                await client.handle_qr_scan("garbage")

    async def test_protocol_error(self):
        async with _client(lambda r: _error(409, "token_already_used", "QR code already used")) as client:
            with pytest.raises(QRProtocolError) as exc_info:
                await client.verify_scan("t1", "s1")
        assert exc_info.value.code == "token_already_used"
        assert exc_info.value.message == "QR code already used"

    async def test_store_outage_is_retryable(self):
        async with _client(lambda r: _error(503, "store_unavailable", "Token store unavailable")) as client:
            with pytest.raises(QRServerUnavailableError) as exc_info:
                await client.poll_status("t1")
        assert exc_info.value.retryable is True
        assert exc_info.value.code == "store_unavailable"

    async def test_server_failure_is_not_retryable(self):
        async with _client(lambda r: _error(500, "session_creation_failed")) as client:
            with pytest.raises(QRProtocolError) as exc_info:
                await client.claim_session("sct")
        assert not isinstance(exc_info.value, QRServerUnavailableError)
        assert exc_info.value.retryable is False

    async def test_rate_limited_carries_retry_after(self):
        def handler(request):
            return httpx.Response(
                429,
                json={"detail": {"error": "rate_limit_exceeded", "message": "slow down"}},
                headers={"Retry-After": "7"},
            )

        async with _client(handler) as client:
            with pytest.raises(QRProtocolError) as exc_info:
                await client.generate()
        assert exc_info.value.retry_after == 7.0

    async def test_non_json_error_body(self):
        async with _client(lambda r: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(QRProtocolError) as exc_info:
                await client.generate()
        assert exc_info.value.status_code == 502
        assert exc_info.value.code == "http_error"

    async def test_timeout_is_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(QRNetworkError, match="Request timeout"):
                await client.generate()

    async def test_connect_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(QRNetworkError, match="Network error"):
                await client.claim_session("sct")

    async def test_custom_endpoints_and_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={
                "success": True,
                "userId": "u1",
                "user": None,
                "sessionToken": "new",
                "expiresAt": "2026-01-08T12:00:00+00:00",
            })

        client = _client(
            handler,
            endpoints=ClientEndpoints(claim_session="/login/claim"),
            headers={"X-App": "kiosk"},
            client_type="kiosk",
        )
        async with client:
            claimed = await client.claim_session("sct")

        assert claimed.session_token == "new"
        assert seen[0].url.path == "/auth/login/claim"
        assert seen[0].headers["X-App"] == "kiosk"
        assert seen[0].headers["X-Client-Type"] == "kiosk"
