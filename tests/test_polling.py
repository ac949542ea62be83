"""Tests for the requesting-device polling flow."""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from qrlogin_client import (
    QRExpiredError,
    QRLoginClient,
    QRProtocolError,
    QRServerUnavailableError,
    start_qr_auth,
)

pytestmark = pytest.mark.asyncio

BASE = "https://api.example.com"
FAST = 0.01


class FakeServer:
    """Scripted server: successive polls step through ``statuses``.

    Each step is a response factory or an exception to raise; the last
    step repeats.
    """

    def __init__(self, statuses, *, expires_in: float = 300.0, claim=None):
        self.statuses = list(statuses)
        self.expires_at = datetime.now(UTC) + timedelta(seconds=expires_in)
        self.claim = claim
        self.polls = 0
        self.claims = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/qr/generate":
            return httpx.Response(200, json={
                "tokenId": "t1",
                "qrCode": "data:image/png;base64,AAAA",
                "expiresAt": self.expires_at.isoformat(),
            })
        if path == "/qr/status":
            self.polls += 1
            step = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if isinstance(step, Exception):
                raise step
            return step()
        if path == "/qr/claim-session":
            self.claims += 1
            if self.claim is not None:
                return self.claim()
            return _claimed()
        return httpx.Response(404)


def _pending():
    return httpx.Response(200, json={"status": "pending"})


def _completed(handoff_expires_at: str = "2026-01-01T12:06:00+00:00"):
    return httpx.Response(200, json={
        "status": "completed",
        "userId": "u1",
        "sessionCreationToken": "sct",
        "sessionCreationTokenExpiresAt": handoff_expires_at,
    })


def _unavailable():
    return httpx.Response(503, json={
        "detail": {"error": "store_unavailable", "message": "Token store unavailable"},
    })


def _claimed():
    return httpx.Response(200, json={
        "success": True,
        "userId": "u1",
        "user": None,
        "sessionToken": "new-session",
        "expiresAt": "2026-01-08T12:00:00+00:00",
    })


def _expired(status_code=410, code="token_expired"):
    return httpx.Response(status_code, json={
        "detail": {"error": code, "message": "gone", "status": "expired"},
    })


def _client(server: FakeServer) -> QRLoginClient:
    return QRLoginClient(BASE, transport=httpx.MockTransport(server))


class TestStartQRAuth:
    async def test_success_claims_session(self):
        server = FakeServer([_pending, _pending, _completed])
        generated, successes, errors = [], [], []

        async with _client(server) as client:
            handle = await start_qr_auth(
                client,
                poll_interval=FAST,
                on_qr_generated=lambda qr_code, token_id: generated.append(token_id),
                on_success=successes.append,
                on_error=errors.append,
            )
            session = await handle.wait()

        assert handle.token_id == "t1"
        assert generated == ["t1"]
        assert session.session_token == "new-session"
        assert successes == [session]
        assert errors == []
        assert server.polls == 3
        assert server.claims == 1
        assert handle.done()

    async def test_async_callbacks(self):
        server = FakeServer([_completed])
        successes = []

        async def on_success(session):
            successes.append(session)

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST, on_success=on_success)
            await handle.wait()

        assert len(successes) == 1

    async def test_server_expiry_stops_polling(self):
        server = FakeServer([_pending, _expired])
        errors = []

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST, on_error=errors.append)
            with pytest.raises(QRExpiredError) as exc_info:
                await handle.wait()

        assert exc_info.value.code == "token_expired"
        assert errors == [exc_info.value]
        assert server.polls == 2
        assert server.claims == 0

    async def test_not_found_is_expiry(self):
        server = FakeServer([lambda: _expired(404, "token_not_found")])
        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST)
            with pytest.raises(QRExpiredError) as exc_info:
                await handle.wait()
        assert exc_info.value.code == "token_not_found"

    async def test_local_deadline(self):
        server = FakeServer([_pending], expires_in=0.2)
        errors = []

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST, on_error=errors.append)
            with pytest.raises(QRExpiredError) as exc_info:
                await handle.wait()

        assert exc_info.value.code == "local_expiry"
        assert len(errors) == 1

    async def test_network_errors_retried(self):
        request = httpx.Request("GET", f"{BASE}/qr/status")
        server = FakeServer([
            httpx.ConnectError("down", request=request),
            httpx.ReadTimeout("slow", request=request),
            _completed,
        ])

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST)
            session = await handle.wait()

        assert session.user_id == "u1"
        assert server.polls == 3

    async def test_rate_limit_retried(self):
        def limited():
            return httpx.Response(429, json={"detail": {"error": "rate_limit_exceeded", "message": "x"}})

        server = FakeServer([limited, _completed])

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST)
            await handle.wait()

        assert server.polls == 2

    async def test_store_outage_retried(self):
        server = FakeServer([_pending, _unavailable, _completed])
        errors = []

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST, on_error=errors.append)
            session = await handle.wait()

        assert session.session_token == "new-session"
        assert errors == []
        assert server.polls == 3
        assert server.claims == 1

    async def test_claim_outage_retried(self):
        handoff_expiry = (datetime.now(UTC) + timedelta(minutes=5)).isoformat()
        outcomes = [_unavailable, _claimed]
        server = FakeServer([lambda: _completed(handoff_expiry)], claim=lambda: outcomes.pop(0)())

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST)
            session = await handle.wait()

        assert session.session_token == "new-session"
        assert server.claims == 2

    async def test_claim_outage_after_handoff_expiry_reported(self):
        server = FakeServer([_completed], claim=_unavailable)

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST)
            with pytest.raises(QRServerUnavailableError):
                await handle.wait()

        assert server.claims == 1

    async def test_slow_claim_outlives_code_expiry(self):
        async def slow_claim():
            await asyncio.sleep(0.4)
            return _claimed()

        server = FakeServer([_completed], expires_in=0.2, claim=slow_claim)
        errors = []

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST, on_error=errors.append)
            session = await handle.wait()

        assert session.session_token == "new-session"
        assert errors == []
        assert server.claims == 1

    async def test_claim_rejection_reported(self):
        def rejected():
            return httpx.Response(410, json={
                "detail": {"error": "session_token_expired", "message": "Session creation token expired"},
            })

        server = FakeServer([_completed], claim=rejected)
        errors = []

        async with _client(server) as client:
            handle = await start_qr_auth(client, poll_interval=FAST, on_error=errors.append)
            with pytest.raises(QRProtocolError) as exc_info:
                await handle.wait()

        assert exc_info.value.code == "session_token_expired"
        assert errors == [exc_info.value]

    async def test_cancel(self):
        server = FakeServer([_pending])
        successes, errors = [], []

        async with _client(server) as client:
            handle = await start_qr_auth(
                client, poll_interval=FAST, on_success=successes.append, on_error=errors.append,
            )
            await asyncio.sleep(FAST * 5)
            handle.cancel()
            with pytest.raises(asyncio.CancelledError):
                await handle.wait()
            polls_at_cancel = server.polls
            await asyncio.sleep(FAST * 5)

        assert handle.done()
        assert server.polls == polls_at_cancel
        assert successes == []
        assert errors == []

    async def test_generate_failure_raises_directly(self):
        def handler(request):
            return httpx.Response(503, json={"detail": {"error": "store_unavailable", "message": "x"}})

        async with QRLoginClient(BASE, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(QRProtocolError) as exc_info:
                await start_qr_auth(client, poll_interval=FAST)
        assert exc_info.value.code == "store_unavailable"

    async def test_invalid_interval(self):
        async with _client(FakeServer([_pending])) as client:
            with pytest.raises(ValueError):
                await start_qr_auth(client, poll_interval=0)
