"""Async HTTP client for the QRLogin exchange endpoints.

One client serves both roles: the requesting device (generate, poll,
claim) and the scanning device (verify a scanned payload).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from qrlogin_client.errors import QRNetworkError, QRProtocolError, QRServerUnavailableError
from qrlogin_client.payload import QRPayload

logger = logging.getLogger("qrlogin_client.client")

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"

# Gateway and storage outages; the request had no effect on the server.
_UNAVAILABLE_STATUSES = frozenset({502, 503, 504})


@dataclass(frozen=True, slots=True)
class ClientEndpoints:
    """Endpoint paths, relative to the client's ``base_url``."""

    generate: str = "/qr/generate"
    verify: str = "/qr/verify"
    status: str = "/qr/status"
    claim_session: str = "/qr/claim-session"


@dataclass(frozen=True, slots=True)
class GeneratedQR:
    token_id: str
    qr_code: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class QRStatus:
    """One poll result. ``reason`` is the server's error code when expired."""

    status: str
    user_id: str | None = None
    user: dict[str, Any] | None = None
    verified_at: datetime | None = None
    expires_at: datetime | None = None
    session_creation_token: str | None = None
    session_creation_token_expires_at: datetime | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class VerifiedScan:
    user_id: str
    user: dict[str, Any] | None
    session_creation_token: str
    session_creation_token_expires_at: datetime


@dataclass(frozen=True, slots=True)
class ClaimedSession:
    user_id: str
    user: dict[str, Any] | None
    session_token: str
    expires_at: datetime


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class QRLoginClient:
    """Async client for a QRLogin server.

    Args:
        base_url: URL the QR router is mounted at (e.g. ``https://api.example.com/auth``).
        headers: Extra headers sent with every request.
        timeout: HTTP timeout in seconds (default 10).
        endpoints: Endpoint paths, if the server mounts non-default ones.
        client_type: Value of the ``X-Client-Type`` header.
        transport: httpx transport override (e.g. ``ASGITransport`` or ``MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        endpoints: ClientEndpoints | None = None,
        client_type: str = "python",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoints = endpoints or ClientEndpoints()
        default_headers = {"X-Client-Type": client_type}
        default_headers.update(headers or {})
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=default_headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "QRLoginClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------ Requesting device ------

    async def generate(self, *, ttl_minutes: int | None = None) -> GeneratedQR:
        """Ask the server for a new QR token."""
        body = {"ttlMinutes": ttl_minutes} if ttl_minutes is not None else None
        data = await self._request("POST", self._endpoints.generate, json=body)
        return GeneratedQR(
            token_id=data["tokenId"],
            qr_code=data["qrCode"],
            expires_at=_parse_dt(data["expiresAt"]),
        )

    async def poll_status(self, token_id: str) -> QRStatus:
        """Poll a token once.

        An expired or unknown token is a normal outcome of polling and is
        returned as ``status="expired"`` rather than raised.
        """
        try:
            data = await self._request("GET", self._endpoints.status, params={"tokenId": token_id})
        except QRProtocolError as exc:
            if exc.status_code in (404, 410):
                return QRStatus(status=STATUS_EXPIRED, reason=exc.code)
            raise

        return QRStatus(
            status=data["status"],
            user_id=data.get("userId"),
            user=data.get("user"),
            verified_at=_parse_dt(data.get("verifiedAt")),
            expires_at=_parse_dt(data.get("expiresAt")),
            session_creation_token=data.get("sessionCreationToken"),
            session_creation_token_expires_at=_parse_dt(data.get("sessionCreationTokenExpiresAt")),
        )

    async def claim_session(self, session_creation_token: str) -> ClaimedSession:
        """Exchange the handoff token for this device's own session."""
        data = await self._request(
            "POST",
            self._endpoints.claim_session,
            json={"sessionCreationToken": session_creation_token},
        )
        return ClaimedSession(
            user_id=data["userId"],
            user=data.get("user"),
            session_token=data["sessionToken"],
            expires_at=_parse_dt(data["expiresAt"]),
        )

    # ------ Scanning device ------

    async def verify_scan(
        self,
        token_id: str,
        token: str,
        session_token: str | None = None,
    ) -> VerifiedScan:
        """Confirm a scanned code with the scanning device's session.

        ``session_token`` is sent as a bearer token. Without it the request
        relies on the client's default headers or cookies.
        """
        headers = {"Authorization": f"Bearer {session_token}"} if session_token else None
        data = await self._request(
            "POST",
            self._endpoints.verify,
            json={"tokenId": token_id, "token": token},
            headers=headers,
        )
        return VerifiedScan(
            user_id=data["userId"],
            user=data.get("user"),
            session_creation_token=data["sessionCreationToken"],
            session_creation_token_expires_at=_parse_dt(data["sessionCreationTokenExpiresAt"]),
        )

    async def handle_qr_scan(self, raw: str, session_token: str | None = None) -> VerifiedScan:
        """Parse a scanned QR string and verify it in one step.

        Raises:
            QRPayloadError: ``raw`` is not a QR login payload.
            QRProtocolError: The server rejected the verification.
            QRNetworkError: The server could not be reached.
        """
        payload = QRPayload.parse(raw)
        return await self.verify_scan(payload.token_id, payload.token, session_token)

    # ------ Transport ------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._http.request(
                method, path, json=json, params=params, headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise QRNetworkError("Request timeout. Please try again.") from exc
        except httpx.TransportError as exc:
            raise QRNetworkError("Network error. Please check your internet connection.") from exc

        if response.is_success:
            return response.json()
        raise _protocol_error(response)


def _protocol_error(response: httpx.Response) -> QRProtocolError:
    code, message = "http_error", f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        code = detail.get("error", code)
        message = detail.get("message", message)
    elif isinstance(detail, str):
        message = detail

    retry_after = None
    if "Retry-After" in response.headers:
        try:
            retry_after = float(response.headers["Retry-After"])
        except ValueError:
            retry_after = None

    logger.debug("Server rejected request with %s (%s)", response.status_code, code)
    error_cls = QRServerUnavailableError if response.status_code in _UNAVAILABLE_STATUSES else QRProtocolError
    return error_cls(message, code, response.status_code, retry_after=retry_after)
