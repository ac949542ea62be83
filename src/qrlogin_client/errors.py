"""Client-side error taxonomy.

UI layers need to tell the failures apart: the network or the server is
temporarily down (retry later), the server rejected the request (restart
the flow), or the scanned code was never a QRLogin payload (caller bug).
Check ``retryable`` rather than the class when only that matters.
"""


class QRClientError(Exception):
    """Base class for every error raised by ``qrlogin_client``."""

    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class QRNetworkError(QRClientError):
    """Timeout or connection failure. Safe to retry the same call."""

    retryable = True


class QRProtocolError(QRClientError):
    """The server answered with an error.

    ``code`` is the server's machine-readable reason (e.g. ``token_already_used``).
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int,
        *,
        retry_after: float | None = None,
    ) -> None:
        self.code = code
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message)

    def __repr__(self) -> str:
        return f"QRProtocolError(code={self.code!r}, status_code={self.status_code})"


class QRPayloadError(QRClientError):
    """The scanned string is not a valid QR login payload."""


class QRExpiredError(QRProtocolError):
    """The QR code expired before the login completed. Generate a new one.

    ``code`` is the server's reason, or ``local_expiry`` when the client's own
    deadline passed first.
    """

    def __init__(self, message: str = "QR code has expired", code: str = "token_expired") -> None:
        super().__init__(message, code, 410)


class QRServerUnavailableError(QRProtocolError):
    """The server is temporarily unable to answer (e.g. ``store_unavailable``).

    Nothing changed on the server. Safe to retry the same call later.
    """

    retryable = True
