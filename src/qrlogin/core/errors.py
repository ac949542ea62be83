"""Errors raised by the token lifecycle engine and the record stores."""


class QRAuthError(Exception):
    """QR exchange error with a stable machine-readable code and HTTP status."""

    def __init__(self, message: str, code: str, status_code: int = 400, **extra):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.extra = extra
        super().__init__(message)


class QRStoreError(QRAuthError):
    """The record store could not be reached. Transient; the caller may retry later."""

    def __init__(self, message: str = "Token store unavailable", **extra):
        super().__init__(message, code="store_unavailable", status_code=503, **extra)
