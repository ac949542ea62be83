"""QRLogin client: generate, poll and claim on one device, verify on the other."""

__version__ = "0.1.0"

from qrlogin_client.client import (
    ClaimedSession,
    ClientEndpoints,
    GeneratedQR,
    QRLoginClient,
    QRStatus,
    VerifiedScan,
)
from qrlogin_client.errors import (
    QRClientError,
    QRExpiredError,
    QRNetworkError,
    QRPayloadError,
    QRProtocolError,
    QRServerUnavailableError,
)
from qrlogin_client.payload import QRPayload
from qrlogin_client.polling import PollingHandle, start_qr_auth

__all__ = [
    "ClaimedSession",
    "ClientEndpoints",
    "GeneratedQR",
    "PollingHandle",
    "QRClientError",
    "QRExpiredError",
    "QRLoginClient",
    "QRNetworkError",
    "QRPayload",
    "QRPayloadError",
    "QRProtocolError",
    "QRServerUnavailableError",
    "QRStatus",
    "VerifiedScan",
    "start_qr_auth",
]
