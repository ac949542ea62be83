"""QRLogin: cross-device login by scanning a QR code."""

__version__ = "0.1.0"

from qrlogin.alembic_helper import alembic_filters
from qrlogin.config import CookieConfig, EndpointPaths, RateLimitConfig
from qrlogin.core.engine import ClaimResult, GeneratedToken, QRTokenEngine, TokenStatus, VerifyResult
from qrlogin.core.errors import QRAuthError, QRStoreError
from qrlogin.core.records import QRPayload, QRTokenRecord, TokenState
from qrlogin.core.sessions import (
    Identity,
    IssuedSession,
    JWTSessionIssuer,
    SessionIssueError,
    SessionIssuer,
    UserNotFoundError,
)
from qrlogin.core.store import InMemoryTokenStore, SQLTokenStore, TokenStore
from qrlogin.events import (
    RateLimitExceeded,
    SessionClaimed,
    TokenExpired,
    TokenGenerated,
    TokenVerified,
    VerifyFailed,
)
from qrlogin.qrlogin import QRLogin

__all__ = [
    "ClaimResult",
    "CookieConfig",
    "EndpointPaths",
    "GeneratedToken",
    "Identity",
    "InMemoryTokenStore",
    "IssuedSession",
    "JWTSessionIssuer",
    "QRAuthError",
    "QRLogin",
    "QRPayload",
    "QRStoreError",
    "QRTokenEngine",
    "QRTokenRecord",
    "RateLimitConfig",
    "RateLimitExceeded",
    "SQLTokenStore",
    "SessionClaimed",
    "SessionIssueError",
    "SessionIssuer",
    "TokenExpired",
    "TokenGenerated",
    "TokenState",
    "TokenStatus",
    "TokenStore",
    "TokenVerified",
    "UserNotFoundError",
    "VerifyFailed",
    "VerifyResult",
    "alembic_filters",
]
