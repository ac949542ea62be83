"""QRLogin configuration: dataclasses for endpoints, cookies, rate limits, and token lifetimes."""

from dataclasses import dataclass, field
from ipaddress import IPv4Network, IPv6Network
from typing import Literal

MIN_QR_CODE_SIZE = 128
MAX_QR_CODE_SIZE = 512


@dataclass(frozen=True, slots=True)
class EndpointPaths:
    """Paths of the four exchange endpoints, relative to the router prefix."""

    generate: str = "/qr/generate"
    verify: str = "/qr/verify"
    status: str = "/qr/status"
    claim_session: str = "/qr/claim-session"

    def __post_init__(self) -> None:
        for field_name in ("generate", "verify", "status", "claim_session"):
            value = getattr(self, field_name)
            if not value.startswith("/"):
                raise ValueError(f"Endpoint path '{field_name}' must start with '/', got '{value}'")


@dataclass(frozen=True, slots=True)
class CookieConfig:
    """Configuration for the session cookie set by claim-session.

    Pass to QRLogin to have the requesting device's new session delivered as
    a cookie in addition to the JSON body.
    """

    secure: bool = True
    httponly: bool = True
    samesite: Literal["lax", "strict", "none"] = "lax"
    path: str = "/"
    domain: str | None = None
    session_cookie_name: str = "session_token"


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Rate limit shared by all QR exchange endpoints.

    Format: "{count}/{period}" where period is sec/min/hour/day.
    Set ``qr`` to None to disable limiting.

    Example:
        RateLimitConfig()              # 10 requests per minute per client
        RateLimitConfig(qr="30/min")   # Looser limit
    """

    qr: str | None = "10/min"

    def __post_init__(self) -> None:
        from qrlogin.ratelimit import parse_rate_limit

        if self.qr is not None:
            parse_rate_limit(self.qr)


@dataclass(frozen=True, slots=True)
class QRLoginConfig:
    """Internal config built by the QRLogin constructor. Not user-facing."""

    token_ttl_minutes: int = 5
    min_token_ttl_minutes: int = 1
    max_token_ttl_minutes: int = 60
    session_creation_ttl_seconds: int = 300
    qr_code_size: int = 256
    qr_code_margin: int = 2
    server_url: str | None = None
    endpoints: EndpointPaths = field(default_factory=EndpointPaths)
    cookie: CookieConfig | None = None
    rate_limit: RateLimitConfig | None = None
    trust_proxy: bool = False
    trusted_proxy_networks: tuple[IPv4Network | IPv6Network, ...] = ()
    sweep_interval_seconds: float = 60.0

    def __post_init__(self) -> None:
        if not 1 <= self.min_token_ttl_minutes <= self.max_token_ttl_minutes:
            raise ValueError(
                f"Invalid token TTL bounds: {self.min_token_ttl_minutes}..{self.max_token_ttl_minutes}"
            )
        if not self.min_token_ttl_minutes <= self.token_ttl_minutes <= self.max_token_ttl_minutes:
            raise ValueError(
                f"token_ttl_minutes must be between {self.min_token_ttl_minutes} and "
                f"{self.max_token_ttl_minutes}, got {self.token_ttl_minutes}"
            )
        if self.session_creation_ttl_seconds <= 0:
            raise ValueError("session_creation_ttl_seconds must be positive")
        if not MIN_QR_CODE_SIZE <= self.qr_code_size <= MAX_QR_CODE_SIZE:
            raise ValueError(
                f"qr_code_size must be between {MIN_QR_CODE_SIZE} and {MAX_QR_CODE_SIZE}, "
                f"got {self.qr_code_size}"
            )
        if self.qr_code_margin < 0:
            raise ValueError("qr_code_margin must not be negative")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
