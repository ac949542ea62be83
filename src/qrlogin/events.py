"""QRLogin event system: typed events and hook registry.

Developers register hooks via @qr.on("event_name") to react to the QR login
flow (audit logs, push notifications to the scanning device, analytics).
Hooks run after the store write and are fail-open: errors are logged and
never break the exchange.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable

logger = logging.getLogger("qrlogin.events")


# ---------------------------------------------------------------------------
# Event dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Event:
    """Base event: all events carry a timestamp."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class TokenGenerated(Event):
    """Fired when a requesting device obtains a new QR token."""
    token_id: str = ""
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TokenVerified(Event):
    """Fired when a scanning device successfully verifies a QR token."""
    token_id: str = ""
    user_id: str = ""


@dataclass(frozen=True, slots=True)
class VerifyFailed(Event):
    """Fired when a verify attempt is rejected.

    ``reason`` distinguishes not_found / invalid_secret / expired / already_used,
    which the HTTP response deliberately does not.
    """
    token_id: str = ""
    user_id: str | None = None
    reason: str = ""


@dataclass(frozen=True, slots=True)
class SessionClaimed(Event):
    """Fired when the requesting device exchanges its handoff token for a session."""
    token_id: str = ""
    user_id: str = ""
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class TokenExpired(Event):
    """Fired when a dead token is observed and evicted on read."""
    token_id: str = ""
    stage: str = "pending"


@dataclass(frozen=True, slots=True)
class RateLimitExceeded(Event):
    """Fired when a client exceeds the QR endpoint rate limit."""
    endpoint: str = ""
    ip_address: str | None = None
    limit: str = ""
    key_type: str = "ip"


# ---------------------------------------------------------------------------
# Event name mapping
# ---------------------------------------------------------------------------

EVENT_MAP: dict[str, type[Event]] = {
    "token_generated": TokenGenerated,
    "token_verified": TokenVerified,
    "verify_failed": VerifyFailed,
    "session_claimed": SessionClaimed,
    "token_expired": TokenExpired,
    "rate_limit_exceeded": RateLimitExceeded,
}


# ---------------------------------------------------------------------------
# Hook registry
# ---------------------------------------------------------------------------

HookCallback = Callable[..., Any]


class HookRegistry:
    """Registry for event hook callbacks. Supports multiple listeners per event."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[HookCallback]] = {}

    def register(self, event_name: str, callback: HookCallback) -> None:
        """Register a callback for an event name."""
        if event_name not in EVENT_MAP:
            raise ValueError(
                f"Unknown event '{event_name}'. "
                f"Valid events: {', '.join(sorted(EVENT_MAP))}"
            )
        self._hooks.setdefault(event_name, []).append(callback)

    def get_hooks(self, event_name: str) -> list[HookCallback]:
        return self._hooks.get(event_name, [])

    async def emit(self, event_name: str, event: Event) -> None:
        """Fire all registered callbacks for an event. Fail-open: errors are logged."""
        for callback in self.get_hooks(event_name):
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    loop = asyncio.get_running_loop()
                    await loop.run_in_executor(None, callback, event)
            except Exception:
                logger.exception(
                    "Hook error in '%s' handler %s.%s",
                    event_name,
                    getattr(callback, "__module__", "?"),
                    getattr(callback, "__qualname__", repr(callback)),
                )
