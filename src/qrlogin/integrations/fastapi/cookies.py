"""Session cookie delivery for the claim-session endpoint."""

from __future__ import annotations

from fastapi import Response

from qrlogin.config import QRLoginConfig
from qrlogin.core.engine import ClaimResult
from qrlogin.utils import utc_now


def set_session_cookie(config: QRLoginConfig, response: Response, claim: ClaimResult) -> None:
    """Set the new session cookie on the response if cookie mode is enabled."""
    if config.cookie is None:
        return
    c = config.cookie
    max_age = max(int((claim.expires_at - utc_now()).total_seconds()), 0)
    response.set_cookie(
        key=c.session_cookie_name,
        value=claim.session_token,
        max_age=max_age,
        secure=c.secure,
        httponly=c.httponly,
        samesite=c.samesite,
        path=c.path,
        domain=c.domain,
    )
