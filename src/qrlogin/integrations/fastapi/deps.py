"""FastAPI dependencies: factories bound to a session issuer and config."""

from fastapi import HTTPException, Request

from qrlogin.config import CookieConfig
from qrlogin.core.sessions import Identity, SessionIssuer


def create_identity_dep(issuer: SessionIssuer, cookie: CookieConfig | None = None):
    """Factory: dependency that authenticates the scanning device's existing session.

    Reads ``Authorization: Bearer <token>``, falling back to the session
    cookie when cookie mode is enabled.
    """

    def _extract_token(request: Request) -> str:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:]

        if cookie is not None:
            token = request.cookies.get(cookie.session_cookie_name)
            if token:
                return token

        raise HTTPException(
            status_code=401,
            detail={"error": "unauthenticated", "message": "No authenticated user"},
        )

    async def current_identity(request: Request) -> Identity:
        identity = await issuer.authenticate(_extract_token(request))
        if identity is None:
            raise HTTPException(
                status_code=401,
                detail={"error": "unauthenticated", "message": "Invalid or expired session"},
            )
        return identity

    return current_identity
