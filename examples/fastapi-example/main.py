"""Example app using QRLogin.

A kiosk (or desktop browser) shows a QR code; a phone that is already
signed in scans it and the kiosk receives its own session.

  - POST /auth/qr/generate        kiosk: new QR code
  - POST /auth/qr/verify          phone: confirm the scanned code
  - GET  /auth/qr/status          kiosk: poll until "completed"
  - POST /auth/qr/claim-session   kiosk: exchange the handoff token
  - POST /dev-login               demo only: get a phone session

Run:  uvicorn main:app --reload --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from pydantic import BaseModel

from qrlogin import CookieConfig, Identity, JWTSessionIssuer, QRLogin, RateLimitConfig

USERS = {
    "alice": {"email": "alice@example.com", "name": "Alice"},
    "bob": {"email": "bob@example.com", "name": "Bob"},
}


async def load_user(user_id: str):
    """Look the user up in YOUR user table. None = user no longer exists."""
    return USERS.get(user_id)


issuer = JWTSessionIssuer(
    os.environ.get("JWT_SECRET", "dev-only-secret-change-me-0123456789abcdef"),
    ttl_seconds=60 * 60 * 24 * 7,
    user_loader=load_user,
)

qr = QRLogin(
    database_url=os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./qrlogin.db"),
    session_issuer=issuer,
    server_url=os.environ.get("SERVER_URL"),  # None = taken from each request
    cookie=CookieConfig(secure=False),  # secure=False for localhost dev
    rate_limit=RateLimitConfig(qr="30/min"),
    # trust_proxy=True,  # behind nginx / a load balancer
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await qr.migrate()
    qr.start_sweeper()
    yield
    await qr.dispose()


app = FastAPI(title="QRLogin Example", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Event hooks: audit logs, analytics, alerts.
# Errors are logged, never propagate.
# ---------------------------------------------------------------------------


@qr.on("token_verified")
async def on_verified(event):
    print(f"[hook] QR {event.token_id} approved by {event.user_id}")


@qr.on("verify_failed")
async def on_verify_failed(event):
    print(f"[hook] Verify failed for {event.token_id}: {event.reason}")


@qr.on("session_claimed")
async def on_claimed(event):
    print(f"[hook] New session {event.session_id} for {event.user_id}")


@qr.on("rate_limit_exceeded")
async def on_rate_limited(event):
    print(f"[hook] Rate limited {event.ip_address} on {event.endpoint}")


# ---------------------------------------------------------------------------
# Mount router
# ---------------------------------------------------------------------------

app.include_router(qr.fastapi_router(), prefix="/auth")


# ---------------------------------------------------------------------------
# App routes
# ---------------------------------------------------------------------------


class DevLoginRequest(BaseModel):
    user_id: str


@app.post("/dev-login")
async def dev_login(data: DevLoginRequest):
    """Sign the phone in without a password. Demo only, remove in production."""
    issued = await issuer.create_session(data.user_id)
    return {"session_token": issued.token, "expires_at": issued.expires_at}


@app.get("/me")
async def me(identity: Identity = Depends(qr.current_identity)):
    """Protected route: works with the phone's token or the kiosk's cookie."""
    return {"user_id": identity.user_id, "user": identity.user}
