"""FastAPI QR exchange router: thin mapping of the engine onto four endpoints."""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.concurrency import run_in_threadpool

from qrlogin.config import QRLoginConfig
from qrlogin.core.engine import STATUS_EXPIRED, QRTokenEngine
from qrlogin.core.errors import QRAuthError
from qrlogin.core.qr_image import render_qr_data_url
from qrlogin.core.schemas import (
    ClaimSessionRequest,
    ClaimSessionResponse,
    GenerateRequest,
    GenerateResponse,
    StatusResponse,
    VerifyRequest,
    VerifyResponse,
)
from qrlogin.core.sessions import Identity
from qrlogin.events import HookRegistry, RateLimitExceeded
from qrlogin.integrations.fastapi.cookies import set_session_cookie
from qrlogin.integrations.fastapi.proxy import get_client_ip
from qrlogin.ratelimit import RateLimitStore, parse_rate_limit

_EXPIRED_MESSAGES = {
    "not_found": ("token_not_found", 404, "Token not found"),
    "expired": ("token_expired", 410, "Token expired"),
    "handoff_expired": ("session_token_expired", 410, "Session creation token expired"),
    "claimed": ("token_claimed", 410, "Token already claimed"),
}


def _qr_error(e: QRAuthError) -> HTTPException:
    detail = {"error": e.code, "message": e.message}
    if e.extra:
        detail.update(e.extra)
    return HTTPException(status_code=e.status_code, detail=detail)


def _create_rate_limit_dep(
    config: QRLoginConfig,
    hooks: HookRegistry,
    store: RateLimitStore,
    limit_str: str,
):
    """Dependency enforcing the one bucket shared by every QR endpoint, keyed by client address."""
    limit = parse_rate_limit(limit_str)

    async def check_rate_limit(request: Request):
        ip = get_client_ip(request, config) or "unknown"
        allowed, _remaining, retry_after = store.hit(f"ip:{ip}:qr", limit)
        if allowed:
            return

        await hooks.emit("rate_limit_exceeded", RateLimitExceeded(
            endpoint=request.url.path,
            ip_address=ip,
            limit=limit_str,
            key_type="ip",
        ))
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limit_exceeded",
                "message": "Too many requests. Please try again later.",
            },
            headers={"Retry-After": str(int(retry_after) + 1)},
        )

    return check_rate_limit


def create_qr_router(
    engine: QRTokenEngine,
    config: QRLoginConfig,
    hooks: HookRegistry,
    identity_dep: Callable,
    *,
    rate_limit_store: RateLimitStore | None = None,
) -> APIRouter:
    """Create a FastAPI router with the generate / verify / status / claim-session endpoints.

    Args:
        engine: The token lifecycle engine.
        config: The QRLoginConfig instance.
        hooks: The HookRegistry for rate limit events.
        identity_dep: Dependency returning the scanning device's ``Identity``.
        rate_limit_store: Counter storage; limiting is off when None.
    """
    dependencies = []
    rl = config.rate_limit
    if rl is not None and rl.qr and rate_limit_store is not None:
        dependencies.append(Depends(_create_rate_limit_dep(config, hooks, rate_limit_store, rl.qr)))

    router = APIRouter(tags=["qr-auth"], dependencies=dependencies)
    paths = config.endpoints

    @router.post(paths.generate, response_model=GenerateResponse)
    async def generate_endpoint(request: Request, data: GenerateRequest | None = None):
        """Mint a QR token for the requesting device."""
        server_url = config.server_url or str(request.base_url).rstrip("/")
        try:
            generated = await engine.generate(
                server_url=server_url,
                ttl_minutes=data.ttl_minutes if data is not None else None,
            )
        except QRAuthError as e:
            raise _qr_error(e)

        # PNG encoding is CPU-bound; keep it off the event loop.
        qr_code = await run_in_threadpool(
            render_qr_data_url,
            generated.payload.to_json(),
            size=config.qr_code_size,
            margin=config.qr_code_margin,
        )
        return GenerateResponse(
            token_id=generated.token_id,
            qr_code=qr_code,
            expires_at=generated.expires_at,
        )

    @router.post(paths.verify, response_model=VerifyResponse)
    async def verify_endpoint(
        identity: Annotated[Identity, Depends(identity_dep)],
        data: VerifyRequest | None = None,
    ):
        """Scanning device confirms the QR code with its own session."""
        if data is None or not data.token_id or not data.token:
            raise HTTPException(
                status_code=400,
                detail={"error": "missing_fields", "message": "Token ID and token are required"},
            )
        try:
            result = await engine.verify(data.token_id, data.token, identity)
        except QRAuthError as e:
            raise _qr_error(e)

        return VerifyResponse(
            user_id=result.user_id,
            user=result.user,
            session_creation_token=result.session_creation_token,
            session_creation_token_expires_at=result.session_creation_token_expires_at,
        )

    @router.get(paths.status, response_model=StatusResponse, response_model_exclude_none=True)
    async def status_endpoint(
        token_id: Annotated[str | None, Query(alias="tokenId")] = None,
    ):
        """Requesting device polls for the outcome of the scan."""
        if not token_id:
            raise HTTPException(
                status_code=400,
                detail={"error": "missing_token_id", "message": "Token ID required"},
            )
        try:
            status = await engine.poll_status(token_id)
        except QRAuthError as e:
            raise _qr_error(e)

        if status.status == STATUS_EXPIRED:
            code, status_code, message = _EXPIRED_MESSAGES[status.reason or "expired"]
            raise HTTPException(
                status_code=status_code,
                detail={"error": code, "message": message, "status": STATUS_EXPIRED},
            )

        return StatusResponse(
            status=status.status,
            user_id=status.user_id,
            user=status.user,
            verified_at=status.verified_at,
            expires_at=status.expires_at,
            session_creation_token=status.session_creation_token,
            session_creation_token_expires_at=status.session_creation_token_expires_at,
        )

    @router.post(paths.claim_session, response_model=ClaimSessionResponse)
    async def claim_session_endpoint(
        response: Response,
        data: ClaimSessionRequest | None = None,
    ):
        """Requesting device exchanges its handoff token for its own session."""
        if data is None or not data.session_creation_token:
            raise HTTPException(
                status_code=400,
                detail={"error": "missing_session_token", "message": "Session creation token is required"},
            )
        try:
            claim = await engine.claim_session(data.session_creation_token)
        except QRAuthError as e:
            raise _qr_error(e)

        set_session_cookie(config, response, claim)
        return ClaimSessionResponse(
            user_id=claim.user_id,
            user=claim.user,
            session_token=claim.session_token,
            expires_at=claim.expires_at,
        )

    return router
