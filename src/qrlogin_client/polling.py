"""Requesting-device login flow: generate, poll on an interval, claim.

``start_qr_auth`` returns a ``PollingHandle`` wrapping one asyncio task.
The task ends on the first terminal outcome (session claimed, code expired,
server rejection) or when the caller cancels it. Network failures, server
outages and rate limiting are retried on the next tick.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from qrlogin_client.client import (
    STATUS_COMPLETED,
    STATUS_EXPIRED,
    ClaimedSession,
    GeneratedQR,
    QRLoginClient,
    QRStatus,
)
from qrlogin_client.errors import QRClientError, QRExpiredError, QRProtocolError

logger = logging.getLogger("qrlogin_client.polling")

DEFAULT_POLL_INTERVAL = 2.0

Callback = Callable[..., Any]


async def _call(callback: Callback | None, *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class PollingHandle:
    """Handle to a running QR login flow."""

    def __init__(self, generated: GeneratedQR, task: asyncio.Task) -> None:
        self._generated = generated
        self._task = task
        task.add_done_callback(_consume_exception)

    @property
    def token_id(self) -> str:
        return self._generated.token_id

    @property
    def qr_code(self) -> str:
        return self._generated.qr_code

    @property
    def expires_at(self) -> datetime:
        return self._generated.expires_at

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Stop polling. Idempotent; no callback fires."""
        self._task.cancel()

    async def wait(self) -> ClaimedSession:
        """Wait for the flow to finish.

        Raises:
            QRClientError: The flow ended without a session.
            asyncio.CancelledError: The handle was cancelled.
        """
        return await self._task


def _consume_exception(task: asyncio.Task) -> None:
    # Errors are delivered through on_error / wait(); keep asyncio from
    # reporting them a second time when nobody awaits the handle.
    if not task.cancelled():
        task.exception()


async def start_qr_auth(
    client: QRLoginClient,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    ttl_minutes: int | None = None,
    on_qr_generated: Callback | None = None,
    on_success: Callback | None = None,
    on_error: Callback | None = None,
) -> PollingHandle:
    """Generate a QR code and start polling for its outcome.

    Callbacks may be plain functions or coroutines:
    ``on_qr_generated(qr_code, token_id)``, ``on_success(ClaimedSession)``,
    ``on_error(QRClientError)``.

    Raises:
        QRClientError: Generating the QR code failed. No task is started.
    """
    if poll_interval <= 0:
        raise ValueError("poll_interval must be positive")

    generated = await client.generate(ttl_minutes=ttl_minutes)
    await _call(on_qr_generated, generated.qr_code, generated.token_id)

    task = asyncio.create_task(
        _run(client, generated, poll_interval, on_success, on_error),
        name=f"qrlogin-poll-{generated.token_id[:8]}",
    )
    return PollingHandle(generated, task)


async def _run(
    client: QRLoginClient,
    generated: GeneratedQR,
    poll_interval: float,
    on_success: Callback | None,
    on_error: Callback | None,
) -> ClaimedSession:
    remaining = (generated.expires_at - datetime.now(UTC)).total_seconds()
    try:
        # The code's expiry bounds polling only. A claim in flight is never
        # cancelled: the server may already have consumed the handoff token.
        try:
            async with asyncio.timeout(max(remaining, 0)):
                handoff = await _poll_until_verified(client, generated.token_id, poll_interval)
        except TimeoutError:
            raise QRExpiredError(code="local_expiry") from None
        session = await _claim(client, generated.token_id, handoff, poll_interval)
    except QRClientError as exc:
        logger.info("QR login %s ended: %s", generated.token_id, exc.message)
        await _call(on_error, exc)
        raise

    await _call(on_success, session)
    return session


def _is_transient(exc: QRClientError) -> bool:
    if exc.retryable:
        return True
    return isinstance(exc, QRProtocolError) and exc.status_code == 429


async def _poll_until_verified(client: QRLoginClient, token_id: str, poll_interval: float) -> QRStatus:
    while True:
        await asyncio.sleep(poll_interval)
        try:
            status = await client.poll_status(token_id)
        except QRClientError as exc:
            if not _is_transient(exc):
                raise
            logger.warning("Poll for %s failed, retrying: %s", token_id, exc.message)
            continue

        if status.status == STATUS_EXPIRED:
            raise QRExpiredError(code=status.reason or "token_expired")
        if status.status == STATUS_COMPLETED and status.session_creation_token:
            return status


async def _claim(
    client: QRLoginClient,
    token_id: str,
    handoff: QRStatus,
    retry_interval: float,
) -> ClaimedSession:
    """Claim the session, retrying transient failures until the handoff token expires."""
    deadline = handoff.session_creation_token_expires_at
    while True:
        try:
            return await client.claim_session(handoff.session_creation_token)
        except QRClientError as exc:
            if not _is_transient(exc) or (deadline is not None and datetime.now(UTC) >= deadline):
                raise
            logger.warning("Claim for %s failed, retrying: %s", token_id, exc.message)
        await asyncio.sleep(retry_interval)
