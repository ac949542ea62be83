"""Periodic expiry sweep: an optional background task next to lazy eviction."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from qrlogin.core.engine import QRTokenEngine

logger = logging.getLogger("qrlogin.sweeper")


class ExpirySweeper:
    """Runs ``engine.sweep_expired()`` every ``interval_seconds`` until stopped.

    A failed sweep is logged and retried on the next tick.
    """

    def __init__(self, engine: QRTokenEngine, interval_seconds: float) -> None:
        self._engine = engine
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="qrlogin-expiry-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            try:
                await self._engine.sweep_expired()
            except Exception:
                logger.exception("Expiry sweep failed")
            await asyncio.sleep(self._interval)
