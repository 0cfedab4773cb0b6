# Background task that periodically reclaims expired sessions.
# Started from the application lifespan and cancelled on shutdown.

import asyncio
import contextlib
import logging

from phoneqr.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


class SessionSweeper:
    def __init__(self, service: VerificationService, interval_seconds: float):
        self.service = service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="session-sweeper")
        logger.info(f"Session sweeper started, interval={self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Session sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.service.sweep()
            except Exception:
                logger.exception("Session sweep failed")
