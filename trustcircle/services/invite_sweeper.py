"""
Invite Expiry Sweeper - periodic background expiry of overdue invites.

Maintenance only: each pass is a single conditional bulk update, so it is
safe alongside request handlers. Failures are logged and the loop keeps
running.
"""

import asyncio

from trustcircle.services.invite_ledger import InviteLedger
from trustcircle.utils.logger import get_logger

logger = get_logger(__name__)


class InviteExpirySweeper:
    """Runs `InviteLedger.expire_old_invites` on an interval."""

    def __init__(self, ledger: InviteLedger, interval_seconds: float = 3600.0):
        """
        Initialize sweeper.

        Args:
            ledger: Invite ledger to sweep
            interval_seconds: Seconds between passes
        """
        self.ledger = ledger
        self.interval_seconds = interval_seconds
        self._worker_task: asyncio.Task | None = None
        self.last_expired_count: int | None = None

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def run_once(self) -> int:
        """
        Run a single pass.

        Returns:
            Invites expired, or 0 if the pass failed
        """
        try:
            count = await self.ledger.expire_old_invites()
        except Exception as e:
            logger.bind(error_type=type(e).__name__).error(f"Invite expiry sweep failed: {e}")
            return 0

        self.last_expired_count = count
        return count

    def start(self) -> None:
        """Start the background worker (no-op if already running)."""
        if not self.is_running:
            self._worker_task = asyncio.create_task(self._sweep_worker())
            logger.info(f"Invite expiry sweeper started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background worker and wait for it to finish."""
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None

    async def _sweep_worker(self) -> None:
        while True:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Invite expiry sweeper stopped")
                raise
