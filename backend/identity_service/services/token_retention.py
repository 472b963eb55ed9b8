"""Token retention service - periodically deletes stale refresh-token records."""

import asyncio

from identity_service.core import settings
from identity_service.core.logging import get_logger
from identity_service.services.session_tokens import SessionTokenService

logger = get_logger("token_retention")

# Delay before the first sweep so startup is not slowed down
INITIAL_DELAY_SECONDS = 60


class TokenRetentionService:
    """Background service that runs the refresh-token sweep on an interval."""

    def __init__(
        self,
        session_tokens: SessionTokenService | None = None,
        retention_days: int | None = None,
        interval_seconds: int | None = None,
        initial_delay_seconds: float = INITIAL_DELAY_SECONDS,
    ):
        self._session_tokens = session_tokens or SessionTokenService()
        self._retention_days = retention_days or settings.refresh_token_retention_days
        self._interval_seconds = interval_seconds or settings.token_sweep_interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def retention_days(self) -> int:
        return self._retention_days

    @retention_days.setter
    def retention_days(self, value: int) -> None:
        """Set retention period in days (minimum 1 day)."""
        self._retention_days = max(1, value)
        logger.info(f"Refresh token retention set to {self._retention_days} days")

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background sweep task."""
        if self._running:
            logger.warning("Token retention service is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Token retention service started (retention: {self._retention_days} days, "
            f"interval: {self._interval_seconds}s)"
        )

    async def stop(self):
        """Stop the background sweep task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Token retention service stopped")

    async def _sweep_loop(self):
        await asyncio.sleep(self._initial_delay_seconds)

        while self._running:
            try:
                await self.run_sweep_now()
            except Exception as e:
                # Live sessions are unaffected by a failed sweep
                logger.error(f"Error in token retention sweep: {e}")

            await asyncio.sleep(self._interval_seconds)

    async def run_sweep_now(self) -> int:
        """Run one sweep immediately.

        Returns:
            Number of records deleted
        """
        return await self._session_tokens.sweep(retention_days=self._retention_days)
