"""Periodic access-token renewal for the active channel."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from .api import KickAPI
from .exceptions import RefreshFailedError
from .models import Credential
from .store import CredentialStore

logger = logging.getLogger(__name__)


class TokenRefresher:
    """Renews the active channel's token shortly before it expires.

    Each tick checks the channel returned by ``current_channel``. A tick with
    no active channel, no stored credential or a token outside the safety
    margin does nothing. A failed refresh is logged and retried next tick.
    """

    def __init__(
        self,
        store: CredentialStore,
        api: KickAPI,
        current_channel: Callable[[], str | None],
        on_refreshed: Callable[[Credential], Awaitable[None]],
        interval: float = 300.0,
        margin: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval <= 0:
            raise ValueError("Refresh interval must be positive")
        if margin < 0:
            raise ValueError("Refresh margin must be non-negative")

        self.store = store
        self.api = api
        self.interval = interval
        self.margin = margin
        self._current_channel = current_channel
        self._on_refreshed = on_refreshed
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start ticking every ``interval`` seconds."""
        if self.is_running():
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Token refresher started (every {self.interval:.0f}s)")

    async def stop(self) -> None:
        """Cancel the ticking task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Token refresher stopped")

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> bool:
        """Refresh the active channel's token if it is about to expire.

        Returns:
            True if a new credential was stored and announced.
        """
        channel = self._current_channel()
        if channel is None:
            logger.debug("No active channel, skipping refresh")
            return False
        return await self.refresh(channel)

    async def refresh(self, channel: str, notify: bool = True) -> bool:
        """Refresh ``channel``'s token if it is inside the safety margin.

        Args:
            channel: Channel whose stored credential to check.
            notify: Pass the new credential to ``on_refreshed``.

        Returns:
            True if a new credential was stored.
        """
        async with self.store.lock(channel):
            credential = self.store.get(channel)
            if credential is None:
                logger.warning(f"No stored credential for {channel}, skipping refresh")
                return False

            if not credential.expires_within(self.margin, self._clock()):
                return False

            logger.info(f"Refreshing token for {channel}")
            issued_at = self._clock()
            try:
                token = await self.api.refresh_token(credential.refresh_token)
            except RefreshFailedError as e:
                logger.warning(f"Token refresh for {channel} failed, will retry: {e}")
                return False

            refreshed = credential.refreshed(token, issued_at)
            self.store.put(channel, refreshed)

        if notify:
            await self._on_refreshed(refreshed)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in token refresh tick: {e}", exc_info=True)
