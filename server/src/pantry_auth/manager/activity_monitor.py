"""Idle-session enforcement independent of token expiry."""

import asyncio
import logging
from typing import Callable

from pantry_auth.identity.provider import IdentityProvider
from pantry_auth.storage import ActivityTrackingStorage, epoch_ms

logger = logging.getLogger(__name__)

INTERACTION_EVENTS = frozenset({
    "pointerdown",
    "keydown",
    "scroll",
    "touchstart",
    "click",
})

DEFAULT_TIMEOUT_MS = 24 * 60 * 60 * 1000
DEFAULT_CHECK_INTERVAL = 5 * 60


class ActivityMonitor:
    """Tracks the last user interaction and signs out idle sessions.

    The periodic check runs as an asyncio task between ``start()`` and
    ``stop()``; use ``async with monitor:`` to scope it.
    """

    def __init__(
        self,
        storage: ActivityTrackingStorage,
        provider: IdentityProvider,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.storage = storage
        self.provider = provider
        self.timeout_ms = timeout_ms
        self.check_interval = check_interval
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def update_activity(self) -> int:
        """Stamp the current time as the last activity."""
        return self.storage.stamp_activity()

    def record_interaction(self, event_type: str) -> bool:
        """Stamp activity for a coarse interaction event.

        Returns:
            True if the event type counts as activity
        """
        if event_type.lower() not in INTERACTION_EVENTS:
            logger.debug(f"Ignoring non-interaction event: {event_type}")
            return False
        self.update_activity()
        return True

    async def check_inactivity(self) -> bool:
        """Sign out through the provider if the session has been idle too long.

        Does nothing if no activity was ever recorded. Local session state is
        cleared after the sign-out so a stale stamp cannot trigger it again.

        Returns:
            True if a sign-out was triggered
        """
        last_activity = self.storage.last_activity()
        if last_activity is None:
            return False

        idle_ms = self._clock() - last_activity
        if idle_ms <= self.timeout_ms:
            return False

        logger.info(
            f"Session expired due to inactivity ({idle_ms / 3_600_000:.1f}h idle)"
        )
        await self.provider.sign_out()
        # Clear here too, in case nothing is listening for SIGNED_OUT.
        self.storage.clear_local_state()
        return True

    async def _check_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.check_interval)
                await self.check_inactivity()
            except asyncio.CancelledError:
                logger.debug("Inactivity checks stopped")
                break
            except Exception as e:
                logger.error(f"Inactivity check failed: {e}")

    async def start(self) -> None:
        """Run an immediate idle check, stamp activity and begin periodic checks."""
        if self.running:
            return
        try:
            await self.check_inactivity()
        except Exception as e:
            logger.error(f"Startup inactivity check failed: {e}")
        self.update_activity()
        self._task = asyncio.create_task(self._check_loop())
        logger.info(
            f"Activity monitor started: idle limit {self.timeout_ms} ms, "
            f"check every {self.check_interval}s"
        )

    async def stop(self) -> None:
        """Cancel the periodic check task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Activity monitor stopped")

    async def __aenter__(self) -> "ActivityMonitor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
