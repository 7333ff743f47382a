"""Background sync gate.

Called from a periodic task (cron, launchd, a background-refresh hook):

1. Skip when no wallet key is available.
2. Skip (successfully) when the last successful sync is recent.
3. Otherwise sync the last few days and report whether it worked.

Defaults: 24-hour minimum interval, 7-day lookback.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from healthsync.errors import SyncInProgressError
from healthsync.services.wallet import KeyProvider
from healthsync.sync.orchestrator import SyncOrchestrator
from healthsync.wearables.base import as_aware

logger = logging.getLogger("healthsync.sync.scheduler")

DEFAULT_MIN_INTERVAL = timedelta(hours=24)
DEFAULT_LOOKBACK_DAYS = 7


class BackgroundSync:
    """Decide whether a background sync is due and run it.

    Usage::

        background = BackgroundSync(orchestrator, key_provider)
        ok = await background.run()
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        key_provider: KeyProvider,
        min_interval: timedelta = DEFAULT_MIN_INTERVAL,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._key_provider = key_provider
        self._min_interval = min_interval
        self._lookback = timedelta(days=lookback_days)
        self._clock = clock or (lambda: datetime.now().astimezone())

    def should_sync(self, now: datetime | None = None) -> bool:
        """Return True if the last successful sync is missing or older than the interval.

        Args:
            now: Current time; defaults to the clock.
        """
        last_sync_at = self._orchestrator.last_sync_date
        if last_sync_at is None:
            return True
        current = as_aware(now) if now is not None else self._clock()
        elapsed = current - as_aware(last_sync_at)
        return elapsed >= self._min_interval

    async def run(self, now: datetime | None = None) -> bool:
        """Run a background sync if one is due.

        Returns:
            False without a wallet key or when a sync is already running.
            True when a recent sync already exists.  Otherwise the success
            of the sync that was run.
        """
        if self._key_provider.get_encryption_key() is None:
            logger.info("Background sync skipped: wallet not connected")
            return False

        if not self.should_sync(now):
            logger.debug("Background sync skipped: last sync at %s", self._orchestrator.last_sync_date)
            return True

        end = as_aware(now) if now is not None else self._clock()
        start = end - self._lookback
        try:
            result = await self._orchestrator.perform_full_sync(from_date=start, to_date=end)
        except SyncInProgressError:
            logger.info("Background sync skipped: a sync is already running")
            return False

        logger.info("Background sync finished: success=%s", result.success)
        return result.success
