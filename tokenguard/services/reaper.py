"""Background reaper - periodically deletes expired revocation entries."""
import asyncio
from typing import Optional

from tokenguard.config import Settings, settings
from tokenguard.database import SessionLocal
from tokenguard.services.revocation import RevocationService
from tokenguard.services.revocation_store import SQLRevocationStore
from tokenguard.services.users import UserRepository
from tokenguard.utils.errors import RevocationStoreError
from tokenguard.utils.jwt_utils import TokenCodec
from tokenguard.utils.logger import logger

# Let the app finish starting before the first pass
STARTUP_DELAY_SECONDS = 60


class ReaperService:
    """Runs bounded reap passes on an interval.

    Each pass is one call to :meth:`RevocationService.reap_expired`, capped at
    ``REAPER_BATCH_SIZE * REAPER_MAX_BATCHES`` rows; a larger backlog is
    worked off over following passes.
    """

    def __init__(self, config: Settings = settings, startup_delay: float = STARTUP_DELAY_SECONDS):
        self._settings = config
        self._startup_delay = startup_delay
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background reap loop."""
        if self._running:
            logger.warning("Revocation reaper is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Revocation reaper started (interval: {self._settings.REAPER_INTERVAL_SECONDS}s, "
            f"batch: {self._settings.REAPER_BATCH_SIZE}x{self._settings.REAPER_MAX_BATCHES})"
        )

    async def stop(self):
        """Stop the background reap loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Revocation reaper stopped")

    async def _loop(self):
        await asyncio.sleep(self._startup_delay)

        while self._running:
            try:
                await asyncio.to_thread(self.run_once)
            except RevocationStoreError as e:
                # Already logged by the store; the next pass retries
                logger.warning(f"Revocation reaper pass failed: {e}")

            await asyncio.sleep(self._settings.REAPER_INTERVAL_SECONDS)

    def run_once(self) -> int:
        """Execute a single reap pass on a fresh session; returns rows removed."""
        db = SessionLocal()
        try:
            service = RevocationService(
                store=SQLRevocationStore(db),
                codec=TokenCodec.from_settings(self._settings),
                users=UserRepository(db),
                reaper_batch_size=self._settings.REAPER_BATCH_SIZE,
                reaper_max_batches=self._settings.REAPER_MAX_BATCHES,
            )
            return service.reap_expired()
        finally:
            db.close()
