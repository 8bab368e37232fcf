"""Background task that sweeps expired chunks out of the chunk store."""

import asyncio
import logging
from typing import Optional

from server.config import CHUNK_SWEEP_INTERVAL_SECONDS
from server.repositories.chunk_repository import ChunkRepository

logger = logging.getLogger(__name__)


class OrphanedChunkCleaner:
    """
    Periodically purges chunks of uploads that were never finalized.
    """

    def __init__(
        self,
        interval_seconds: int = CHUNK_SWEEP_INTERVAL_SECONDS,
        chunk_repo: Optional[ChunkRepository] = None,
    ):
        """
        Initialize cleaner task.

        Args:
            interval_seconds: Time between sweeps (default 1 hour)
            chunk_repo: Chunk repository to sweep
        """
        self.interval_seconds = interval_seconds
        self.chunk_repo = chunk_repo or ChunkRepository()
        self._running = False
        self._task = None

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started orphaned chunk cleanup task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped orphaned chunk cleanup task")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                self.sweep()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}", exc_info=True)

    def sweep(self) -> int:
        """Execute one sweep and return the number of purged chunks."""
        removed = self.chunk_repo.purge_expired()
        if removed:
            logger.info(f"Cleanup cycle complete: {removed} expired chunks removed")
        else:
            logger.debug("No expired chunks to clean")
        return removed
