import asyncio
from typing import List, Optional

from backend import RoomStore
from logging_config import get_logger

logger = get_logger(__name__)


class LifecycleSweeper:
    """Periodically deletes rooms left empty for longer than ``stale_after`` seconds.

    Runs as a task on the same event loop as the relay handlers, so a
    sweep pass never interleaves with a join or leave.
    """

    def __init__(self, store: RoomStore, interval: float, stale_after: float):
        self.store = store
        self.interval = interval
        self.stale_after = stale_after
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> List[str]:
        deleted = self.store.purge_stale(self.stale_after)
        if deleted:
            logger.info(f"Sweeper deleted {len(deleted)} stale empty room(s): {deleted}")
        else:
            logger.debug("Sweeper found no stale rooms")
        return deleted

    async def _run(self):
        logger.info(f"Sweeper started (interval={self.interval}s, stale_after={self.stale_after}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Sweeper pass failed: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Sweeper cancelled")
            raise

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sweeper stopped")
