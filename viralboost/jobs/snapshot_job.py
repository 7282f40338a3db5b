"""
Snapshot Job - periodic flush of the file-backed store.

Runs only when the store is a ``SnapshotStore``: every
SNAPSHOT_INTERVAL_SECONDS the in-memory collections are written to
DATA_FILE. The store also saves once more when it is closed at shutdown.

Usage:
    task = asyncio.create_task(run_snapshot_scheduler(store, interval))
"""

import asyncio

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.store.snapshot import SnapshotStore

logger = get_logger(__name__)


class SnapshotJob:
    def __init__(self, store: SnapshotStore):
        self.store = store
        self.runs = 0
        self.failures = 0

    async def run_once(self) -> bool:
        ok = await self.store.save()
        self.runs += 1
        if not ok:
            self.failures += 1
        return ok


async def run_snapshot_scheduler(store: SnapshotStore, interval_seconds: float) -> None:
    """Save forever; cancelled by the application lifespan."""
    job = SnapshotJob(store)
    logger.info("Snapshot scheduler started", interval_seconds=interval_seconds, path=str(store.path))

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await job.run_once()
        except asyncio.CancelledError:
            logger.info("Snapshot scheduler stopped", runs=job.runs, failures=job.failures)
            raise
        except Exception as e:
            # Keep the loop alive; the next tick retries
            logger.error("Snapshot scheduler error", error=str(e), error_type=type(e).__name__)
