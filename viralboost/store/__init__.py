"""
Store adapter: one interface over Postgres, a JSON snapshot file, or memory.
"""

from viralboost.config import Settings
from viralboost.db.pool import DatabasePoolManager
from viralboost.infrastructure.observability.logging import get_logger
from viralboost.store.base import Collection, DocumentStore
from viralboost.store.memory import MemoryStore
from viralboost.store.postgres import PostgresStore
from viralboost.store.snapshot import SnapshotStore

__all__ = [
    "Collection",
    "DocumentStore",
    "MemoryStore",
    "PostgresStore",
    "SnapshotStore",
    "open_store",
]

logger = get_logger(__name__)


def _local_store(config: Settings) -> DocumentStore:
    if config.DATA_FILE:
        return SnapshotStore(config.DATA_FILE, chat_history_limit=config.CHAT_HISTORY_CAPACITY)
    logger.warning("No durable backend configured - in-memory mode active")
    return MemoryStore()


async def open_store(config: Settings) -> DocumentStore:
    """
    Build and open the store selected by configuration.

    A configured database that cannot be reached degrades to the snapshot
    file (or memory) so live chat keeps working; the failure is logged.
    """
    if config.storage_backend() == "postgres":
        store = PostgresStore(DatabasePoolManager(config.DATABASE_URL, config))
        try:
            await store.open()
            return store
        except Exception as e:
            logger.error(
                "Postgres unavailable, falling back to local store",
                error=str(e),
                error_type=type(e).__name__,
            )

    store = _local_store(config)
    await store.open()
    logger.info("Store opened", backend=store.backend)
    return store
