"""
Memory store persisted as a JSON snapshot file.

Loaded once at startup, written periodically by the snapshot job and once
more on shutdown. Writes go to a temporary file first and are swapped in
with ``os.replace`` so a crash mid-write never leaves a truncated file.
"""

import asyncio
import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.store.base import CHAT_MESSAGES
from viralboost.store.memory import MemoryStore

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotStore(MemoryStore):
    backend = "snapshot"

    def __init__(self, path: str | Path, chat_history_limit: int = 200):
        super().__init__()
        self.path = Path(path)
        self.chat_history_limit = chat_history_limit
        self.last_saved_at: datetime | None = None

    async def open(self) -> None:
        data = await asyncio.to_thread(self._read)
        self.restore(data)
        logger.info(
            "Snapshot loaded",
            path=str(self.path),
            **{name: len(c.documents) + len(c.sequences) for name, c in self._collections.items()},
        )

    async def close(self) -> None:
        await self.save()

    async def save(self) -> bool:
        """Write the current state to disk. Failures are logged, never raised."""
        data = await self.dump(max_items={CHAT_MESSAGES: self.chat_history_limit})
        payload = {
            "version": SNAPSHOT_VERSION,
            "savedAt": datetime.now(UTC).isoformat(),
            "collections": data,
        }
        try:
            await asyncio.to_thread(self._write, payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Snapshot save failed", path=str(self.path), error=str(e))
            return False
        self.last_saved_at = datetime.now(UTC)
        logger.debug("Snapshot saved", path=str(self.path))
        return True

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Snapshot unreadable, starting empty", path=str(self.path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            logger.warning("Snapshot has unexpected shape, starting empty", path=str(self.path))
            return {}
        return raw.get("collections") or {}

    def _write(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    async def health_check(self) -> dict[str, Any]:
        health = await super().health_check()
        health["path"] = str(self.path)
        health["last_saved_at"] = self.last_saved_at.isoformat() if self.last_saved_at else None
        return health
