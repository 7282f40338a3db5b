"""
In-process store used when no durable backend is configured.

Each collection is serialized by one asyncio lock keyed by collection name;
cross-user contention on these maps is rare, so coarse locking is enough.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Sequence
from typing import Any

from viralboost.infrastructure.observability.logging import get_logger
from viralboost.store.base import (
    Collection,
    Document,
    DocumentStore,
    Predicate,
    select_documents,
)

logger = get_logger(__name__)


class MemoryCollection(Collection):
    def __init__(self, name: str, lock: asyncio.Lock):
        super().__init__(name)
        self._lock = lock
        self.documents: dict[str, Document] = {}
        self.sequences: dict[str, list[Any]] = {}

    async def get(self, key: str) -> Document | None:
        async with self._lock:
            doc = self.documents.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    async def list(
        self,
        predicate: Predicate | None = None,
        order_by: str | Sequence[str] | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        async with self._lock:
            docs = copy.deepcopy(list(self.documents.values()))
        return select_documents(docs, predicate, order_by, descending, limit)

    async def upsert(self, key: str, value: Document) -> Document:
        async with self._lock:
            self.documents[key] = copy.deepcopy(value)
            return copy.deepcopy(value)

    async def merge(
        self, key: str, fields: Document, on_insert: Document | None = None
    ) -> Document:
        async with self._lock:
            existing = self.documents.get(key)
            if existing is None:
                doc = {**(on_insert or {}), **fields}
            else:
                doc = {**existing, **fields}
            self.documents[key] = copy.deepcopy(doc)
            return doc

    async def increment(self, key: str, field: str, amount: int = 1) -> Document | None:
        async with self._lock:
            doc = self.documents.get(key)
            if doc is None:
                return None
            doc[field] = (doc.get(field) or 0) + amount
            return copy.deepcopy(doc)

    async def append(self, key: str, item: Any) -> None:
        async with self._lock:
            self.sequences.setdefault(key, []).append(copy.deepcopy(item))

    async def items(self, key: str, limit: int | None = None) -> list[Any]:
        async with self._lock:
            seq = self.sequences.get(key, [])
            if limit is not None:
                seq = seq[-limit:] if limit > 0 else []
            return copy.deepcopy(seq)

    async def remove(self, key: str) -> bool:
        async with self._lock:
            had_doc = self.documents.pop(key, None) is not None
            had_items = self.sequences.pop(key, None) is not None
            return had_doc or had_items

    async def trim(self, max_documents: int) -> int:
        async with self._lock:
            overflow = len(self.documents) - max_documents
            if overflow <= 0:
                return 0
            # dicts keep insertion order: the first keys are the oldest
            for key in list(self.documents)[:overflow]:
                del self.documents[key]
            return overflow

    def dump(self, max_items: int | None = None) -> dict[str, Any]:
        """Plain-data copy of the collection. Caller holds no lock; values are copied."""
        sequences = self.sequences
        if max_items is not None:
            sequences = {k: v[-max_items:] for k, v in sequences.items()}
        return {
            "documents": copy.deepcopy(self.documents),
            "items": copy.deepcopy(sequences),
        }

    def restore(self, data: dict[str, Any]) -> None:
        self.documents = dict(data.get("documents") or {})
        self.sequences = {k: list(v) for k, v in (data.get("items") or {}).items()}


class MemoryStore(DocumentStore):
    """All collections held in process memory; lost on restart."""

    backend = "memory"

    def __init__(self) -> None:
        self._collections: dict[str, MemoryCollection] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def collection(self, name: str) -> MemoryCollection:
        coll = self._collections.get(name)
        if coll is None:
            lock = self._locks.setdefault(name, asyncio.Lock())
            coll = self._collections[name] = MemoryCollection(name, lock)
        return coll

    async def dump(self, max_items: dict[str, int] | None = None) -> dict[str, Any]:
        """Consistent per-collection copy of every collection."""
        max_items = max_items or {}
        data = {}
        for name, coll in list(self._collections.items()):
            async with self._locks[name]:
                data[name] = coll.dump(max_items.get(name))
        return data

    def restore(self, data: dict[str, Any]) -> None:
        for name, coll_data in data.items():
            self.collection(name).restore(coll_data)

    async def health_check(self) -> dict[str, Any]:
        return {
            "healthy": True,
            "service": "store",
            "backend": self.backend,
            "collections": {name: len(c.documents) for name, c in self._collections.items()},
        }
