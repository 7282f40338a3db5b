"""
Store adapter interface.

Every logical collection (users, posts, projects, groups, votes, ...) is a
``Collection`` holding two kinds of data under a string key:

- a document (``get`` / ``upsert`` / ``merge`` / ``increment`` / ``remove``)
- an ordered, append-only item sequence (``append`` / ``items``)

Callers never branch on the backend; ``MemoryStore``, ``SnapshotStore`` and
``PostgresStore`` all implement ``DocumentStore``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

Document = dict[str, Any]
Predicate = Callable[[Document], bool]

# Collection names
USERS = "users"
POSTS = "posts"
PROJECTS = "projects"
GROUPS = "groups"
GROUP_MESSAGES = "group_messages"
VOTES = "votes"
REPORTS = "reports"
ADMIN_DMS = "admin_dms"
CHAT_MESSAGES = "chat_messages"
DM_THREADS = "dm_messages"

# Key of the single public chat channel inside CHAT_MESSAGES
PUBLIC_CHANNEL = "public"


def _sort_value(value: Any) -> tuple:
    # Missing values sort below everything else
    return (0, 0) if value is None else (1, value)


def order_documents(
    docs: list[Document],
    order_by: str | Sequence[str] | None = None,
    descending: bool = False,
) -> list[Document]:
    """Sort documents by one or more fields; stable for equal values."""
    if not order_by:
        return list(reversed(docs)) if descending else docs
    fields = [order_by] if isinstance(order_by, str) else list(order_by)
    return sorted(
        docs,
        key=lambda d: tuple(_sort_value(d.get(f)) for f in fields),
        reverse=descending,
    )


def select_documents(
    docs: list[Document],
    predicate: Predicate | None = None,
    order_by: str | Sequence[str] | None = None,
    descending: bool = False,
    limit: int | None = None,
) -> list[Document]:
    """Apply the ``Collection.list`` filtering, ordering and limit in Python."""
    if predicate is not None:
        docs = [d for d in docs if predicate(d)]
    docs = order_documents(docs, order_by, descending)
    if limit is not None:
        docs = docs[:limit]
    return docs


class Collection(ABC):
    """One named collection of a ``DocumentStore``."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def get(self, key: str) -> Document | None:
        """Document stored under ``key``, or None."""

    @abstractmethod
    async def list(
        self,
        predicate: Predicate | None = None,
        order_by: str | Sequence[str] | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """Documents of the collection, insertion order unless ``order_by`` is given."""

    @abstractmethod
    async def upsert(self, key: str, value: Document) -> Document:
        """Replace the document under ``key``."""

    @abstractmethod
    async def merge(
        self, key: str, fields: Document, on_insert: Document | None = None
    ) -> Document:
        """
        Set ``fields`` on the document, creating it if absent.

        ``on_insert`` is applied only when the document did not exist yet;
        on an existing document those fields keep their stored values.
        """

    @abstractmethod
    async def increment(self, key: str, field: str, amount: int = 1) -> Document | None:
        """Add ``amount`` to a numeric field. Returns None if there is no such document."""

    @abstractmethod
    async def append(self, key: str, item: Any) -> None:
        """Append ``item`` to the ordered sequence under ``key``."""

    @abstractmethod
    async def items(self, key: str, limit: int | None = None) -> list[Any]:
        """The sequence under ``key`` in insertion order; the last ``limit`` items if given."""

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Delete the document and item sequence under ``key``."""

    @abstractmethod
    async def trim(self, max_documents: int) -> int:
        """Evict the oldest documents beyond ``max_documents``. Returns the number evicted."""


class DocumentStore(ABC):
    """A set of named collections plus lifecycle hooks."""

    backend: str = "unknown"

    @abstractmethod
    def collection(self, name: str) -> Collection:
        """Handle for the named collection."""

    async def open(self) -> None:
        """Prepare the backend (load snapshot, create tables)."""

    async def close(self) -> None:
        """Flush and release the backend."""

    async def health_check(self) -> dict[str, Any]:
        return {"healthy": True, "service": "store", "backend": self.backend}

    # Shorthand accessors
    @property
    def users(self) -> Collection:
        return self.collection(USERS)

    @property
    def posts(self) -> Collection:
        return self.collection(POSTS)

    @property
    def projects(self) -> Collection:
        return self.collection(PROJECTS)

    @property
    def groups(self) -> Collection:
        return self.collection(GROUPS)

    @property
    def group_messages(self) -> Collection:
        return self.collection(GROUP_MESSAGES)

    @property
    def votes(self) -> Collection:
        return self.collection(VOTES)

    @property
    def reports(self) -> Collection:
        return self.collection(REPORTS)

    @property
    def admin_dms(self) -> Collection:
        return self.collection(ADMIN_DMS)

    @property
    def chat_messages(self) -> Collection:
        return self.collection(CHAT_MESSAGES)

    @property
    def dm_threads(self) -> Collection:
        return self.collection(DM_THREADS)
