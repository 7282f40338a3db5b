"""
Durable document store on PostgreSQL JSONB.

Two tables hold every collection:

    documents       (collection, key) -> data jsonb
    document_items  append-only rows per (collection, key), ordered by id

Filtering by predicate and ordering by document fields happen in Python;
the collections this backend serves are small (feeds are capped) and the
predicate is an arbitrary callable.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from psycopg.types.json import Jsonb

from viralboost.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from viralboost.db.pool import DatabasePoolManager
from viralboost.infrastructure.observability.logging import get_logger
from viralboost.store.base import (
    Collection,
    Document,
    DocumentStore,
    Predicate,
    select_documents,
)

logger = get_logger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS documents (
        collection TEXT NOT NULL,
        key TEXT NOT NULL,
        data JSONB NOT NULL,
        seq BIGSERIAL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (collection, key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS document_items (
        id BIGSERIAL PRIMARY KEY,
        collection TEXT NOT NULL,
        key TEXT NOT NULL,
        data JSONB NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS document_items_lookup ON document_items (collection, key, id)",
)


class PostgresCollection(Collection):
    def __init__(self, name: str, pool: DatabasePoolManager):
        super().__init__(name)
        self._pool = pool

    @with_db_retry(max_retries=2)
    async def get(self, key: str) -> Document | None:
        async with self._pool.connection() as conn:
            row = await fetch_one(
                conn,
                "SELECT data FROM documents WHERE collection = %s AND key = %s",
                (self.name, key),
            )
        return row["data"] if row else None

    @with_db_retry(max_retries=2)
    async def list(
        self,
        predicate: Predicate | None = None,
        order_by: str | Sequence[str] | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        async with self._pool.connection() as conn:
            rows = await fetch_all(
                conn,
                "SELECT data FROM documents WHERE collection = %s ORDER BY seq",
                (self.name,),
            )
        return select_documents([r["data"] for r in rows], predicate, order_by, descending, limit)

    @with_db_retry(max_retries=2)
    async def upsert(self, key: str, value: Document) -> Document:
        async with self._pool.connection() as conn:
            row = await fetch_one(
                conn,
                """
                INSERT INTO documents (collection, key, data) VALUES (%s, %s, %s)
                ON CONFLICT (collection, key)
                DO UPDATE SET data = EXCLUDED.data, updated_at = now()
                RETURNING data
                """,
                (self.name, key, Jsonb(value)),
            )
        return row["data"]

    @with_db_retry(max_retries=2)
    async def merge(
        self, key: str, fields: Document, on_insert: Document | None = None
    ) -> Document:
        async with self._pool.connection() as conn:
            row = await fetch_one(
                conn,
                """
                INSERT INTO documents (collection, key, data) VALUES (%s, %s, %s)
                ON CONFLICT (collection, key)
                DO UPDATE SET data = documents.data || %s, updated_at = now()
                RETURNING data
                """,
                (self.name, key, Jsonb({**(on_insert or {}), **fields}), Jsonb(fields)),
            )
        return row["data"]

    # Not idempotent: a retry after a lost commit would apply twice
    @with_db_retry(max_retries=0)
    async def increment(self, key: str, field: str, amount: int = 1) -> Document | None:
        async with self._pool.connection() as conn:
            row = await fetch_one(
                conn,
                """
                UPDATE documents
                SET data = jsonb_set(
                        data,
                        ARRAY[%s],
                        to_jsonb(COALESCE((data ->> %s)::bigint, 0) + %s)
                    ),
                    updated_at = now()
                WHERE collection = %s AND key = %s
                RETURNING data
                """,
                (field, field, amount, self.name, key),
            )
        return row["data"] if row else None

    # Single attempt for the same reason
    @with_db_retry(max_retries=0)
    async def append(self, key: str, item: Any) -> None:
        async with self._pool.connection() as conn:
            await execute_query(
                conn,
                "INSERT INTO document_items (collection, key, data) VALUES (%s, %s, %s)",
                (self.name, key, Jsonb(item)),
            )

    @with_db_retry(max_retries=2)
    async def items(self, key: str, limit: int | None = None) -> list[Any]:
        async with self._pool.connection() as conn:
            if limit is None:
                rows = await fetch_all(
                    conn,
                    """
                    SELECT data FROM document_items
                    WHERE collection = %s AND key = %s ORDER BY id
                    """,
                    (self.name, key),
                )
            else:
                rows = await fetch_all(
                    conn,
                    """
                    SELECT data FROM (
                        SELECT id, data FROM document_items
                        WHERE collection = %s AND key = %s
                        ORDER BY id DESC LIMIT %s
                    ) recent ORDER BY id
                    """,
                    (self.name, key, max(limit, 0)),
                )
        return [r["data"] for r in rows]

    @with_db_retry(max_retries=2)
    async def remove(self, key: str) -> bool:
        async with self._pool.transaction() as conn:
            docs = await execute_query(
                conn,
                "DELETE FROM documents WHERE collection = %s AND key = %s",
                (self.name, key),
            )
            items = await execute_query(
                conn,
                "DELETE FROM document_items WHERE collection = %s AND key = %s",
                (self.name, key),
            )
        return (docs + items) > 0

    @with_db_retry(max_retries=2)
    async def trim(self, max_documents: int) -> int:
        async with self._pool.connection() as conn:
            return await execute_query(
                conn,
                """
                DELETE FROM documents
                WHERE collection = %s AND key IN (
                    SELECT key FROM documents WHERE collection = %s
                    ORDER BY seq DESC OFFSET %s
                )
                """,
                (self.name, self.name, max_documents),
            )


class PostgresStore(DocumentStore):
    backend = "postgres"

    def __init__(self, pool: DatabasePoolManager):
        self.pool = pool
        self._collections: dict[str, PostgresCollection] = {}

    def collection(self, name: str) -> PostgresCollection:
        coll = self._collections.get(name)
        if coll is None:
            coll = self._collections[name] = PostgresCollection(name, self.pool)
        return coll

    async def open(self) -> None:
        if not self.pool.initialized:
            await self.pool.initialize()
        async with self.pool.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await execute_query(conn, statement)
        logger.info("Postgres document store ready")

    async def close(self) -> None:
        await self.pool.close()

    async def health_check(self) -> dict[str, Any]:
        health = await self.pool.health_check()
        health["backend"] = self.backend
        return health
