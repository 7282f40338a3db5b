"""
Database helper functions for common patterns.
Reduces boilerplate in the Postgres document store.
"""

import asyncio
import functools
from typing import Any

import psycopg

from viralboost.errors import StoreError
from viralboost.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def fetch_one(
    conn: psycopg.AsyncConnection, query: str, params: tuple = ()
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        conn: Pooled connection (dict_row factory)
        query: SQL query with %s placeholders
        params: Query parameters

    Returns:
        Dict with row data or None if no results
    """
    try:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            row = await cur.fetchone()
            return row if row else None
    except psycopg.Error as e:
        logger.error("Database fetch_one error", query=query[:100], error=str(e))
        raise StoreError(f"Query failed: {e}", operation="fetch_one") from e


async def fetch_all(
    conn: psycopg.AsyncConnection, query: str, params: tuple = ()
) -> list[dict[str, Any]]:
    """Execute query and return all rows as list of dicts."""
    try:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()
    except psycopg.Error as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise StoreError(f"Query failed: {e}", operation="fetch_all") from e


async def execute_query(conn: psycopg.AsyncConnection, query: str, params: tuple = ()) -> int:
    """Execute query and return number of affected rows."""
    try:
        cursor = await conn.execute(query, params)
        return cursor.rowcount
    except psycopg.Error as e:
        logger.error("Database execute error", query=query[:100], error=str(e))
        raise StoreError(f"Query failed: {e}", operation="execute") from e


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry database operations on temporary failures.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except StoreError as e:
                    cause = e.__cause__
                    if not isinstance(cause, psycopg.OperationalError) or attempt >= max_retries:
                        raise
                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Database operation failed, retrying",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

                except psycopg.OperationalError as e:
                    if attempt >= max_retries:
                        logger.error(
                            "Database operation failed after all retries",
                            operation=func.__name__,
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise StoreError(
                            f"Operation failed after {max_retries} retries: {e}",
                            operation=func.__name__,
                            recoverable=False,
                        ) from e
                    await asyncio.sleep(base_delay * (2**attempt))

                except (psycopg.Error, RuntimeError) as e:
                    logger.error(
                        "Database operation failed with permanent error",
                        operation=func.__name__,
                        error=str(e),
                    )
                    raise StoreError(
                        f"Permanent database error: {e}",
                        operation=func.__name__,
                        recoverable=False,
                    ) from e

        return wrapper

    return decorator
