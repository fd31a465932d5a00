"""Database connection factory.

Provides singleton async connection to SQLite (default) with WAL mode.
Backend selection via NOTEGARDEN_DB_BACKEND env var.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from pathlib import Path
from typing import Union, Any

import aiosqlite
try:
    import asyncpg
except ImportError:
    asyncpg = None  # type: ignore

from notegarden import config

logger = logging.getLogger("notegarden.db")

DB_PATH = Path(config.DB_PATH)

# Type alias for DB connection/pool
DbConnection = Union[aiosqlite.Connection, Any] # Any to support asyncpg.Pool

_connection: DbConnection | None = None

# One transaction or read at a time per shared SQLite connection; see connection_lock().
_connection_locks: "weakref.WeakKeyDictionary[Any, asyncio.Lock]" = weakref.WeakKeyDictionary()


async def get_connection() -> DbConnection:
    """Return the singleton database connection/pool, creating it if needed."""
    global _connection
    if _connection is not None:
        return _connection

    if config.DB_BACKEND == "postgres":
        if not asyncpg:
            raise ImportError("asyncpg is required for Postgres backend.")

        logger.info("Connecting to PostgreSQL")
        _connection = await asyncpg.create_pool(config.DATABASE_URL)
        return _connection
    else:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _connection = await open_sqlite(str(DB_PATH))
        logger.info(f"Database connection established: {DB_PATH}")
        return _connection


async def open_sqlite(path: str) -> aiosqlite.Connection:
    """Open an SQLite connection configured the way the repositories expect."""
    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    # Enable WAL mode for better concurrent read performance
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.execute(f"PRAGMA busy_timeout={int(config.SQLITE_BUSY_TIMEOUT_MS)}")
    return conn


def connection_lock(db: aiosqlite.Connection) -> asyncio.Lock:
    """Lock serializing every statement batch on a shared SQLite connection.

    Every coroutine shares one aiosqlite connection, and SQLite shows a
    connection its own uncommitted rows. Writers hold the lock for a whole
    transaction and readers hold it for their query, so a reader never sees a
    replacement that has not committed yet.

    The lock is not reentrant: never await another locked repository call
    while holding it.
    """
    lock = _connection_locks.get(db)
    if lock is None:
        lock = asyncio.Lock()
        _connection_locks[db] = lock
    return lock


async def close_connection() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        await _connection.close()  # asyncpg Pool has close() too
        _connection = None
        logger.info("Database connection closed")
