# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async database manager holding one shared connection."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from .adapters import DbAdapter, get_adapter

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class SqlDb:
    """Async database manager with a single shared connection.

    Every statement issued by the record layer goes through the one
    connection held here, one statement at a time.

    Supports database types via adapters:
    - SQLite: "/path/to/db.sqlite", "./db.sqlite", ":memory:" or "sqlite:/path"

    Connection model:
    - connect(): Acquires the shared connection (implicit BEGIN on first write)
    - close(): COMMIT and release
    - rollback(): ROLLBACK, connection stays open
    - connection(): Context manager, COMMIT on success, ROLLBACK on error
    - shutdown(): Releases adapter resources (application shutdown only)

    Usage:
        db = SqlDb("/data/app.db")
        async with db.connection():
            row = await db.fetch_one("SELECT * FROM `users` WHERE `id` = :id", {"id": 1})
    """

    def __init__(self, connection_string: str):
        """Initialize database manager.

        Args:
            connection_string: Database connection string.
        """
        self.connection_string = connection_string
        self.adapter: DbAdapter = get_adapter(connection_string)
        self._conn: Any = None

    @property
    def conn(self) -> Any:
        """Return the shared connection.

        Raises:
            RuntimeError: If no connection is active.
        """
        if self._conn is None:
            raise RuntimeError("No active connection. Use 'await db.connect()' or 'async with db.connection():'")
        return self._conn

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Acquire the shared connection (no-op if already connected)."""
        if self._conn is None:
            self._conn = await self.adapter.acquire()
            logger.debug("Connected to %s", self.connection_string)

    async def close(self) -> None:
        """Commit and release the shared connection."""
        if self._conn is None:
            return
        try:
            await self.adapter.commit(self._conn)
        finally:
            await self._release()

    async def _release(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await self.adapter.release(conn)
            logger.debug("Closed connection to %s", self.connection_string)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[SqlDb]:
        """Context manager for the shared connection.

        Usage:
            async with db.connection():
                await db.execute("INSERT INTO `items` (`name`) VALUES (:name)", {"name": "a"})
            # COMMIT automatic

            async with db.connection():
                await db.execute("INSERT INTO `items` (`name`) VALUES (:name)", {"name": "b"})
                raise ValueError("Ops")  # ROLLBACK automatic
        """
        await self.connect()
        try:
            yield self
        except Exception:
            await self.rollback()
            await self._release()
            raise
        await self.close()

    async def shutdown(self) -> None:
        """Close connection and adapter resources (application shutdown)."""
        await self.close()
        await self.adapter.shutdown()

    # -------------------------------------------------------------------------
    # Direct query access (uses the shared connection)
    # -------------------------------------------------------------------------

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute raw query, return affected row count."""
        return await self.adapter.execute(self.conn, query, params)

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute raw query, return single row."""
        return await self.adapter.fetch_one(self.conn, query, params)

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute raw query, return all rows."""
        return await self.adapter.fetch_all(self.conn, query, params)

    async def execute_script(self, script: str) -> None:
        """Execute multiple statements (for schema creation)."""
        await self.adapter.execute_script(self.conn, script)

    async def rollback(self) -> None:
        """Rollback current transaction (no-op without a connection)."""
        if self._conn is not None:
            await self.adapter.rollback(self._conn)

    async def insert_returning_id(self, query: str, params: dict[str, Any] | None = None) -> Any:
        """Run an INSERT statement, return the key assigned to the new row."""
        return await self.adapter.insert_returning_id(self.conn, query, params)


__all__ = ["SqlDb"]
