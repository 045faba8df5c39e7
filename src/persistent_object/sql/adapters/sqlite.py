# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite adapter on aiosqlite."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import aiosqlite

from .base import DbAdapter


class SqliteAdapter(DbAdapter):
    """SQLite adapter: one aiosqlite connection per acquire().

    SQLite understands back-tick identifiers and `:name` placeholders as is.
    Rows come back as dicts. The store-computed `created` and `modified`
    columns are returned by SQLite as text and are parsed to datetime here;
    every other column is left exactly as the driver returns it.
    """

    error_types = (aiosqlite.Error,)

    TIMESTAMP_COLUMNS = frozenset({"created", "modified"})

    def __init__(self, db_path: str):
        self.db_path = db_path or ":memory:"

    def _row(self, columns: list[str], values: Any) -> dict[str, Any]:
        row = dict(zip(columns, values))
        for name in self.TIMESTAMP_COLUMNS.intersection(row):
            value = row[name]
            if isinstance(value, str):
                try:
                    row[name] = datetime.fromisoformat(value)
                except ValueError:
                    pass
        return row

    @staticmethod
    def _columns(cursor: aiosqlite.Cursor) -> list[str]:
        return [description[0] for description in cursor.description]

    async def acquire(self) -> aiosqlite.Connection:
        return await aiosqlite.connect(self.db_path)

    async def release(self, conn: aiosqlite.Connection) -> None:
        await conn.close()

    async def shutdown(self) -> None:
        """Nothing to release: connections are closed one by one."""

    async def commit(self, conn: aiosqlite.Connection) -> None:
        await conn.commit()

    async def rollback(self, conn: aiosqlite.Connection) -> None:
        await conn.rollback()

    async def execute(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> int:
        cursor = await conn.execute(query, params or {})
        return cursor.rowcount

    async def fetch_one(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        async with conn.execute(query, params or {}) as cursor:
            values = await cursor.fetchone()
            return None if values is None else self._row(self._columns(cursor), values)

    async def fetch_all(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        async with conn.execute(query, params or {}) as cursor:
            columns = self._columns(cursor)
            return [self._row(columns, values) for values in await cursor.fetchall()]

    async def execute_script(self, conn: aiosqlite.Connection, script: str) -> None:
        await conn.executescript(script)

    async def insert_returning_id(
        self, conn: aiosqlite.Connection, query: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Run the INSERT and return the cursor's lastrowid."""
        cursor = await conn.execute(query, params or {})
        return cursor.lastrowid

    def describe_error(self, error: BaseException) -> tuple[Any, str]:
        """Return (SQLite error name, or numeric code, message)."""
        code = getattr(error, "sqlite_errorname", None) or getattr(error, "sqlite_errorcode", None)
        return code, str(error)
