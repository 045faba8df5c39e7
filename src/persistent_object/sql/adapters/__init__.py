# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Database adapters for the record layer.

This package provides async database adapters with a unified interface
for executing queries and transaction management.

Components:
    DbAdapter: Abstract base class defining the adapter interface.
    SqliteAdapter: SQLite adapter using aiosqlite.
    get_adapter: Factory function to create adapters from connection strings.

Connection Model:
    - acquire(): Returns a new connection
    - release(conn): Closes it
    - commit(conn) / rollback(conn): transaction control
    - shutdown(): Releases adapter-wide resources (no-op for SQLite)

    SqlDb keeps a single shared connection acquired from the adapter.

Example:
    Usage via SqlDb (recommended)::

        from persistent_object.sql import SqlDb

        db = SqlDb("/data/app.db")
        async with db.connection():
            await db.execute("INSERT INTO `users` (`username`) VALUES (:username)", {"username": "ada"})
        # COMMIT on success, ROLLBACK on exception
"""

from .base import DbAdapter
from .sqlite import SqliteAdapter

__all__ = ["DbAdapter", "SqliteAdapter", "ADAPTERS", "get_adapter"]

# Adapter registry
ADAPTERS: dict[str, type[DbAdapter]] = {
    "sqlite": SqliteAdapter,
}


def get_adapter(connection_string: str) -> DbAdapter:
    """Create database adapter from connection string.

    Connection string formats:
        - "/path/to/db.sqlite" → SQLite (absolute path)
        - "./path/to/db.sqlite" → SQLite (relative path)
        - ":memory:" → SQLite in-memory
        - "sqlite:/path/to/db.sqlite" → SQLite
        - "sqlite::memory:" → SQLite in-memory

    Args:
        connection_string: Database connection string.

    Returns:
        Configured DbAdapter instance.

    Raises:
        ValueError: If connection string format is invalid or the type unknown.
    """
    if (
        connection_string.startswith("/")
        or connection_string.startswith("./")
        or connection_string == ":memory:"
    ):
        return SqliteAdapter(connection_string)

    if ":" not in connection_string:
        raise ValueError(
            f"Invalid connection string: '{connection_string}'. "
            "Expected 'type:connection_info' or path (absolute or relative)."
        )

    db_type, connection_info = connection_string.split(":", 1)
    adapter_class = ADAPTERS.get(db_type.lower())
    if adapter_class is None:
        supported = ", ".join(sorted(ADAPTERS))
        raise ValueError(f"Unknown database type: '{db_type}'. Supported: {supported}")
    return adapter_class(connection_info)
