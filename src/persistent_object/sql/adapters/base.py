# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter class for async database backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class DbAdapter(ABC):
    """Driver interface used by SqlDb.

    An adapter opens and closes connections and runs statement text it is
    given. It never builds statements itself: the record layer renders every
    statement (back-tick identifiers, `:name` placeholders) and binds the
    parameters. Driver exceptions listed in `error_types` are translated to
    DatabaseError by the record layer, using describe_error().
    """

    error_types: tuple[type[BaseException], ...] = ()

    def pk_column(self, name: str) -> str:
        """Column definition of the store-assigned integer key."""
        return f"`{name}` INTEGER PRIMARY KEY AUTOINCREMENT"

    def describe_error(self, error: BaseException) -> tuple[Any, str]:
        """Return (code, text) for a driver exception."""
        return None, str(error)

    @abstractmethod
    async def acquire(self) -> Any:
        """Open a connection."""
        ...

    @abstractmethod
    async def release(self, conn: Any) -> None:
        """Close a connection."""
        ...

    @abstractmethod
    async def shutdown(self) -> None:
        """Release adapter-wide resources at application shutdown."""
        ...

    @abstractmethod
    async def commit(self, conn: Any) -> None:
        ...

    @abstractmethod
    async def rollback(self, conn: Any) -> None:
        ...

    @abstractmethod
    async def execute(self, conn: Any, query: str, params: dict[str, Any] | None = None) -> int:
        """Run a statement, return the affected row count."""
        ...

    @abstractmethod
    async def fetch_one(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Run a query, return the first row as a dict (None without rows)."""
        ...

    @abstractmethod
    async def fetch_all(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a query, return every row as a dict."""
        ...

    @abstractmethod
    async def execute_script(self, conn: Any, script: str) -> None:
        """Run several `;` separated statements (schema creation)."""
        ...

    @abstractmethod
    async def insert_returning_id(
        self, conn: Any, query: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Run an INSERT statement, return the key the store assigned to the row."""
        ...
