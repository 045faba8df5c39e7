# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQL layer for the record layer.

Components:
    SqlDb: Async manager of the single shared connection.
    DbAdapter / get_adapter: Backend adapters (SQLite via aiosqlite).
    Condition: Immutable WHERE predicate with named parameters.
    query: Statement text helpers (select_sql, update_sql, ordering_clause, ...).

Dialect: back-tick quoted identifiers, `:name` placeholders.
"""

from .adapters import DbAdapter, get_adapter
from .condition import Condition, placeholder_name
from .query import (
    Ordering,
    delete_sql,
    insert_sql,
    ordering_clause,
    quote,
    select_sql,
    unique_fields,
    update_sql,
)
from .sqldb import SqlDb

__all__ = [
    "Condition",
    "DbAdapter",
    "Ordering",
    "SqlDb",
    "delete_sql",
    "get_adapter",
    "insert_sql",
    "ordering_clause",
    "placeholder_name",
    "quote",
    "select_sql",
    "unique_fields",
    "update_sql",
]
