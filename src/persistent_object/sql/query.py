# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQL statement text for the record layer: SELECT, INSERT, UPDATE, DELETE and ORDER BY."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Union

from .condition import placeholder_name

if TYPE_CHECKING:
    from .condition import Condition

Ordering = Union[str, Sequence[str], Mapping[str, str], None]

_TRAILING_KEYWORDS = ("ORDER BY", "LIMIT", "OFFSET")


def quote(name: str) -> str:
    """Back-tick quote an identifier."""
    return f"`{name}`"


def ordering_clause(ordering: Ordering) -> str:
    """Convert a loosely-defined ordering into an ORDER BY clause.

    Accepted forms, all producing ``ORDER BY `foo` ASC, `bar` DESC``:

    - a raw trailing clause: ``"ORDER BY `foo` ASC, `bar` DESC"``; further
      clauses may follow (``"... LIMIT 5 OFFSET 25"``). A string without a
      leading ORDER BY/LIMIT/OFFSET keyword gets ``ORDER BY`` prepended.
    - a list of subclauses: ``["`foo` ASC", "`bar` DESC"]``
    - a mapping of field to direction: ``{"foo": "ASC", "bar": "DESC"}``

    Empty or None orderings produce an empty string.
    """
    if not ordering:
        return ""
    if isinstance(ordering, str):
        clause = ordering.strip()
        if clause.upper().startswith(_TRAILING_KEYWORDS):
            return clause
        return f"ORDER BY {clause}"
    if isinstance(ordering, Mapping):
        parts = [f"{quote(field)} {direction}".rstrip() for field, direction in ordering.items()]
    else:
        parts = list(ordering)
    return "ORDER BY " + ", ".join(parts)


def select_sql(
    table: str,
    condition: Condition | None = None,
    ordering: Ordering = None,
    limit: int | None = None,
) -> str:
    """SELECT * FROM `table` [WHERE cond] [ORDER BY ...] [LIMIT n]."""
    sql = f"SELECT * FROM {quote(table)}"
    if condition is not None:
        sql += f" WHERE {condition}"
    order = ordering_clause(ordering)
    if order:
        sql += f" {order}"
    if limit:
        sql += f" LIMIT {limit}"
    return sql


def insert_sql(table: str, fields: Sequence[str]) -> str:
    """INSERT INTO `table` (`a`, `b`) VALUES (:a, :b), or DEFAULT VALUES without fields."""
    if not fields:
        return f"INSERT INTO {quote(table)} DEFAULT VALUES"
    columns = ", ".join(quote(f) for f in fields)
    values = ", ".join(f":{placeholder_name(f)}" for f in fields)
    return f"INSERT INTO {quote(table)} ({columns}) VALUES ({values})"


def where_equal(fields: Sequence[str]) -> str:
    """`a` = :a AND `b` = :b"""
    return " AND ".join(f"{quote(f)} = :{placeholder_name(f)}" for f in fields)


def update_sql(table: str, fields: Sequence[str], where: Sequence[str]) -> str:
    """UPDATE `table` SET `f` = :f, ... WHERE `w` = :w AND ..."""
    assignments = ", ".join(f"{quote(f)} = :{placeholder_name(f)}" for f in fields)
    return f"UPDATE {quote(table)} SET {assignments} WHERE {where_equal(where)}"


def delete_sql(table: str, where: Sequence[str]) -> str:
    """DELETE FROM `table` WHERE `w` = :w AND ..."""
    return f"DELETE FROM {quote(table)} WHERE {where_equal(where)}"


def unique_fields(*groups: Sequence[str]) -> list[str]:
    """Concatenate field lists keeping first occurrence order."""
    result: list[str] = []
    for group in groups:
        for field in group:
            if field not in result:
                result.append(field)
    return result


__all__ = [
    "Ordering",
    "delete_sql",
    "insert_sql",
    "ordering_clause",
    "quote",
    "select_sql",
    "unique_fields",
    "update_sql",
    "where_equal",
]
