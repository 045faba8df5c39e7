# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Immutable WHERE predicate fragments with named parameters."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def placeholder_name(field: str) -> str:
    """Return the bound-parameter name used for a field (non-alphanumerics → `_`)."""
    return _NON_ALNUM.sub("_", field)


class Condition:
    """A parenthesized SQL boolean expression plus its bound parameters.

    Conditions are never built directly: use one of the factories, which
    return None (the empty condition) when given nothing to express.

    Usage:
        cond = Condition.from_field_equality({"owner": None, "name": "foo"})
        str(cond)           # "(`owner` IS NULL AND `name` = :name)"
        cond.parameters()   # {"name": "foo"}

        both = Condition.merge(cond, Condition.from_expression("`size` > 3"))
        str(both)           # "((`owner` IS NULL AND `name` = :name) AND (`size` > 3))"

    Merging does not check for placeholder collisions between the operands:
    the right-hand parameters win.
    """

    __slots__ = ("_expression", "_params")

    def __init__(self, expression: str, params: Mapping[str, Any] | None = None):
        self._expression = expression
        self._params: dict[str, Any] = dict(params or {})

    @classmethod
    def from_expression(cls, expression: str) -> Condition | None:
        """Wrap a raw SQL expression."""
        if not expression:
            return None
        return cls(f"({expression})")

    @classmethod
    def from_expressions(cls, expressions: Iterable[str]) -> Condition | None:
        """AND together raw SQL expressions, each in its own parentheses."""
        expressions = list(expressions)
        if not expressions:
            return None
        return cls("((" + ") AND (".join(expressions) + "))")

    @classmethod
    def from_field_equality(cls, values: Mapping[str, Any]) -> Condition | None:
        """AND together `field = value` clauses, `field IS NULL` for None."""
        if not values:
            return None
        parts = []
        params: dict[str, Any] = {}
        for field, value in values.items():
            if value is None:
                parts.append(f"`{field}` IS NULL")
            else:
                name = placeholder_name(field)
                parts.append(f"`{field}` = :{name}")
                params[name] = value
        return cls("(" + " AND ".join(parts) + ")", params)

    @staticmethod
    def merge(left: Condition | None, right: Condition | None) -> Condition | None:
        """Conjunction of two conditions; an empty operand is the identity."""
        if left is None or not left._expression:
            return right
        if right is None or not right._expression:
            return left
        params = dict(left._params)
        params.update(right._params)
        return Condition(f"({left._expression} AND {right._expression})", params)

    def parameters(self, additional: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Return bound parameters, `additional` entries overriding ours."""
        params = dict(self._params)
        if additional:
            params.update(additional)
        return params

    @property
    def expression(self) -> str:
        return self._expression

    def __str__(self) -> str:
        return self._expression

    def __repr__(self) -> str:
        return f"Condition({self._expression!r}, {self._params!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Condition):
            return NotImplemented
        return self._expression == other._expression and self._params == other._params

    def __hash__(self) -> int:
        return hash(self._expression)


__all__ = ["Condition", "placeholder_name"]
