# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Field registry: per record type table of getters and setters.

Each record type builds its Fields once, when the class is created, from
its parent's fields plus its own configure() hook. A field without a
public getter is write-only (get() raises AccessorNotDefined), a field
without a public setter is read-only (set() raises MutatorNotDefined).

Usage:
    class Widget(Record):
        @classmethod
        def configure(cls, fields):
            fields.field("name")
            fields.field("size", "INTEGER", default=1)
            fields.relation("owner", "User")
            fields.field("secret", readable=False, setter="_set_secret")
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from .record import Record

Getter = Callable[["Record"], Awaitable[Any]]
Setter = Callable[["Record", Any, bool], Awaitable[None]]
Accessor = Union[Callable[..., Awaitable[Any]], str, None]


@dataclass(frozen=True)
class Unresolved:
    """Raw foreign key held by a relational field until its first read."""

    key: Any
    record_type: Any

    @property
    def id(self) -> Any:
        return self.key


async def _default_getter(record: Record, name: str) -> Any:
    return await record._get_field(name)


async def _default_setter(record: Record, name: str, value: Any, strict: bool) -> None:
    await record._set_field(name, value, strict=strict)


@dataclass(frozen=True)
class Field:
    """One persisted field of a record type.

    Attributes:
        name: Column name.
        sql_type: Column type used by create_schema().
        relation: Related record type (or its class name) for relational fields.
        default: Value applied on insert when the field is still None.
        readable: Public get() allowed.
        writable: Public set() allowed. Hydration always goes through the setter.
        getter: Custom getter (callable or method name), None for the default.
        setter: Custom setter (callable or method name), None for the default.
    """

    name: str
    sql_type: str = "TEXT"
    relation: Any = None
    default: Any = None
    readable: bool = True
    writable: bool = True
    getter: Accessor = None
    setter: Accessor = None

    def related_type(self) -> type[Record] | None:
        """Resolve the related record type (class names are looked up lazily)."""
        if self.relation is None or isinstance(self.relation, type):
            return self.relation
        from .record import Record

        return Record.record_type(self.relation)

    def bound_getter(self) -> Getter:
        """Return an async callable (record) -> value."""
        if self.getter is None:
            name = self.name
            return lambda record: _default_getter(record, name)
        return _bind(self.getter)

    def bound_setter(self) -> Setter:
        """Return an async callable (record, value, strict) -> None."""
        if self.setter is None:
            name = self.name
            return lambda record, value, strict=True: _default_setter(record, name, value, strict)
        return _bind(self.setter)


def _bind(accessor: Callable[..., Awaitable[Any]] | str) -> Callable[..., Awaitable[Any]]:
    if isinstance(accessor, str):
        method_name = accessor
        return lambda record, *args: getattr(record, method_name)(*args)
    return accessor


def accessor_name(verb: str, field: str) -> str:
    """Canonical accessor label: `set` + `owner_user` → `setOwnerUser`."""
    verb = verb.lower() if verb.lower() in ("get", "set") else "get"
    return verb + "".join(part[:1].upper() + part[1:] for part in field.split("_"))


class Fields:
    """Ordered registry of Field definitions for one record type."""

    def __init__(self) -> None:
        self._fields: dict[str, Field] = {}

    def copy(self) -> Fields:
        clone = Fields()
        clone._fields = dict(self._fields)
        return clone

    def field(
        self,
        name: str,
        sql_type: str = "TEXT",
        *,
        default: Any = None,
        readable: bool = True,
        writable: bool = True,
        getter: Accessor = None,
        setter: Accessor = None,
        relation: Any = None,
    ) -> Field:
        """Register (or replace) a field."""
        definition = Field(
            name=name,
            sql_type=sql_type,
            relation=relation,
            default=default,
            readable=readable,
            writable=writable,
            getter=getter,
            setter=setter,
        )
        self._fields[name] = definition
        return definition

    def relation(
        self,
        name: str,
        record_type: Any,
        *,
        readable: bool = True,
        writable: bool = True,
        getter: Accessor = None,
        setter: Accessor = None,
    ) -> Field:
        """Register a field holding a related record (stored as its id)."""
        return self.field(
            name,
            "INTEGER",
            relation=record_type,
            readable=readable,
            writable=writable,
            getter=getter,
            setter=setter,
        )

    def get(self, name: str) -> Field | None:
        return self._fields.get(name)

    def getter(self, name: str) -> Getter | None:
        """Public getter for a field, or None when not readable or unknown."""
        definition = self._fields.get(name)
        if definition is None or not definition.readable:
            return None
        return definition.bound_getter()

    def setter(self, name: str, internal: bool = False) -> Setter | None:
        """Setter for a field, or None when unknown or (publicly) read-only.

        Args:
            name: Field name.
            internal: Also return setters of non-writable fields (hydration path).
        """
        definition = self._fields.get(name)
        if definition is None or not (internal or definition.writable):
            return None
        return definition.bound_setter()

    def names(self) -> list[str]:
        return list(self._fields)

    def defaults(self) -> dict[str, Any]:
        return {name: f.default for name, f in self._fields.items() if f.default is not None}

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)


__all__ = ["Field", "Fields", "Unresolved", "accessor_name"]
