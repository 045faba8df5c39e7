# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Active-record base: one Record instance per table row.

A Record subclass declares its fields in configure() and gets:

- lookups by id and by condition, going through the session identity map
- creation (INSERT, then re-read of store-computed columns) and deletion
- dirty tracking with explicit flush, or scoped flush-or-discard via acquire()
- deferred relational fields resolved on first read
- serialization to plain dicts / JSON

Usage:
    class Widget(Record):
        @classmethod
        def configure(cls, fields):
            fields.field("name")
            fields.relation("owner", "User")

    widget = await Widget.create_instance(session, {"name": "foo"})
    same = await Widget.get_instance_by_id(session, widget.id)
    assert same is widget

    async with Widget.acquire(session, widget.id) as w:
        await w.set("name", "bar")
    # → UPDATE `widgets` SET `name` = :name WHERE `id` = :id
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from .config import ISO8601
from .exceptions import (
    AccessorNotDefined,
    DatabaseError,
    MutatorNotDefined,
    NoSuchInstance,
    UnexpectedOverwrite,
)
from .fields import Fields, Unresolved
from .sql import (
    Condition,
    Ordering,
    delete_sql,
    insert_sql,
    placeholder_name,
    quote,
    select_sql,
    unique_fields,
    update_sql,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .session import Session
    from .sql import SqlDb

logger = logging.getLogger(__name__)

# Format of datetimes bound as statement parameters.
QUERY_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _same_value(current: Any, value: Any) -> bool:
    if isinstance(current, (Record, Unresolved)):
        if isinstance(value, Mapping):
            return False
        key = value.id if isinstance(value, (Record, Unresolved)) else value
        return str(current.id) == str(key)
    if current == value:
        return True
    return isinstance(value, (str, int)) and str(current) == str(value)


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


class Record:
    """Base class for persisted record types.

    Class attributes:
        table: Full table name, overriding prefix + name_plural().
        date_format: strftime format for serialized datetimes (None: session config).
        default_values: Values applied on insert to fields still None.
        fields: Field registry, built once per subclass from configure().

    Instance state:
        session: Owning Session.
        id: Store-assigned string id, None until inserted.
        created / modified: Store-computed timestamps.
        dirty: Names of fields changed since the last flush or clean load.
        deferred: Relational fields still holding a raw key.
    """

    ID: ClassVar[str] = "id"
    CREATED: ClassVar[str] = "created"
    MODIFIED: ClassVar[str] = "modified"
    STRUCTURAL: ClassVar[tuple[str, ...]] = (ID, CREATED, MODIFIED)

    table: ClassVar[str | None] = None
    date_format: ClassVar[str | None] = None
    default_values: ClassVar[dict[str, Any]] = {}
    fields: ClassVar[Fields]

    _registry: ClassVar[dict[str, type[Record]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        fields = cls.fields.copy()
        if "configure" in cls.__dict__:
            cls.configure(fields)
        cls.fields = fields
        Record._registry[cls.__name__] = cls

    @classmethod
    def configure(cls, fields: Fields) -> None:
        """Override to declare fields. Called once, when the subclass is created."""
        pass

    @classmethod
    def record_type(cls, name: str) -> type[Record]:
        """Return a registered record type by class name."""
        try:
            return Record._registry[name]
        except KeyError:
            raise ValueError(f"Unknown record type '{name}'") from None

    # -------------------------------------------------------------------------
    # Naming
    # -------------------------------------------------------------------------

    @classmethod
    def name(cls) -> str:
        return cls.__name__.lower()

    @classmethod
    def name_plural(cls) -> str:
        return cls.name() + "s"

    @classmethod
    def table_name(cls, session: Session) -> str:
        """Table for this type: `table` if set, else session prefix + name_plural()."""
        if cls.table:
            return cls.table
        return session.table_prefix + cls.name_plural()

    @classmethod
    def column_names(cls) -> list[str]:
        """Persisted columns: id, declared fields, created, modified."""
        declared = [n for n in cls.fields.names() if n not in cls.STRUCTURAL]
        return [cls.ID, *declared, cls.CREATED, cls.MODIFIED]

    # -------------------------------------------------------------------------
    # Instance state
    # -------------------------------------------------------------------------

    def __init__(self, session: Session):
        self.session = session
        self._values: dict[str, Any] = dict.fromkeys(self.fields.names())
        self._dirty: list[str] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"

    @property
    def id(self) -> str | None:
        return self._values.get(self.ID)

    @property
    def created(self) -> datetime | None:
        return self._values.get(self.CREATED)

    @property
    def modified(self) -> datetime | None:
        return self._values.get(self.MODIFIED)

    @property
    def dirty(self) -> set[str]:
        return set(self._dirty)

    @property
    def deferred(self) -> dict[str, type[Record]]:
        return {
            name: value.record_type
            for name, value in self._values.items()
            if isinstance(value, Unresolved)
        }

    def _track_change(self, name: str, value: Any) -> None:
        current = self._values.get(name)
        if current is value:
            return
        if type(current) is type(value) and not isinstance(value, Record) and current == value:
            return
        self._values[name] = value
        if name not in self._dirty:
            self._dirty.append(name)

    def _clear_changes(self) -> None:
        self._dirty.clear()

    # Structural setters: hydration only, no dirty tracking.

    async def _set_id(self, value: Any, strict: bool = True) -> None:
        current = self._values.get(self.ID)
        if value is None:
            return
        if current is not None and current != str(value):
            raise UnexpectedOverwrite(self.ID)
        self._values[self.ID] = str(value)

    async def _set_created(self, value: Any, strict: bool = True) -> None:
        self._values[self.CREATED] = _parse_timestamp(value)

    async def _set_modified(self, value: Any, strict: bool = True) -> None:
        self._values[self.MODIFIED] = _parse_timestamp(value)

    # -------------------------------------------------------------------------
    # Field access
    # -------------------------------------------------------------------------

    async def get(self, field: str) -> Any:
        """Read a field through its registered getter.

        Raises:
            AccessorNotDefined: If the field has no public getter.
        """
        getter = self.fields.getter(field)
        if getter is None:
            raise AccessorNotDefined(type(self).__name__, field)
        return await getter(self)

    async def set(self, field: str, value: Any, strict: bool = True) -> None:
        """Write a field through its registered setter.

        For relational fields, `strict` resolves the related record now
        (NoSuchInstance if missing); otherwise the raw key is kept until
        the first read.

        Raises:
            MutatorNotDefined: If the field has no public setter.
        """
        setter = self.fields.setter(field)
        if setter is None:
            raise MutatorNotDefined(type(self).__name__, field)
        await setter(self, value, strict)

    async def _get_field(self, name: str) -> Any:
        """Default getter: the stored value, resolving a deferred relation first."""
        return await self.resolve(name)

    async def _set_field(self, name: str, value: Any, strict: bool = True) -> None:
        """Default setter: store the value, materializing relational values."""
        definition = self.fields.get(name)
        related = definition.related_type() if definition is not None else None
        if related is not None and value is not None:
            value = await self._relation_value(name, related, value, strict)
        self._track_change(name, value)

    async def _relation_value(
        self, name: str, related: type[Record], value: Any, strict: bool
    ) -> Any:
        if isinstance(value, related):
            return value
        if isinstance(value, Record):
            raise TypeError(
                f"Field `{name}` of {type(self).__name__} expects {related.__name__}, "
                f"got {type(value).__name__}"
            )
        if isinstance(value, Mapping):
            return await related.create_instance(self.session, value)
        key = value.key if isinstance(value, Unresolved) else value
        if strict:
            return await related.get_instance_by_id(self.session, key)
        current = self._values.get(name)
        if isinstance(current, related) and str(current.id) == str(key):
            return current
        return Unresolved(str(key), related)

    async def resolve(self, field: str) -> Any:
        """Materialize a deferred relational field (one fetch, then a no-op).

        The resolved record replaces the raw key and the field is marked dirty.
        """
        value = self._values.get(field)
        if isinstance(value, Unresolved):
            instance = await value.record_type.get_instance_by_id(self.session, value.key)
            self._track_change(field, instance)
        return self._values.get(field)

    async def _apply_values(
        self,
        values: Mapping[str, Any],
        *,
        strict: bool = True,
        overwrite: bool = False,
        clean: bool = False,
    ) -> None:
        """Apply values through the setters, then either mark clean or persist.

        A clean load applies every value (None included) and clears the dirty
        set. Otherwise None values are skipped and the record is inserted (no
        id) or updated (id present).

        Unknown fields and overwrites are rejected before any setter runs,
        so a refused call leaves the instance untouched.
        """
        setters = []
        for name, value in values.items():
            if value is None and not clean:
                continue
            setter = self.fields.setter(name, internal=True)
            if setter is None:
                if strict:
                    raise MutatorNotDefined(type(self).__name__, name)
                continue
            current = self._values.get(name)
            if not overwrite and not _is_empty(current) and not _same_value(current, value):
                raise UnexpectedOverwrite(name)
            setters.append((setter, value))
        for setter, value in setters:
            await setter(self, value, strict)
        if clean:
            self._clear_changes()
        elif self.id is None:
            await self._insert()
        else:
            await self._update()

    # -------------------------------------------------------------------------
    # Statement execution
    # -------------------------------------------------------------------------

    @classmethod
    @contextmanager
    def _statement(
        cls, session: Session, sql: str, params: Mapping[str, Any] | None = None
    ) -> Iterator[SqlDb]:
        """Yield the session database, translating driver errors to DatabaseError."""
        db = session.database
        if session.config.log_sql:
            logger.debug("%s %s", sql, dict(params or {}))
        try:
            yield db
        except db.adapter.error_types as error:
            code, detail = db.adapter.describe_error(error)
            logger.warning("Statement failed on %s (%s): %s", cls.table_name(session), code, detail)
            raise DatabaseError(sql, code, detail) from error

    @staticmethod
    def prepare_value_for_query(value: Any) -> Any:
        """Convert a plain value to a bindable parameter."""
        if isinstance(value, datetime):
            return value.strftime(QUERY_DATE_FORMAT)
        if value is None or isinstance(value, (str, int, float, bytes)):
            return value
        return str(value)

    def _query_value(self, name: str) -> Any:
        value = self._values.get(name)
        if isinstance(value, (Record, Unresolved)):
            return value.id
        return self.prepare_value_for_query(value)

    def _query_params(self, names: Iterable[str]) -> dict[str, Any]:
        return {placeholder_name(n): self._query_value(n) for n in names}

    @classmethod
    def _scope_condition(cls, session: Session) -> Condition | None:
        """Predicate ANDed into every read. None for unscoped types."""
        return None

    def _update_fields(self) -> list[str]:
        """Fields always written by an UPDATE, besides the requested and dirty ones."""
        return []

    def _row_scope(self) -> list[str]:
        """Fields identifying this row in UPDATE/DELETE WHERE clauses."""
        return [self.ID]

    @classmethod
    async def _fetch_row(
        cls, session: Session, id: Any, condition: Condition | None = None
    ) -> dict[str, Any]:
        condition = Condition.merge(Condition.from_field_equality({cls.ID: id}), condition)
        condition = Condition.merge(condition, cls._scope_condition(session))
        sql = select_sql(cls.table_name(session), condition, limit=1)
        params = condition.parameters() if condition is not None else {}
        with cls._statement(session, sql, params) as db:
            row = await db.fetch_one(sql, params)
        if row is None:
            raise NoSuchInstance(cls.name(), id)
        return row

    @classmethod
    async def _materialize(cls, session: Session, row: Mapping[str, Any]) -> Record:
        """Clean-load a row into the cached instance for its id, or a new cached one."""
        instance = session.identity_map.get(cls, row.get(cls.ID))
        if instance is None:
            instance = cls(session)
            await instance._apply_values(row, strict=False, overwrite=True, clean=True)
            session.identity_map.add(instance)
        else:
            await instance._apply_values(row, strict=False, overwrite=True, clean=True)
        return instance

    async def _insert(self) -> None:
        defaults = {**self.fields.defaults(), **self.default_values}
        for name, default in defaults.items():
            if self._values.get(name) is None:
                setter = self.fields.setter(name, internal=True)
                if setter is not None:
                    await setter(self, default, True)

        names = [n for n in self.column_names() if n not in (self.CREATED, self.MODIFIED)]
        if _is_empty(self.id):
            names.remove(self.ID)
        sql = insert_sql(self.table_name(self.session), names)
        params = self._query_params(names)
        with self._statement(self.session, sql, params) as db:
            new_id = await db.insert_returning_id(sql, params)

        row = await type(self)._fetch_row(self.session, new_id)
        await self._apply_values(row, strict=False, overwrite=True, clean=True)
        logger.debug("Inserted %s %s", type(self).__name__, self.id)

    async def _update(self, fields: Iterable[str] = ()) -> None:
        names = [
            n
            for n in unique_fields(list(fields), self._dirty, self._update_fields())
            if n not in self.STRUCTURAL
        ]
        if not names:
            self._clear_changes()
            return
        where = self._row_scope()
        sql = update_sql(self.table_name(self.session), names, where)
        params = self._query_params(unique_fields(names, where))
        with self._statement(self.session, sql, params) as db:
            await db.execute(sql, params)
        self._clear_changes()

    async def _delete(self) -> None:
        where = self._row_scope()
        sql = delete_sql(self.table_name(self.session), where)
        params = self._query_params(where)
        with self._statement(self.session, sql, params) as db:
            await db.execute(sql, params)
        self.session.identity_map.discard(self)
        self._clear_changes()
        logger.debug("Deleted %s %s", type(self).__name__, self.id)

    # -------------------------------------------------------------------------
    # Factory operations
    # -------------------------------------------------------------------------

    @classmethod
    async def get_instance_by_id(
        cls, session: Session, id: Any, condition: Condition | None = None
    ) -> Record:
        """Return the instance for `id`.

        Without a condition the identity map is checked first. With one, the
        row is always re-read (and the cached instance, if any, refreshed).

        Raises:
            NoSuchInstance: If no row matches.
        """
        if _is_empty(id):
            raise NoSuchInstance(cls.name(), id)
        if condition is None:
            cached = session.identity_map.get(cls, id)
            if cached is not None:
                return cached
        row = await cls._fetch_row(session, id, condition)
        return await cls._materialize(session, row)

    @classmethod
    async def get_instances(
        cls,
        session: Session,
        condition: Condition | None = None,
        ordering: Ordering = None,
        params: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        """Return the instances matching `condition`, in result-set order.

        Args:
            session: Owning session.
            condition: WHERE predicate (None: all rows).
            ordering: ORDER BY specification (see ordering_clause()).
            params: Extra bound parameters, e.g. for placeholders in `ordering`.
        """
        condition = Condition.merge(condition, cls._scope_condition(session))
        sql = select_sql(cls.table_name(session), condition, ordering)
        bound = condition.parameters(params) if condition is not None else dict(params or {})
        with cls._statement(session, sql, bound) as db:
            rows = await db.fetch_all(sql, bound)
        return [await cls._materialize(session, row) for row in rows]

    @classmethod
    async def create_instance(
        cls,
        session: Session,
        values: Mapping[str, Any],
        strict: bool = True,
        overwrite: bool = False,
    ) -> Record:
        """Create and persist an instance from field values.

        INSERT when `values` carries no id, UPDATE of the given fields otherwise.

        Raises:
            MutatorNotDefined: Strict mode and a key has no setter.
            UnexpectedOverwrite: A non-empty field would be replaced and
                `overwrite` is false.
        """
        values = dict(values)
        instance = session.identity_map.get(cls, values.get(cls.ID))
        if instance is None:
            instance = cls(session)
        await instance._apply_values(values, strict=strict, overwrite=overwrite)
        session.identity_map.add(instance)
        return instance

    @classmethod
    async def delete_instance(
        cls, session: Session, id: Any, condition: Condition | None = None
    ) -> Record:
        """Delete the row for `id` and return the detached instance."""
        instance = await cls.get_instance_by_id(session, id, condition)
        await instance._delete()
        return instance

    async def get_children(
        self,
        child_type: type[Record],
        condition: Condition | None = None,
        ordering: Ordering = None,
        params: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        """Instances of `child_type` whose field named after this type holds our id."""
        own = Condition.from_field_equality({self.name(): self.id})
        return await child_type.get_instances(
            self.session, Condition.merge(own, condition), ordering, params
        )

    # -------------------------------------------------------------------------
    # Flushing
    # -------------------------------------------------------------------------

    async def flush_changes(self) -> None:
        """UPDATE the dirty fields, if any."""
        if self._dirty:
            await self._update()

    def discard_changes(self) -> None:
        """Drop pending changes and evict, so the next lookup reloads from the store."""
        self._clear_changes()
        self.session.identity_map.discard(self)

    @classmethod
    def acquire(
        cls, session: Session, id: Any, condition: Condition | None = None
    ) -> RecordScope:
        """Scoped access to one record: flush on normal exit, discard on error.

        Usage:
            async with Widget.acquire(session, "12") as widget:
                await widget.set("name", "renamed")
        """
        return RecordScope(cls, session, id, condition)

    def scope(self) -> RecordScope:
        """Scoped access to this instance (see acquire())."""
        return RecordScope(type(self), self.session, record=self)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @classmethod
    def prepare_value_for_array(cls, value: Any, date_format: str | None = None) -> Any:
        """Convert a field value to a JSON-safe scalar."""
        if isinstance(value, datetime):
            return value.strftime(cls.date_format or date_format or ISO8601)
        if isinstance(value, (Record, Unresolved)):
            return value.id
        if value is None or isinstance(value, (str, int, float)):
            return value
        return str(value)

    async def to_array(
        self, expand: Iterable[str] = (), suppress: Iterable[str] = ()
    ) -> dict[str, Any]:
        """Serialize to a flat dict.

        Relational fields appear as `<field>_id`, or embedded under `<field>`
        when listed in `expand` (the embedded record does not expand back into
        this type). Suppressed fields and fields without a public getter are
        omitted.
        """
        expand = list(expand)
        suppress = list(suppress)
        array: dict[str, Any] = {}
        expanded: dict[str, Record] = {}

        for definition in self.fields:
            name = definition.name
            if name in suppress:
                continue
            getter = self.fields.getter(name)
            if getter is None:
                continue
            raw = self._values.get(name)
            if isinstance(raw, Unresolved) and name not in expand and definition.getter is None:
                array[f"{name}_id"] = raw.key
                continue
            try:
                value = await getter(self)
            except AccessorNotDefined:
                continue
            if isinstance(value, Record):
                if name in expand:
                    expanded[name] = value
                else:
                    array[f"{name}_id"] = value.id
            elif definition.relation is not None:
                array[f"{name}_id"] = None
            else:
                array[name] = self.prepare_value_for_array(value, self.session.date_format)

        remaining = [f for f in expand if f not in expanded]
        nested_suppress = [*suppress, *expanded, self.name()]
        for name, value in expanded.items():
            array[name] = await value.to_array(remaining, nested_suppress)
        return array

    @classmethod
    async def to_arrays(
        cls,
        items: Iterable[Any] | Mapping[str, Any],
        expand: Iterable[str] = (),
        suppress: Iterable[str] = (),
    ) -> list[Any] | dict[str, Any]:
        """Serialize a list (or dict) of records; other values become scalars."""
        expand = list(expand)
        suppress = list(suppress)

        async def convert(value: Any) -> Any:
            if isinstance(value, Record):
                return await value.to_array(expand, suppress)
            return cls.prepare_value_for_array(value)

        if isinstance(items, Mapping):
            return {key: await convert(value) for key, value in items.items()}
        return [await convert(value) for value in items]

    async def to_json(self, expand: Iterable[str] = (), suppress: Iterable[str] = ()) -> str:
        return json.dumps(await self.to_array(expand, suppress))

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    @classmethod
    def create_table_sql(cls, session: Session) -> str:
        """CREATE TABLE IF NOT EXISTS plus a trigger refreshing `modified` on update."""
        table = cls.table_name(session)
        columns = [session.database.adapter.pk_column(cls.ID)]
        for definition in cls.fields:
            if definition.name in cls.STRUCTURAL:
                continue
            columns.append(f"{quote(definition.name)} {definition.sql_type}")
        columns.append(f"{quote(cls.CREATED)} TIMESTAMP DEFAULT CURRENT_TIMESTAMP")
        columns.append(f"{quote(cls.MODIFIED)} TIMESTAMP DEFAULT CURRENT_TIMESTAMP")
        return (
            f"CREATE TABLE IF NOT EXISTS {quote(table)} (\n    "
            + ",\n    ".join(columns)
            + "\n);\n"
            f"CREATE TRIGGER IF NOT EXISTS {quote(table + '_modified')} "
            f"AFTER UPDATE ON {quote(table)} FOR EACH ROW BEGIN "
            f"UPDATE {quote(table)} SET {quote(cls.MODIFIED)} = CURRENT_TIMESTAMP "
            f"WHERE {quote(cls.ID)} = OLD.{quote(cls.ID)}; END;"
        )

    @classmethod
    async def create_schema(cls, session: Session) -> None:
        """Create the table if not exists (bootstrap helper, no migration)."""
        sql = cls.create_table_sql(session)
        with cls._statement(session, sql) as db:
            await db.execute_script(sql)


def _structural_fields() -> Fields:
    fields = Fields()
    fields.field(Record.ID, "INTEGER", writable=False, setter="_set_id")
    fields.field(Record.CREATED, "TIMESTAMP", writable=False, setter="_set_created")
    fields.field(Record.MODIFIED, "TIMESTAMP", writable=False, setter="_set_modified")
    return fields


Record.fields = _structural_fields()


class RecordScope:
    """Async context manager for scoped record access.

    Usage:
        async with Widget.acquire(session, pk) as widget:
            await widget.set("name", "value")
        # → flush_changes() on normal exit

        async with widget.scope():
            await widget.set("name", "other")
            raise ValueError()
        # → discard_changes(): dirty set cleared, instance evicted

    The context manager:
    - __aenter__: get_instance_by_id() (unless an instance was given)
    - __aexit__: flush_changes() on success, discard_changes() on error
    """

    def __init__(
        self,
        record_type: type[Record],
        session: Session,
        id: Any = None,
        condition: Condition | None = None,
        record: Record | None = None,
    ):
        self.record_type = record_type
        self.session = session
        self.id = id
        self.condition = condition
        self.record = record

    async def __aenter__(self) -> Record:
        if self.record is None:
            self.record = await self.record_type.get_instance_by_id(
                self.session, self.id, self.condition
            )
        return self.record

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.record is None:
            return
        if exc_type is not None:
            self.record.discard_changes()
            return
        await self.record.flush_changes()


__all__ = ["QUERY_DATE_FORMAT", "Record", "RecordScope"]
