# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for record - lookups, creation, dirty tracking and deletion."""

from __future__ import annotations

from datetime import datetime

import pytest

from persistent_object import (
    AccessorNotDefined,
    Condition,
    DatabaseError,
    DatabaseUndefined,
    MutatorNotDefined,
    NoSuchInstance,
    PersistenceConfig,
    Record,
    Session,
    UnexpectedOverwrite,
    User,
)
from tests.models import Gadget, Gauge, Part, Shelf


class Ghost(Record):
    """Record type whose table is never created."""

    @classmethod
    def configure(cls, fields):
        fields.field("name")


class TestNaming:
    """Tests for type and table naming."""

    def test_name_and_plural(self):
        assert Gadget.name() == "gadget"
        assert Gadget.name_plural() == "gadgets"

    def test_table_name_uses_prefix(self):
        session = Session(PersistenceConfig(table_prefix="app_"))
        assert Gadget.table_name(session) == "app_gadgets"

    def test_table_override_ignores_prefix(self):
        session = Session(PersistenceConfig(table_prefix="app_"))
        assert Gauge.table_name(session) == "custom_gauges"

    def test_column_names(self):
        assert Gadget.column_names() == ["id", "name", "size", "owner", "part", "created", "modified"]

    def test_record_type_lookup(self):
        assert Record.record_type("Gadget") is Gadget
        with pytest.raises(ValueError, match="Unknown record type"):
            Record.record_type("Nothing")


class TestCreateInstance:
    """Tests for create_instance()."""

    async def test_create_populates_store_columns(self, session):
        """A new instance gets id and timestamps from the store, and is clean."""
        gadget = await Gadget.create_instance(session, {"name": "a"})
        assert gadget.id == "1"
        assert isinstance(gadget.created, datetime)
        assert isinstance(gadget.modified, datetime)
        assert gadget.dirty == set()
        assert session.identity_map.get(Gadget, "1") is gadget

    async def test_create_applies_defaults(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        assert await gadget.get("size") == 1
        gauge = await Gauge.create_instance(session, {"label": "x"})
        assert await gauge.get("level") == 5

    async def test_create_keeps_explicit_value_over_default(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a", "size": 7})
        assert await gadget.get("size") == 7

    async def test_create_strict_rejects_unknown_field(self, session):
        with pytest.raises(MutatorNotDefined) as exc_info:
            await Gadget.create_instance(session, {"name": "a", "colour": "red"})
        assert exc_info.value.code == 2
        assert await Gadget.get_instances(session) == []

    async def test_create_non_strict_skips_unknown_field(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a", "colour": "red"}, strict=False)
        assert gadget.id is not None
        assert await gadget.get("name") == "a"

    async def test_create_with_existing_id_refuses_overwrite(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        with pytest.raises(UnexpectedOverwrite) as exc_info:
            await Gadget.create_instance(session, {"id": gadget.id, "name": "b"})
        assert exc_info.value.code == 30
        assert exc_info.value.field == "name"

    async def test_refused_overwrite_leaves_cached_instance_untouched(self, session, db):
        gadget = await Gadget.create_instance(session, {"size": 2})
        with pytest.raises(UnexpectedOverwrite) as exc_info:
            await Gadget.create_instance(session, {"id": gadget.id, "name": "x", "size": 9})
        assert exc_info.value.field == "size"

        assert await gadget.get("name") is None
        assert await gadget.get("size") == 2
        assert gadget.dirty == set()
        await gadget.flush_changes()
        row = await db.fetch_one("SELECT * FROM `gadgets` WHERE `id` = :id", {"id": gadget.id})
        assert (row["name"], row["size"]) == (None, 2)

    async def test_create_with_existing_id_and_overwrite_updates(self, session, db):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        again = await Gadget.create_instance(session, {"id": gadget.id, "name": "b"}, overwrite=True)
        assert again is gadget
        assert gadget.dirty == set()
        row = await db.fetch_one("SELECT * FROM `gadgets` WHERE `id` = :id", {"id": gadget.id})
        assert row["name"] == "b"

    async def test_create_with_related_record(self, session):
        user = await User.create_instance(session, {"username": "ada", "password": "pw"})
        gadget = await Gadget.create_instance(session, {"name": "a", "owner": user})
        assert await gadget.get("owner") is user

    async def test_create_with_related_values_creates_related(self, session):
        gadget = await Gadget.create_instance(
            session, {"name": "a", "owner": {"username": "bob", "password": "pw"}}
        )
        owner = await gadget.get("owner")
        assert isinstance(owner, User)
        assert owner.id is not None
        assert await owner.get("username") == "bob"


class TestGetInstanceById:
    """Tests for get_instance_by_id() and the identity map."""

    async def test_same_instance_returned(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        assert await Gadget.get_instance_by_id(session, gadget.id) is gadget
        assert await Gadget.get_instance_by_id(session, int(gadget.id)) is gadget

    async def test_repeated_lookups_after_reload(self, session, statements):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        session.identity_map.clear()
        statements.clear()

        first = await Gadget.get_instance_by_id(session, gadget.id)
        second = await Gadget.get_instance_by_id(session, gadget.id)
        assert first is second
        assert first is not gadget
        assert len(statements) == 1

    async def test_condition_forces_fresh_read(self, session, db):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await db.execute("UPDATE `gadgets` SET `name` = 'z' WHERE `id` = :id", {"id": gadget.id})

        cached = await Gadget.get_instance_by_id(session, gadget.id)
        assert await cached.get("name") == "a"

        fresh = await Gadget.get_instance_by_id(
            session, gadget.id, Condition.from_expression("`size` = 1")
        )
        assert fresh is gadget
        assert await fresh.get("name") == "z"

    async def test_condition_not_matching_raises(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        with pytest.raises(NoSuchInstance):
            await Gadget.get_instance_by_id(
                session, gadget.id, Condition.from_field_equality({"name": "other"})
            )

    async def test_missing_id_raises(self, session):
        with pytest.raises(NoSuchInstance) as exc_info:
            await Gadget.get_instance_by_id(session, "999")
        assert exc_info.value.code == 31
        assert str(exc_info.value) == "gadget ID 999 does not exist"

    async def test_empty_id_raises(self, session):
        with pytest.raises(NoSuchInstance):
            await Gadget.get_instance_by_id(session, None)

    async def test_types_do_not_share_ids(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        part = await Part.create_instance(session, {"label": "p"})
        assert gadget.id == part.id
        assert await Gadget.get_instance_by_id(session, "1") is gadget
        assert await Part.get_instance_by_id(session, "1") is part


class TestGetInstances:
    """Tests for get_instances()."""

    async def _three(self, session):
        return [
            await Gadget.create_instance(session, {"name": name, "size": size})
            for name, size in (("a", 1), ("b", 2), ("c", 3))
        ]

    async def test_returns_cached_instances_in_order(self, session):
        created = await self._three(session)
        found = await Gadget.get_instances(session, ordering={"name": "DESC"})
        assert found == list(reversed(created))
        assert all(f is c for f, c in zip(found, reversed(created)))

    async def test_condition_filters(self, session):
        await self._three(session)
        found = await Gadget.get_instances(session, Condition.from_field_equality({"name": "b"}))
        assert [await g.get("name") for g in found] == ["b"]

    async def test_extra_params(self, session):
        await self._three(session)
        found = await Gadget.get_instances(
            session, Condition.from_expression("`size` > :min"), ["`size` ASC"], {"min": 1}
        )
        assert [await g.get("size") for g in found] == [2, 3]

    async def test_raw_ordering_with_limit(self, session):
        await self._three(session)
        found = await Gadget.get_instances(session, ordering="ORDER BY `size` DESC LIMIT 2")
        assert [await g.get("name") for g in found] == ["c", "b"]

    async def test_refreshes_cached_instance(self, session):
        """A cached instance is re-hydrated from the row and marked clean."""
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("name", "local")
        assert gadget.dirty == {"name"}

        [found] = await Gadget.get_instances(session)
        assert found is gadget
        assert await gadget.get("name") == "a"
        assert gadget.dirty == set()

    async def test_empty_table(self, session):
        assert await Gadget.get_instances(session) == []


class TestFieldAccess:
    """Tests for get()/set() and deferred relations."""

    async def test_set_then_get_without_round_trip(self, session, statements):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        statements.clear()
        await gadget.set("name", "b")
        assert await gadget.get("name") == "b"
        assert gadget.dirty == {"name"}
        assert statements == []

    async def test_setting_same_value_is_not_a_change(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("name", "a")
        assert gadget.dirty == set()

    async def test_unknown_field(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        with pytest.raises(MutatorNotDefined):
            await gadget.set("colour", "red")

    async def test_structural_fields_are_read_only(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        assert await gadget.get("id") == gadget.id
        with pytest.raises(MutatorNotDefined):
            await gadget.set("id", "42")
        with pytest.raises(MutatorNotDefined):
            await gadget.set("created", "2025-01-01 00:00:00")

    async def test_strict_relation_resolves_now(self, session):
        user = await User.create_instance(session, {"username": "ada", "password": "pw"})
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("owner", user.id)
        assert gadget.deferred == {}
        assert await gadget.get("owner") is user

    async def test_strict_relation_missing_raises(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        with pytest.raises(NoSuchInstance):
            await gadget.set("owner", "999")

    async def test_relation_rejects_other_record_type(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        part = await Part.create_instance(session, {"label": "p"})
        with pytest.raises(TypeError):
            await gadget.set("owner", part)

    async def test_deferred_relation_resolved_once(self, session, statements):
        """A non-strict relation costs exactly one fetch, on first read."""
        user = await User.create_instance(session, {"username": "ada", "password": "pw"})
        gadget = await Gadget.create_instance(session, {"name": "a"})
        session.identity_map.discard(user)

        await gadget.set("owner", user.id, strict=False)
        assert gadget.deferred == {"owner": User}
        statements.clear()

        owner = await gadget.get("owner")
        assert isinstance(owner, User)
        assert owner.id == user.id
        assert len(statements) == 1
        assert gadget.deferred == {}
        assert "owner" in gadget.dirty

        assert await gadget.get("owner") is owner
        assert len(statements) == 1

    async def test_resolve_is_idempotent(self, session):
        user = await User.create_instance(session, {"username": "ada", "password": "pw"})
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("owner", user.id, strict=False)
        assert await gadget.resolve("owner") is user
        assert await gadget.resolve("owner") is user

    async def test_loaded_relations_are_deferred(self, session):
        user = await User.create_instance(session, {"username": "ada", "password": "pw"})
        gadget = await Gadget.create_instance(session, {"name": "a", "owner": user})
        session.identity_map.clear()

        reloaded = await Gadget.get_instance_by_id(session, gadget.id)
        assert reloaded.deferred == {"owner": User}
        assert reloaded.dirty == set()
        owner = await reloaded.get("owner")
        assert await owner.get("username") == "ada"


class TestFlush:
    """Tests for flush_changes() and UPDATE statements."""

    async def test_flush_writes_dirty_fields(self, session, db):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("name", "b")
        await gadget.flush_changes()
        assert gadget.dirty == set()
        row = await db.fetch_one("SELECT * FROM `gadgets` WHERE `id` = :id", {"id": gadget.id})
        assert row["name"] == "b"

    async def test_flush_without_changes_issues_nothing(self, session, statements):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        statements.clear()
        await gadget.flush_changes()
        assert statements == []

    async def test_update_statement(self, session, statements):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("size", 3)
        statements.clear()
        await gadget.flush_changes()
        assert statements == ["UPDATE `gadgets` SET `size` = :size WHERE `id` = :id"]

    async def test_flush_deferred_relation_stores_key(self, session, db):
        user = await User.create_instance(session, {"username": "ada", "password": "pw"})
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("owner", user.id, strict=False)
        await gadget.flush_changes()
        row = await db.fetch_one("SELECT * FROM `gadgets` WHERE `id` = :id", {"id": gadget.id})
        assert row["owner"] == int(user.id)


class TestDeleteInstance:
    """Tests for delete_instance()."""

    async def test_delete_evicts_and_detaches(self, session, db):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await gadget.set("name", "pending")

        deleted = await Gadget.delete_instance(session, gadget.id)
        assert deleted is gadget
        assert deleted.dirty == set()
        assert not session.identity_map.contains(Gadget, gadget.id)
        assert await deleted.get("name") == "pending"
        assert await db.fetch_one("SELECT * FROM `gadgets`") is None

    async def test_lookup_after_delete_fails(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await Gadget.delete_instance(session, gadget.id)
        with pytest.raises(NoSuchInstance):
            await Gadget.get_instance_by_id(session, gadget.id)

    async def test_delete_missing_raises(self, session):
        with pytest.raises(NoSuchInstance):
            await Gadget.delete_instance(session, "42")


class TestGetChildren:
    """Tests for get_children()."""

    async def test_children_refer_back_to_parent(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        other = await Gadget.create_instance(session, {"name": "b"})
        await Part.create_instance(session, {"label": "p1", "gadget": gadget})
        await Part.create_instance(session, {"label": "p2", "gadget": gadget})
        await Part.create_instance(session, {"label": "p3", "gadget": other})

        children = await gadget.get_children(Part, ordering=["`label` DESC"])
        assert [await p.get("label") for p in children] == ["p2", "p1"]

    async def test_children_with_condition(self, session):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        await Part.create_instance(session, {"label": "p1", "gadget": gadget})
        await Part.create_instance(session, {"label": "p2", "gadget": gadget})
        children = await gadget.get_children(Part, Condition.from_field_equality({"label": "p1"}))
        assert len(children) == 1


class TestCustomAccessors:
    """Tests for custom getters/setters and access flags."""

    async def test_custom_getter_and_setter(self, session):
        gauge = await Gauge.create_instance(session, {"label": "  hi  "})
        assert await gauge.get("label") == "HI"
        await gauge.set("label", " lo ")
        assert await gauge.get("label") == "LO"

    async def test_read_only_field(self, session):
        gauge = await Gauge.create_instance(session, {"level": 2})
        assert await gauge.get("serial") == "S1"
        with pytest.raises(MutatorNotDefined):
            await gauge.set("serial", "S2")

    async def test_write_only_field(self, session):
        gauge = await Gauge.create_instance(session, {"secret": "x"})
        await gauge.set("secret", "y")
        with pytest.raises(AccessorNotDefined) as exc_info:
            await gauge.get("secret")
        assert exc_info.value.code == 1
        assert "getSecret" in str(exc_info.value)


class TestErrors:
    """Tests for database error translation and missing database."""

    async def test_store_error_becomes_database_error(self, session):
        with pytest.raises(DatabaseError) as exc_info:
            await Ghost.get_instances(session)
        error = exc_info.value
        assert error.code == 20
        assert "`ghosts`" in error.query
        assert "no such table" in error.detail

    async def test_insert_error_becomes_database_error(self, session):
        with pytest.raises(DatabaseError) as exc_info:
            await Ghost.create_instance(session, {"name": "boo"})
        assert exc_info.value.query.startswith("INSERT INTO `ghosts`")

    async def test_database_undefined(self):
        with pytest.raises(DatabaseUndefined) as exc_info:
            await Gadget.get_instances(Session())
        assert exc_info.value.code == 10


class TestSchema:
    """Tests for create_table_sql()/create_schema()."""

    async def test_create_table_sql(self, session):
        sql = Gadget.create_table_sql(session)
        assert sql.startswith("CREATE TABLE IF NOT EXISTS `gadgets` (")
        assert "`id` INTEGER PRIMARY KEY AUTOINCREMENT" in sql
        assert "`size` INTEGER" in sql
        assert "`owner` INTEGER" in sql
        assert "`created` TIMESTAMP DEFAULT CURRENT_TIMESTAMP" in sql
        assert "CREATE TRIGGER IF NOT EXISTS `gadgets_modified`" in sql

    async def test_create_schema_is_repeatable(self, session):
        await Gadget.create_schema(session)
        assert await Gadget.get_instances(session) == []


class TestRecordScope:
    """Tests for acquire()/scope()."""

    async def test_acquire_flushes_on_exit(self, session, db):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        async with Gadget.acquire(session, gadget.id) as acquired:
            assert acquired is gadget
            await acquired.set("name", "b")
        assert gadget.dirty == set()
        row = await db.fetch_one("SELECT * FROM `gadgets` WHERE `id` = :id", {"id": gadget.id})
        assert row["name"] == "b"

    async def test_scope_discards_on_error(self, session, db):
        gadget = await Gadget.create_instance(session, {"name": "a"})
        with pytest.raises(RuntimeError):
            async with gadget.scope():
                await gadget.set("name", "b")
                raise RuntimeError("boom")

        assert gadget.dirty == set()
        assert not session.identity_map.contains(Gadget, gadget.id)
        row = await db.fetch_one("SELECT * FROM `gadgets` WHERE `id` = :id", {"id": gadget.id})
        assert row["name"] == "a"

        reloaded = await Gadget.get_instance_by_id(session, gadget.id)
        assert reloaded is not gadget
        assert await reloaded.get("name") == "a"

    async def test_acquire_missing_raises(self, session):
        with pytest.raises(NoSuchInstance):
            async with Gadget.acquire(session, "404"):
                pass


class TestColumnNames:
    """Columns whose names need escaping or resemble flags and timestamps."""

    async def test_insert_escaped_column(self, session, db, statements):
        shelf = await Shelf.create_instance(session, {"shelf-code": "A1"})
        assert await shelf.get("shelf-code") == "A1"
        row = await db.fetch_one("SELECT * FROM `shelfs` WHERE `id` = :id", {"id": shelf.id})
        assert row["shelf-code"] == "A1"

        await shelf.set("shelf-code", "B2")
        await shelf.flush_changes()
        assert statements[-1] == "UPDATE `shelfs` SET `shelf-code` = :shelf_code WHERE `id` = :id"
        assert await Shelf.get_instances(
            session, Condition.from_field_equality({"shelf-code": "B2"})
        ) == [shelf]

    async def test_insert_error_reports_executed_statement(self, session):
        with pytest.raises(DatabaseError) as exc_info:
            await Ghost.create_instance(session, {"name": "boo"})
        assert exc_info.value.query == "INSERT INTO `ghosts` (`name`) VALUES (:name)"

    async def test_values_come_back_unchanged(self, session):
        first = await Shelf.create_instance(session, {"active": 1, "expires": "2024-01-01 10:00"})
        second = await Shelf.create_instance(session, {"active": 3})
        session.identity_map.clear()

        first = await Shelf.get_instance_by_id(session, first.id)
        second = await Shelf.get_instance_by_id(session, second.id)
        assert await first.get("active") == 1
        assert await first.get("active") is not True
        assert await second.get("active") == 3
        assert await first.get("expires") == "2024-01-01 10:00"
        assert (await first.to_array())["expires"] == "2024-01-01 10:00"
        assert isinstance(first.created, datetime)

    async def test_null_loaded_through_custom_setter(self, session):
        gauge = await Gauge.create_instance(session, {"serial": "S1"})
        session.identity_map.clear()
        reloaded = await Gauge.get_instance_by_id(session, gauge.id)
        assert await reloaded.get("label") is None
