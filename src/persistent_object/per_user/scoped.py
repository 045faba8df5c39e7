# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Records owned by the session's current user.

A ScopedRecord type has an owner field (default `user`) related to the
user type. Every read is filtered on the current user, every UPDATE and
DELETE is bound to it, so a session never sees or touches another user's
rows.

Usage:
    class Note(ScopedRecord):
        @classmethod
        def configure(cls, fields):
            fields.field("text")

    await ScopedRecord.assign_user(session, {"username": "ada", "password": "s3cret"})
    note = await Note.create_instance(session, {"text": "hello"})
    # → INSERT INTO `notes` (`text`, `user`) VALUES (:text, :user)

    notes = await Note.get_instances(session)
    # → SELECT * FROM `notes` WHERE (`user` = :user)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from ..exceptions import UserRedefined, UserUndefined
from ..fields import Unresolved
from ..record import Record
from ..sql import Condition
from .user import User

if TYPE_CHECKING:
    from ..session import Session


class ScopedRecord(Record):
    """Record type whose rows belong to the session's current user.

    Class attributes:
        owner_field: Column holding the owning user's id.
        user_type: Record type of the owner.
    """

    owner_field: ClassVar[str] = "user"
    user_type: ClassVar[type[Record]] = User

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.fields.relation(
            cls.owner_field, cls.user_type, getter="_get_owner", setter="_set_owner"
        )

    # -------------------------------------------------------------------------
    # Current user
    # -------------------------------------------------------------------------

    @classmethod
    async def assign_user(cls, session: Session, user: Any) -> Record:
        """Set the session's current user (once).

        Args:
            session: Target session.
            user: A user_type instance, the id of one, or the field values
                of a new one.

        Raises:
            UserUndefined: If `user` is empty.
            UserRedefined: If the session already has a user.
        """
        if session.user is not None:
            raise UserRedefined()
        if not user:
            raise UserUndefined()
        if isinstance(user, cls.user_type):
            resolved = user
        elif isinstance(user, Mapping):
            resolved = await cls.user_type.create_instance(session, user)
        else:
            resolved = await cls.user_type.get_instance_by_id(session, user)
        session.set_user(resolved)
        return resolved

    @classmethod
    def session_user(cls, session: Session) -> Record | None:
        return session.user

    async def _get_owner(self) -> Record:
        return self.session.require_user()

    async def _set_owner(self, value: Any, strict: bool = True) -> None:
        current = self.session.user
        if current is None:
            if value is None:
                raise UserUndefined()
            await self._set_field(self.owner_field, value, True)
            self.session.set_user(self._values[self.owner_field])
            return
        if value is None:
            return
        if isinstance(value, Mapping):
            raise UserRedefined("Attempt to redefine user")
        key = value.id if isinstance(value, (Record, Unresolved)) else value
        if str(key) != str(current.id):
            raise UserRedefined("Attempt to redefine user")
        self._track_change(self.owner_field, current)

    # -------------------------------------------------------------------------
    # Query scoping
    # -------------------------------------------------------------------------

    @classmethod
    def _scope_condition(cls, session: Session) -> Condition | None:
        return Condition.from_field_equality({cls.owner_field: session.require_user().id})

    def _query_value(self, name: str) -> Any:
        if name == self.owner_field:
            return self.session.require_user().id
        return super()._query_value(name)

    def _update_fields(self) -> list[str]:
        return [self.owner_field]

    def _row_scope(self) -> list[str]:
        return [self.owner_field, self.ID]


__all__ = ["ScopedRecord"]
