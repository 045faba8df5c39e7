# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""User record: the actor that scoped records belong to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..passwords import hash_password, is_password_hash
from ..passwords import verify_password as _verify_password
from ..record import Record

if TYPE_CHECKING:
    from ..fields import Fields


class User(Record):
    """A user with a username and a hashed password.

    The password has no public getter: it never appears in to_array() and
    can only be checked through verify_password(). Setting it stores a hash,
    unless the value already is one (as when loading from the store).
    """

    USERNAME = "username"
    PASSWORD = "password"

    @classmethod
    def configure(cls, fields: Fields) -> None:
        fields.field(cls.USERNAME)
        fields.field(cls.PASSWORD, readable=False, setter="_set_password")

    async def _set_password(self, value: Any, strict: bool = True) -> None:
        if value is not None and not is_password_hash(str(value)):
            value = hash_password(str(value))
        self._track_change(self.PASSWORD, value)

    def verify_password(self, password: str) -> bool:
        return _verify_password(password, self._values.get(self.PASSWORD))


__all__ = ["User"]
