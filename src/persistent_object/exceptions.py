# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions raised by the record layer.

Every error carries a stable integer `code`. None of them is retried
internally: they surface to the immediate caller.
"""

from __future__ import annotations

from typing import Any

from .fields import accessor_name


class PersistentObjectError(Exception):
    """Base class for record layer errors."""

    code: int = 0


class AccessorNotDefined(PersistentObjectError):
    """Raised when a field has no registered getter."""

    code = 1

    def __init__(self, record_type: str, field: str):
        self.record_type = record_type
        self.field = field
        super().__init__(
            f"No getter `{accessor_name('get', field)}` available for field `{field}` of {record_type}"
        )


class MutatorNotDefined(PersistentObjectError):
    """Raised when a field has no registered setter."""

    code = 2

    def __init__(self, record_type: str, field: str):
        self.record_type = record_type
        self.field = field
        super().__init__(
            f"No setter `{accessor_name('set', field)}` available for field `{field}` of {record_type}"
        )


class DatabaseUndefined(PersistentObjectError):
    """Raised when the database is used before being set on the session."""

    code = 10

    def __init__(self) -> None:
        super().__init__("Active database connection required.")


class DatabaseRedefined(PersistentObjectError):
    """Raised when a session's database is set a second time."""

    code = 11

    def __init__(self) -> None:
        super().__init__("Database connection already set for this session.")


class DatabaseError(PersistentObjectError):
    """Raised when the store rejects a statement.

    Attributes:
        error_code: Driver error code or name, when the driver provides one.
        detail: Driver error text.
        query: The statement that failed.
    """

    code = 20

    def __init__(self, query: str, error_code: Any = None, detail: str = ""):
        self.query = query
        self.error_code = error_code
        self.detail = detail
        prefix = f"Database error {error_code}" if error_code is not None else "Database error"
        super().__init__(f"{prefix}: {detail}\n{query}")


class UnexpectedOverwrite(PersistentObjectError):
    """Raised when values would replace existing data without overwrite allowed."""

    code = 30

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Data overwrites field `{field}` unexpectedly.")


class NoSuchInstance(PersistentObjectError):
    """Raised when a lookup by id matches no row."""

    code = 31

    def __init__(self, record_type: str, id: Any):
        self.record_type = record_type
        self.id = id
        super().__init__(f"{record_type} ID {id} does not exist")


class ScopedRecordError(PersistentObjectError):
    """Base class for current-user (actor) lifecycle errors."""


class UserUndefined(ScopedRecordError):
    """Raised when an operation needs a current user and none is assigned."""

    code = 1001

    def __init__(self, message: str = "A valid user must be assigned"):
        super().__init__(message)


class UserRedefined(ScopedRecordError):
    """Raised on a second user assignment or an attempt to change owner."""

    code = 1002

    def __init__(self, message: str = "A user has already been assigned for this session"):
        super().__init__(message)


__all__ = [
    "AccessorNotDefined",
    "DatabaseError",
    "DatabaseRedefined",
    "DatabaseUndefined",
    "MutatorNotDefined",
    "NoSuchInstance",
    "PersistentObjectError",
    "ScopedRecordError",
    "UnexpectedOverwrite",
    "UserRedefined",
    "UserUndefined",
]
