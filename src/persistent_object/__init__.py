# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""persistent-object: active-record persistence layer on async SQLite."""

from .config import PersistenceConfig, config_from_env
from .exceptions import (
    AccessorNotDefined,
    DatabaseError,
    DatabaseRedefined,
    DatabaseUndefined,
    MutatorNotDefined,
    NoSuchInstance,
    PersistentObjectError,
    ScopedRecordError,
    UnexpectedOverwrite,
    UserRedefined,
    UserUndefined,
)
from .fields import Field, Fields, Unresolved
from .identity_map import IdentityMap
from .per_user import ScopedRecord, User
from .record import Record, RecordScope
from .session import Session
from .sql import Condition, SqlDb

__version__ = "0.1.0"

__all__ = [
    "AccessorNotDefined",
    "Condition",
    "DatabaseError",
    "DatabaseRedefined",
    "DatabaseUndefined",
    "Field",
    "Fields",
    "IdentityMap",
    "MutatorNotDefined",
    "NoSuchInstance",
    "PersistenceConfig",
    "PersistentObjectError",
    "Record",
    "RecordScope",
    "ScopedRecord",
    "ScopedRecordError",
    "Session",
    "SqlDb",
    "UnexpectedOverwrite",
    "Unresolved",
    "User",
    "UserRedefined",
    "UserUndefined",
    "config_from_env",
    "__version__",
]
