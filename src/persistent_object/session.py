# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Session: the database handle, identity map and current user of one logical session.

A Session replaces process-wide globals. Every record operation receives
the session it runs in, so tests (or tenants) can hold independent sessions
side by side.

Usage:
    db = SqlDb("/data/app.db")
    await db.connect()

    session = Session(PersistenceConfig(table_prefix="app_"))
    session.set_database(db)

    widget = await Widget.get_instance_by_id(session, "12")

    # or, with the connection lifecycle handled for you
    async with Session.open(PersistenceConfig(db_path="/data/app.db")) as session:
        widgets = await Widget.get_instances(session)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from .config import PersistenceConfig
from .exceptions import DatabaseRedefined, DatabaseUndefined, UserRedefined, UserUndefined
from .identity_map import IdentityMap
from .sql import SqlDb

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .record import Record

logger = logging.getLogger(__name__)


class Session:
    """Explicit holder of the state shared by records.

    Attributes:
        config: PersistenceConfig for this session.
        identity_map: Cache of loaded records, one instance per (type, id).
        table_prefix: Prefix for all record tables (from config, overridable
            once via set_database()).

    The database can be set exactly once; the current user can be assigned
    exactly once (Unset → Set).
    """

    def __init__(self, config: PersistenceConfig | None = None, db: SqlDb | None = None):
        self.config = config or PersistenceConfig()
        self.table_prefix = self.config.table_prefix
        self.identity_map = IdentityMap()
        self._db: SqlDb | None = None
        self._user: Record | None = None
        if db is not None:
            self.set_database(db)

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------

    def set_database(self, db: SqlDb, table_prefix: str | None = None) -> None:
        """Establish the database for all records of this session.

        Raises:
            DatabaseRedefined: If a database was already set.
        """
        if self._db is not None:
            raise DatabaseRedefined()
        self._db = db
        if table_prefix is not None:
            self.table_prefix = table_prefix

    @property
    def database(self) -> SqlDb:
        """The session database.

        Raises:
            DatabaseUndefined: If set_database() was never called.
        """
        if self._db is None:
            raise DatabaseUndefined()
        return self._db

    @property
    def has_database(self) -> bool:
        return self._db is not None

    @property
    def date_format(self) -> str:
        return self.config.date_format

    @classmethod
    @asynccontextmanager
    async def open(cls, config: PersistenceConfig | None = None) -> AsyncIterator[Session]:
        """Open a session on `config.db_path`, commit and close on exit."""
        config = config or PersistenceConfig()
        db = SqlDb(config.db_path)
        session = cls(config, db)
        try:
            async with db.connection():
                yield session
        finally:
            await db.shutdown()

    # -------------------------------------------------------------------------
    # Current user
    # -------------------------------------------------------------------------

    @property
    def user(self) -> Record | None:
        """The current user, or None while unassigned."""
        return self._user

    def set_user(self, user: Any) -> None:
        """Transition the current user from Unset to Set.

        Raises:
            UserUndefined: If `user` is empty.
            UserRedefined: If a user was already assigned.
        """
        if self._user is not None:
            raise UserRedefined()
        if not user:
            raise UserUndefined()
        self._user = user
        logger.debug("Session user assigned: %s %s", type(user).__name__, getattr(user, "id", None))

    def require_user(self) -> Record:
        """Return the current user.

        Raises:
            UserUndefined: If no user was assigned.
        """
        if self._user is None:
            raise UserUndefined("A valid user must be defined for this operation")
        return self._user


__all__ = ["Session"]
