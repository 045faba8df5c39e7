# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite fixtures for record tests.

Connection model:
- `db` opens a connection via `async with db.connection()` on a file under tmp_path
- The connection stays open for the entire test
- `session` binds a Session to it and creates the tables of every test record type
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from persistent_object import PersistenceConfig, Session, SqlDb
from tests.models import ALL_TYPES


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncGenerator[SqlDb, None]:
    """SQLite database with an open shared connection."""
    db = SqlDb(str(tmp_path / "test.db"))
    async with db.connection():
        yield db
    await db.shutdown()


@pytest_asyncio.fixture
async def session(db: SqlDb) -> Session:
    """Session bound to `db`, with all test tables created."""
    session = Session(PersistenceConfig(db_path=db.connection_string), db)
    for record_type in ALL_TYPES:
        await record_type.create_schema(session)
    return session


@pytest.fixture
def statements(db: SqlDb, monkeypatch) -> list[str]:
    """Record every statement sent through fetch_one/fetch_all/execute."""
    seen: list[str] = []
    for method in ("fetch_one", "fetch_all", "execute"):
        original = getattr(db, method)

        def spy(query, params=None, _original=original):
            seen.append(query)
            return _original(query, params)

        monkeypatch.setattr(db, method, spy)
    return seen
