# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration dataclass for record sessions.

Usage:
    config = PersistenceConfig(db_path="/data/app.db", table_prefix="app_")
    session = Session(config)

    # or from PERSISTENT_OBJECT_* environment variables
    session = Session(config_from_env())
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ISO8601 = "%Y-%m-%dT%H:%M:%S%z"


@dataclass
class PersistenceConfig:
    """Settings shared by every record type bound to a session.

    Attributes:
        db_path: SQLite database path (or connection string) used by the CLI
            and by Session.open().
        table_prefix: Prefix prepended to every record type's table name.
        date_format: strftime format used when serializing datetimes.
        log_sql: Log every statement at DEBUG level.
    """

    db_path: str = ":memory:"
    """Database path or connection string."""

    table_prefix: str = ""
    """Prefix for all table names."""

    date_format: str = ISO8601
    """Datetime format for to_array()/to_json() output."""

    log_sql: bool = False
    """Log statements and parameters at DEBUG level."""


def config_from_env() -> PersistenceConfig:
    """Build PersistenceConfig from PERSISTENT_OBJECT_* environment variables.

    Environment variables:
        PERSISTENT_OBJECT_DB: Database path (default: :memory:)
        PERSISTENT_OBJECT_TABLE_PREFIX: Table name prefix (default: "")
        PERSISTENT_OBJECT_DATE_FORMAT: strftime format (default: ISO 8601)
        PERSISTENT_OBJECT_LOG_SQL: Log statements (default: false)
    """
    return PersistenceConfig(
        db_path=os.environ.get("PERSISTENT_OBJECT_DB", ":memory:"),
        table_prefix=os.environ.get("PERSISTENT_OBJECT_TABLE_PREFIX", ""),
        date_format=os.environ.get("PERSISTENT_OBJECT_DATE_FORMAT", ISO8601),
        log_sql=os.environ.get("PERSISTENT_OBJECT_LOG_SQL", "").lower() in ("1", "true", "yes"),
    )


__all__ = ["ISO8601", "PersistenceConfig", "config_from_env"]
