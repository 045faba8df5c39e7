# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for persistent-object.

Record types are given as ``module:Class`` (e.g. ``myapp.models:Widget``).
The database defaults to PERSISTENT_OBJECT_DB.

Commands:
    schema: Create the tables of record types
    dump: Print records as JSON
    version: Show version info
"""

from __future__ import annotations

import asyncio
import importlib
import json
import logging
import sys
from dataclasses import replace
from typing import Any

import click
from rich.console import Console

from .config import config_from_env
from .exceptions import PersistentObjectError
from .per_user import ScopedRecord
from .record import Record
from .session import Session

console = Console()


def load_record_type(reference: str) -> type[Record]:
    """Import a record type from a ``module:Class`` reference."""
    module_name, _, class_name = reference.partition(":")
    if not module_name or not class_name:
        raise click.BadParameter(f"expected 'module:Class', got '{reference}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}") from e
    record_type = getattr(module, class_name, None)
    if not (isinstance(record_type, type) and issubclass(record_type, Record)):
        raise click.BadParameter(f"'{reference}' is not a Record type")
    return record_type


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except PersistentObjectError as e:
        console.print(f"[red]error {e.code}: {e}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(package_name="persistent-object")
@click.option("--verbose", "-v", is_flag=True, help="Log statements and library debug output.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Persistent Object - active-record persistence on SQLite."""
    config = config_from_env()
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        config = replace(config, log_sql=True)
    ctx.obj = config


@main.command("schema")
@click.argument("types", nargs=-1, required=True)
@click.option("--db", default=None, help="Database path (default: PERSISTENT_OBJECT_DB).")
@click.pass_obj
def schema_cmd(config: Any, types: tuple[str, ...], db: str | None) -> None:
    """Create tables (if missing) for the given record types."""
    record_types = [load_record_type(t) for t in types]
    if db:
        config = replace(config, db_path=db)

    async def create() -> None:
        async with Session.open(config) as session:
            for record_type in record_types:
                await record_type.create_schema(session)

    _run(create())
    for record_type in record_types:
        console.print(f"[green]created[/green] {record_type.__name__}")


@main.command("dump")
@click.argument("type_")
@click.option("--db", default=None, help="Database path (default: PERSISTENT_OBJECT_DB).")
@click.option("--id", "id_", default=None, help="Dump a single record.")
@click.option("--expand", "-e", multiple=True, help="Relational field to embed (repeatable).")
@click.option("--suppress", "-s", multiple=True, help="Field to omit (repeatable).")
@click.option("--order", "-o", default=None, help="Field to order by (prefix with '-' for DESC).")
@click.option("--user", "-u", "user_id", default=None, help="User id for per-user record types.")
@click.pass_obj
def dump_cmd(
    config: Any,
    type_: str,
    db: str | None,
    id_: str | None,
    expand: tuple[str, ...],
    suppress: tuple[str, ...],
    order: str | None,
    user_id: str | None,
) -> None:
    """Print records of TYPE as JSON."""
    record_type = load_record_type(type_)
    if db:
        config = replace(config, db_path=db)
    ordering = None
    if order:
        ordering = {order[1:]: "DESC"} if order.startswith("-") else {order: "ASC"}

    async def dump() -> Any:
        async with Session.open(config) as session:
            if user_id is not None:
                await ScopedRecord.assign_user(session, user_id)
            if id_ is not None:
                record = await record_type.get_instance_by_id(session, id_)
                return await record.to_array(expand, suppress)
            records = await record_type.get_instances(session, ordering=ordering)
            return await record_type.to_arrays(records, expand, suppress)

    console.print_json(json.dumps(_run(dump())))


@main.command("version")
def version_cmd() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"persistent-object {__version__}")


if __name__ == "__main__":
    main()
