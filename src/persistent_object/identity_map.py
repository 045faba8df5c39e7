# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Identity map: at most one live instance per (record type, id)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .record import Record

logger = logging.getLogger(__name__)


class IdentityMap:
    """Cache of loaded records keyed first by concrete type, then by id.

    Entries are added when a record is hydrated from a row or created, and
    removed when it is deleted or discarded. There is no other eviction.
    Keys are always (type, id) pairs: ids of different record types never
    collide.
    """

    def __init__(self) -> None:
        self._instances: dict[type[Record], dict[str, Record]] = {}

    @staticmethod
    def _key(id: Any) -> str:
        return str(id)

    def get(self, record_type: type[Record], id: Any) -> Record | None:
        """Return the cached instance or None."""
        if id is None:
            return None
        return self._instances.get(record_type, {}).get(self._key(id))

    def contains(self, record_type: type[Record], id: Any) -> bool:
        return self.get(record_type, id) is not None

    def add(self, instance: Record) -> Record:
        """Cache an instance under its own type and id (replacing any prior entry)."""
        if instance.id is None:
            raise ValueError(f"Cannot cache {type(instance).__name__} without id")
        self._instances.setdefault(type(instance), {})[self._key(instance.id)] = instance
        return instance

    def discard(self, instance: Record) -> bool:
        """Remove an instance if it is the cached one. Returns True if removed."""
        by_id = self._instances.get(type(instance))
        if not by_id or instance.id is None:
            return False
        key = self._key(instance.id)
        if by_id.get(key) is not instance:
            return False
        del by_id[key]
        logger.debug("Evicted %s %s from identity map", type(instance).__name__, key)
        return True

    def clear(self) -> None:
        self._instances.clear()

    def __len__(self) -> int:
        return sum(len(by_id) for by_id in self._instances.values())

    def __contains__(self, instance: object) -> bool:
        from .record import Record

        if not isinstance(instance, Record):
            return False
        return self.get(type(instance), instance.id) is instance


__all__ = ["IdentityMap"]
