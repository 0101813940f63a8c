"""User-defined properties mounted at the top of the namespace root.

Values are persisted as JSON text in ``custom_properties`` and put back on
the root when the session starts. Keys owned by the session itself (``core``,
``modules`` and the like) are set on the root but never persisted.
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlmodel import col, select

from hostkit.core.errors import StorageError
from hostkit.namespace.tree import Namespace, delete_slot
from hostkit.storage.database import Database
from hostkit.storage.models import PropertyRow

logger = structlog.get_logger()

DEFAULT_SYSTEM_KEYS = frozenset({"core", "modules", "help", "status"})


def _type_tag(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "str"
    if isinstance(value, list | tuple):
        return "list"
    if isinstance(value, dict):
        return "dict"
    return type(value).__name__


@dataclass(frozen=True)
class PropertySummary:
    key: str
    type: str
    updated_at: datetime


class UserStorage:
    """Persisted user values living directly on the namespace root."""

    def __init__(
        self,
        db: Database,
        root: Namespace,
        system_keys: Iterable[str] = DEFAULT_SYSTEM_KEYS,
    ) -> None:
        self._db = db
        self._root = root
        self._system_keys = frozenset(system_keys)

    def is_system_key(self, key: str) -> bool:
        return key in self._system_keys

    def set(self, key: str, value: Any) -> Any:
        """Set ``root.<key>``, persisting it unless the key is a system key.

        Raises:
            StorageError: If the value is not JSON-serializable.
        """
        if not self.is_system_key(key):
            try:
                serialized = json.dumps(value)
            except (TypeError, ValueError) as e:
                raise StorageError.invalid_value(key, str(e)) from e
            row = PropertyRow(
                key=key, value=serialized, type=_type_tag(value), updated_at=time.time()
            )
            with self._db.immediate_transaction() as session:
                session.merge(row)
            logger.debug("user_property_saved", key=key, type=row.type)
        setattr(self._root, key, value)
        return value

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self._root, key, default) if key in self._root else default

    def has(self, key: str) -> bool:
        return key in self._root and not self.is_system_key(key)

    def remove(self, key: str) -> bool:
        """Drop ``root.<key>`` and its persisted row. Returns whether it existed.

        System keys are never removed.
        """
        if self.is_system_key(key):
            return False
        existed = key in self._root
        with self._db.immediate_transaction() as session:
            row = session.get(PropertyRow, key)
            if row is not None:
                session.delete(row)
                existed = True
        delete_slot(self._root, key)
        return existed

    def list(self) -> list[PropertySummary]:
        with self._db.session() as session:
            rows = session.exec(select(PropertyRow).order_by(col(PropertyRow.key))).all()
        return [
            PropertySummary(
                key=r.key,
                type=r.type,
                updated_at=datetime.fromtimestamp(r.updated_at, tz=timezone.utc),
            )
            for r in rows
        ]

    def load(self) -> int:
        """Mount every persisted property on the root. Returns the count restored.

        Rows that fail to decode are logged and skipped.
        """
        with self._db.session() as session:
            rows = session.exec(select(PropertyRow)).all()
        restored = 0
        for row in rows:
            if self.is_system_key(row.key):
                logger.warning("user_property_shadowed", key=row.key)
                continue
            try:
                value = json.loads(row.value)
            except ValueError as e:
                logger.warning("user_property_restore_failed", key=row.key, error=str(e))
                continue
            setattr(self._root, row.key, value)
            restored += 1
        if restored:
            logger.info("user_properties_restored", count=restored)
        return restored
