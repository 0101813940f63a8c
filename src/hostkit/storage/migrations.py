"""Startup schema migrations.

The first release stored each unit's source inline in the ``modules`` row
(``source_code`` column, ``spotlight`` visibility flag, millisecond
timestamps). The current shape keeps source in one file per unit under the
module storage root. Migration runs inside a single BEGIN IMMEDIATE
transaction: the legacy table is renamed aside, the current table is created,
rows are copied, and the legacy table is dropped.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hostkit.config.constants import (
    ENTRY_DEFAULT,
    LEGACY_MS_THRESHOLD,
    LEGACY_SOURCE_COLUMN,
    MODULE_TYPE,
    MODULES_TABLE,
)
from hostkit.core.errors import StorageError
from hostkit.storage.database import Database
from hostkit.storage.layout import module_file_name
from hostkit.storage.models import ModuleRow

logger = structlog.get_logger()

_LEGACY_ASIDE = "modules_legacy"


def needs_module_migration(db: Database) -> bool:
    """True only for the legacy inline-source shape of the modules table."""
    columns = db.table_columns(MODULES_TABLE)
    return LEGACY_SOURCE_COLUMN in columns and "file_path" not in columns


def _seconds(value: Any) -> float:
    if value is None:
        return time.time()
    ts = float(value)
    return ts / 1000.0 if ts > LEGACY_MS_THRESHOLD else ts


def _metadata_text(value: Any) -> str:
    if not value:
        return "{}"
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return "{}"
    return json.dumps(parsed) if isinstance(parsed, dict) else "{}"


def migrate_legacy_modules(
    db: Database,
    modules_root: Path,
    *,
    namespace_prefix: str = "hk.modules",
    entry_point_of: Callable[[str], str] | None = None,
) -> int:
    """Migrate the legacy inline-source modules table, returning rows migrated.

    Does nothing (returns 0) when the table is already current or absent.

    Args:
        db: Open database.
        modules_root: Module storage root; one file is written per legacy row.
        namespace_prefix: Used for rows whose legacy namespace is empty.
        entry_point_of: Detects the entry point from source. Rows default to
            the primary-export entry point when not given.

    Raises:
        StorageError: If the migration transaction fails. The legacy table is
            left in place.
    """
    if not needs_module_migration(db):
        return 0

    logger.info("schema_migration_started", table=MODULES_TABLE)
    modules_root.mkdir(parents=True, exist_ok=True)

    migrated = 0
    try:
        with db.immediate_transaction() as session:
            conn = session.connection()
            legacy_rows = conn.execute(text(f"SELECT * FROM {MODULES_TABLE}")).mappings().all()

            conn.execute(text(f"ALTER TABLE {MODULES_TABLE} RENAME TO {_LEGACY_ASIDE}"))
            ModuleRow.__table__.create(bind=conn)  # type: ignore[attr-defined]

            for legacy in legacy_rows:
                key = legacy["key"]
                source = legacy[LEGACY_SOURCE_COLUMN] or ""
                file_name = module_file_name(key)
                (modules_root / file_name).write_text(source, encoding="utf-8")

                spotlight = legacy.get("spotlight")
                entry_point = entry_point_of(source) if entry_point_of else ENTRY_DEFAULT
                conn.execute(
                    ModuleRow.__table__.insert(),  # type: ignore[attr-defined]
                    {
                        "key": key,
                        "namespace": legacy.get("namespace") or f"{namespace_prefix}.{key}",
                        "file_path": file_name,
                        "entry_point": entry_point,
                        "metadata": _metadata_text(legacy.get("metadata")),
                        "type": legacy.get("type") or MODULE_TYPE,
                        "updated_at": _seconds(legacy.get("updated_at")),
                        "visible": True if spotlight is None else bool(spotlight),
                    },
                )
                migrated += 1

            conn.execute(text(f"DROP TABLE {_LEGACY_ASIDE}"))
    except (SQLAlchemyError, OSError) as e:
        raise StorageError.migration_failed(str(e)) from e

    logger.info("schema_migration_complete", table=MODULES_TABLE, migrated=migrated)
    return migrated
