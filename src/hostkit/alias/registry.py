"""Alias registry: short global names bound to dotted namespace paths.

Every alias is persisted in the ``aliases`` table and installed in the
session's global scope as an ``AliasThunk``. Thunks resolve their path on
every call, so an alias always reflects what currently lives at its target.
"""

from __future__ import annotations

import re
import time
from collections.abc import MutableMapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from rich.console import Console
from rich.table import Table
from sqlmodel import col, select

from hostkit.config.constants import BOOTSTRAP_ALIAS
from hostkit.core.errors import InvalidAliasError, ReservedNameError
from hostkit.namespace.tree import Namespace, resolve
from hostkit.storage.database import Database
from hostkit.storage.models import AliasRow

logger = structlog.get_logger()

_DOTTED_PATH = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

# Checked in order; first match wins
_CATEGORIES: tuple[tuple[str, str], ...] = (
    (".ai.", "AI"),
    (".fs.", "File System"),
    (".clipboard.", "Clipboard"),
    (".system.", "System"),
    (".computer.", "Automation"),
    (".notification.", "UI"),
)
_DEFAULT_CATEGORY = "Custom"


def category_for(path: str) -> str:
    dotted = f".{path}."
    for marker, label in _CATEGORIES:
        if marker in dotted:
            return label
    return _DEFAULT_CATEGORY


@dataclass(frozen=True)
class AliasRecord:
    name: str
    path: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: AliasRow) -> AliasRecord:
        return cls(
            name=row.name,
            path=row.path,
            created_at=datetime.fromtimestamp(row.created_at, tz=timezone.utc),
            updated_at=datetime.fromtimestamp(row.updated_at, tz=timezone.utc),
        )


class AliasThunk:
    """Callable bound in global scope that resolves its path at call time."""

    def __init__(self, name: str, path: str, root: Namespace) -> None:
        self.name = name
        self.path = path
        self._root = root
        self.__name__ = name
        self.__qualname__ = name
        self.__doc__ = f"Alias for {path}"

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        target = resolve(self._root, self.path)
        if callable(target):
            return target(*args, **kwargs)
        return target

    def __repr__(self) -> str:
        return f"<alias {self.name} -> {self.path}>"


class AliasRegistry:
    """Persist aliases and keep their live bindings in ``scope`` in sync."""

    def __init__(
        self,
        db: Database,
        root: Namespace,
        scope: MutableMapping[str, Any],
        reserved: frozenset[str],
        console: Console | None = None,
    ) -> None:
        self._db = db
        self._root = root
        self._scope = scope
        self.reserved = reserved
        self._console = console or Console()

    def _install(self, name: str, path: str) -> None:
        self._scope[name] = AliasThunk(name, path, self._root)

    def set(self, name: str, path: str) -> AliasRecord:
        """Bind ``name`` to ``path`` and persist the binding.

        Re-setting an existing alias keeps its creation time.

        Raises:
            ReservedNameError: If ``name`` is in the reserved set.
            InvalidAliasError: If ``name`` or ``path`` is malformed.
        """
        if name in self.reserved:
            raise ReservedNameError.for_alias(name)
        if not name.isidentifier():
            raise InvalidAliasError.invalid_name(name)
        if not _DOTTED_PATH.match(path):
            raise InvalidAliasError.invalid_path(name, path)

        now = time.time()
        with self._db.immediate_transaction() as session:
            row = session.get(AliasRow, name)
            if row is None:
                row = AliasRow(name=name, path=path, created_at=now, updated_at=now)
            else:
                row.path = path
                row.updated_at = now
            session.add(row)
            session.flush()
            record = AliasRecord.from_row(row)

        self._install(name, path)
        logger.info("alias_set", name=name, path=path)
        return record

    def get(self, name: str) -> AliasRecord | None:
        with self._db.session() as session:
            row = session.get(AliasRow, name)
            return AliasRecord.from_row(row) if row else None

    def list(self) -> list[AliasRecord]:
        """All aliases, sorted by name."""
        with self._db.session() as session:
            rows = session.exec(select(AliasRow).order_by(col(AliasRow.name))).all()
            return [AliasRecord.from_row(r) for r in rows]

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def remove(self, name: str) -> bool:
        """Delete the row and the live binding. Returns whether a row existed."""
        with self._db.immediate_transaction() as session:
            row = session.get(AliasRow, name)
            existed = row is not None
            if row is not None:
                session.delete(row)

        bound = self._scope.get(name)
        if isinstance(bound, AliasThunk):
            del self._scope[name]
        if existed:
            logger.info("alias_removed", name=name)
        return existed

    def show(self, filter: str | None = None) -> list[AliasRecord]:
        """Print aliases grouped by category. Returns the records shown."""
        records = self.list()
        if filter:
            needle = filter.lower()
            records = [r for r in records if needle in r.name.lower() or needle in r.path.lower()]

        if not records:
            if filter:
                self._console.print(f"[yellow]No aliases matching '{filter}'[/yellow]")
            else:
                self._console.print("[yellow]No aliases registered yet.[/yellow]")
                self._console.print("[dim]Create one with: hk.core.alias.set('name', 'path.to.member')[/dim]")
            return []

        grouped: dict[str, list[AliasRecord]] = {}
        for record in records:
            grouped.setdefault(category_for(record.path), []).append(record)

        title = "Aliases" + (f" (filtered: {filter})" if filter else "")
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Category", style="yellow")
        table.add_column("Alias", style="green")
        table.add_column("Path", style="dim")
        for category in sorted(grouped):
            for record in grouped[category]:
                table.add_row(category, f"{record.name}()", record.path)
        self._console.print(table)
        self._console.print(f"[dim]Total: {len(records)} alias{'es' if len(records) != 1 else ''}[/dim]")
        return records

    def restore(self) -> int:
        """Install every persisted alias into global scope.

        Rows whose names have since become reserved are skipped. The bootstrap
        ``alias`` binding is installed directly unless a user alias owns the
        name. Returns the number of user aliases installed.
        """
        installed = 0
        records = self.list()
        for record in records:
            if record.name in self.reserved:
                logger.warning("alias_restore_skipped", name=record.name, reason="reserved")
                continue
            self._install(record.name, record.path)
            installed += 1

        if BOOTSTRAP_ALIAS not in {r.name for r in records}:
            self._scope[BOOTSTRAP_ALIAS] = self.show
        logger.info("alias_restored", count=installed)
        return installed
