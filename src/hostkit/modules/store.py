"""Module store: persisted, named, executable code units.

Rows live in the ``modules`` table; source lives in one file per unit under
the module storage root, named deterministically from the key. Saving runs
the normalization pipeline (syntax, import resolution, optional bundling)
before anything is written, so a failed save leaves the previous row and file
untouched.
"""

from __future__ import annotations

import inspect
import json
import platform
import tempfile
import textwrap
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

import structlog
from sqlmodel import col, select

from hostkit.collaborators.files import FileStore
from hostkit.config.constants import (
    DEFAULT_EXPORT,
    ENTRY_DEFAULT,
    FILE_PREFIXES,
    MODULE_TYPE,
)
from hostkit.core.errors import BundleError, LoadError, NotFoundError
from hostkit.modules.analysis import check_imports, detect_export, entry_point_for, parse_source
from hostkit.modules.bundler import Bundler
from hostkit.modules.loader import UnitLoader
from hostkit.namespace.tree import Namespace, namespace_name, unmount
from hostkit.namespace.tree import mount as mount_member
from hostkit.storage.database import Database
from hostkit.storage.layout import module_file_name
from hostkit.storage.models import ModuleRow

logger = structlog.get_logger()

SourceKind = Literal["inline", "file", "callable"]
ChangeListener = Callable[[str, dict[str, Any]], None]

EVENT_MODULES_CHANGED = "modules.changed"
EVENT_BUNDLE_FAILED = "module.bundle.failed"


@dataclass(frozen=True)
class ModuleSummary:
    """Listing view of a persisted unit."""

    key: str
    namespace: str
    file_path: str
    entry_point: str
    type: str
    updated_at: datetime
    visible: bool = True

    @classmethod
    def from_row(cls, row: ModuleRow) -> ModuleSummary:
        return cls(
            key=row.key,
            namespace=row.namespace,
            file_path=row.file_path,
            entry_point=row.entry_point,
            type=row.type,
            updated_at=datetime.fromtimestamp(row.updated_at, tz=timezone.utc),
            visible=row.visible,
        )


@dataclass
class _NormalizedUnit:
    source: str
    export: str | None
    source_kind: SourceKind
    bundled: bool
    origin: str | None = None
    local_imports: list[str] = field(default_factory=list)


def _looks_like_file(text: str) -> bool:
    if "\n" in text or not text.strip():
        return False
    candidate = Path(text).expanduser()
    try:
        if candidate.is_file():
            return True
    except OSError:
        return False
    return not any(ch.isspace() for ch in text) and (
        text.endswith(".py") or text.startswith(FILE_PREFIXES)
    )


def _callable_source(name: str, obj: Callable[..., Any]) -> tuple[str, Path | None]:
    """Source of a function object, exported as the unit's default."""
    obj_name = getattr(obj, "__name__", "")
    if obj_name == "<lambda>":
        raise BundleError.syntax(name, "cannot recover the source of a lambda; use a def")
    try:
        source = textwrap.dedent(inspect.getsource(obj))
        source_file = inspect.getsourcefile(obj)
    except (OSError, TypeError) as e:
        raise BundleError.syntax(name, f"cannot recover source of {obj!r}: {e}") from e
    origin = Path(source_file).parent if source_file else None
    return f"{source.rstrip()}\n\n{DEFAULT_EXPORT} = {obj_name}\n", origin


class ModuleStore:
    """Save, load, list and remove persisted code units."""

    def __init__(
        self,
        db: Database,
        modules_root: Path,
        root: Namespace,
        files: FileStore,
        *,
        bundler: Bundler | None = None,
        loader: UnitLoader | None = None,
        mount_name: str = "modules",
    ) -> None:
        self._db = db
        self.modules_root = modules_root
        self._root = root
        self._files = files
        self._bundler = bundler
        self._loader = loader or UnitLoader()
        self.mount_name = mount_name
        self._listeners: list[ChangeListener] = []
        modules_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(event, payload)``. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception as e:
                # A failing listener must not undo a committed change
                logger.error(
                    "module_listener_failed",
                    notify_event=event,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def namespace_for(self, name: str) -> str:
        return f"{namespace_name(self._root)}.{self.mount_name}.{name}"

    def _file_for(self, row: ModuleRow) -> Path:
        return self.modules_root / row.file_path

    def _get_row(self, name: str) -> ModuleRow | None:
        with self._db.session() as session:
            return session.get(ModuleRow, name)

    def _require_row(self, name: str) -> ModuleRow:
        row = self._get_row(name)
        if row is None:
            raise NotFoundError.module(name)
        return row

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    async def _read_input(
        self, name: str, code_or_location: str | Path | Callable[..., Any]
    ) -> tuple[str, SourceKind, Path | None, Path]:
        """Returns (source, kind, origin_file, search_dir)."""
        if callable(code_or_location) and not isinstance(code_or_location, str | Path):
            source, origin_dir = _callable_source(name, code_or_location)
            return source, "callable", None, origin_dir or Path.cwd()

        if isinstance(code_or_location, Path) or _looks_like_file(str(code_or_location)):
            path = Path(code_or_location).expanduser().resolve()
            if not await self._files.exists(path):
                raise BundleError.unresolved_import(name, str(path), cause="file not found")
            return await self._files.read(path), "file", path, path.parent

        return str(code_or_location), "inline", None, Path.cwd()

    async def _normalize(
        self, name: str, code_or_location: str | Path | Callable[..., Any]
    ) -> _NormalizedUnit:
        source, kind, origin, search_dir = await self._read_input(name, code_or_location)

        tree = parse_source(name, source, filename=str(origin) if origin else f"<{name}>")
        export = detect_export(tree)
        imports = check_imports(tree, search_dir)
        if imports.unresolved:
            raise BundleError.unresolved_import(
                name, imports.unresolved[0], unresolved=imports.unresolved
            )

        unit = _NormalizedUnit(
            source=source,
            export=export,
            source_kind=kind,
            bundled=False,
            origin=str(origin) if origin else None,
            local_imports=imports.local,
        )
        if not imports.local:
            return unit

        if self._bundler is None or not self._bundler.available:
            logger.warning("module_saved_unbundled", name=name, local_imports=imports.local)
            return unit

        if origin is not None:
            unit.source = await self._bundler.bundle(name, origin, search_dir)
        else:
            with tempfile.TemporaryDirectory(prefix="hostkit-bundle-") as tmp:
                entry = Path(tmp) / f"{name.replace('/', '_')}.py"
                await self._files.write(entry, source)
                unit.source = await self._bundler.bundle(name, entry, search_dir)
        unit.bundled = True
        return unit

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def save(
        self,
        name: str,
        code_or_location: str | Path | Callable[..., Any],
        *,
        visible: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> ModuleSummary:
        """Normalize and persist a code unit under ``name``.

        Args:
            name: Unique key. Re-saving a key replaces the unit entirely.
            code_or_location: Inline source, a path to a ``.py`` file, or a
                function object (exported as the unit's default).
            visible: Whether ``list()`` shows the unit.
            metadata: Extra caller flags merged into the row metadata.

        Raises:
            BundleError: If syntax, import resolution or bundling fails.
                Nothing is written in that case.
        """
        try:
            unit = await self._normalize(name, code_or_location)
        except BundleError as e:
            logger.error("module_save_failed", name=name, stage=e.stage, reason=e.message)
            self._notify(EVENT_BUNDLE_FAILED, {"name": name, "stage": e.stage, "error": e.message})
            raise

        now = time.time()
        file_name = module_file_name(name)
        await self._files.write(self.modules_root / file_name, unit.source)

        meta: dict[str, Any] = {
            **(metadata or {}),
            "created_at": datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
            "platform": platform.system().lower(),
            "bundled": unit.bundled,
            "export": unit.export,
            "source_kind": unit.source_kind,
            "is_user_module": True,
        }
        if unit.origin:
            meta["origin"] = unit.origin

        row = ModuleRow(
            key=name,
            namespace=self.namespace_for(name),
            file_path=file_name,
            entry_point=entry_point_for(unit.export),
            type=MODULE_TYPE,
            updated_at=now,
            visible=visible,
        )
        row.metadata_json = json.dumps(meta, default=str, sort_keys=True)
        with self._db.immediate_transaction() as session:
            session.merge(row)

        logger.info(
            "module_saved",
            name=name,
            entry_point=row.entry_point,
            bundled=unit.bundled,
            source_kind=unit.source_kind,
        )
        self._notify(EVENT_MODULES_CHANGED, {"action": "save", "name": name})
        return ModuleSummary.from_row(row)

    async def load(self, name: str, *, mount: bool = True) -> Any:
        """Materialize a unit and return its primary export (or module for scripts).

        Raises:
            NotFoundError: If no record exists or its backing file is missing.
            LoadError: If compiling or executing the unit fails.
        """
        row = self._require_row(name)
        path = self._file_for(row)
        if not await self._files.exists(path):
            raise NotFoundError.module_file(name, str(path))
        source = await self._files.read(path)

        try:
            module = self._loader.materialize(name, source, path)
            if row.entry_point == ENTRY_DEFAULT:
                export_name = row.get_metadata().get("export") or DEFAULT_EXPORT
                result = getattr(module, export_name)
            else:
                result = module
        except Exception as e:
            logger.warning("module_load_failed", name=name, error=str(e), error_type=type(e).__name__)
            raise LoadError.execution_failed(name, e) from e

        if mount and name.isidentifier():
            mount_member(self._root, f"{self.mount_name}.{name}", result)
        logger.debug("module_loaded", name=name, entry_point=row.entry_point)
        return result

    def list(self) -> list[ModuleSummary]:
        """Visible units, most recently updated first."""
        with self._db.session() as session:
            rows = session.exec(
                select(ModuleRow)
                .where(col(ModuleRow.visible).is_(True))
                .order_by(col(ModuleRow.updated_at).desc())
            ).all()
        return [ModuleSummary.from_row(r) for r in rows]

    def has(self, name: str) -> bool:
        return self._get_row(name) is not None

    async def get_source(self, name: str) -> str:
        """Raw persisted text of a unit.

        Raises:
            NotFoundError: If no record exists or its backing file is missing.
        """
        row = self._require_row(name)
        path = self._file_for(row)
        if not await self._files.exists(path):
            raise NotFoundError.module_file(name, str(path))
        return await self._files.read(path)

    async def remove(self, name: str) -> bool:
        """Delete a unit's file, then its row. Missing names are a no-op.

        Returns whether a row existed.
        """
        row = self._get_row(name)
        if row is None:
            return False

        path = self._file_for(row)
        try:
            await self._files.remove(path)
        except OSError as e:
            logger.warning("module_file_remove_failed", name=name, path=str(path), error=str(e))

        with self._db.immediate_transaction() as session:
            existing = session.get(ModuleRow, name)
            if existing is not None:
                session.delete(existing)

        if name.isidentifier():
            unmount(self._root, f"{self.mount_name}.{name}")
        logger.info("module_removed", name=name)
        self._notify(EVENT_MODULES_CHANGED, {"action": "remove", "name": name})
        return True

    async def remove_all(self, *, include_hidden: bool = False) -> int:
        """Remove every listed unit (and hidden ones when asked). Returns the count."""
        if include_hidden:
            with self._db.session() as session:
                keys = [r.key for r in session.exec(select(ModuleRow)).all()]
        else:
            keys = [m.key for m in self.list()]
        removed = 0
        for key in keys:
            if await self.remove(key):
                removed += 1
        logger.info("modules_removed_all", count=removed)
        return removed
