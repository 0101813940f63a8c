"""Observation engine: reversible interception of namespace members and files.

Each observed path moves ``Unobserved -> Observed -> Unobserved``. The engine
keeps at most one ``ObserverRecord`` per exact path; observing an already
observed path first restores the existing observer, so wrappers never stack
and ``unobserve`` always recovers the true original.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import structlog

from hostkit.collaborators.files import FileStore, FileWatch
from hostkit.config.constants import FILE_PREFIXES, WILDCARD
from hostkit.core.errors import (
    ObserveError,
    PathNotFoundError,
    UnsupportedTargetError,
)
from hostkit.namespace.tree import (
    Namespace,
    PropertyTrap,
    child,
    namespace_name,
    resolve,
    resolve_parent,
    split_path,
)
from hostkit.observe import members
from hostkit.observe.hooks import Hooks, ObserverKind, ObserverRecord, ObserverSummary
from hostkit.observe.wrappers import settle, wrap_function

logger = structlog.get_logger()

TargetKind = Literal["namespace", "pattern", "file"]

_FILE_EVENTS = frozenset({"modify", "create"})


class ObservationEngine:
    """Install, list and remove observers over a namespace root and files."""

    def __init__(self, root: Namespace, files: FileStore) -> None:
        self._root = root
        self._files = files
        self._observers: dict[str, ObserverRecord] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _canonical_path(self, dotted: str) -> str:
        return ".".join([namespace_name(self._root), *split_path(self._root, dotted)])

    def classify(self, target: Any) -> tuple[TargetKind, str]:
        """Kind of ``target`` and the key its observer is tracked under.

        Raises:
            UnsupportedTargetError: If the target cannot be classified.
        """
        if isinstance(target, Path):
            return "file", str(target.expanduser().resolve())
        if not isinstance(target, str) or not target.strip():
            raise UnsupportedTargetError.unclassifiable(target)

        root_prefix = f"{namespace_name(self._root)}."
        if not target.startswith(root_prefix):
            if target.startswith(FILE_PREFIXES) or "/" in target or os.sep in target:
                return "file", str(Path(target).expanduser().resolve())
        if WILDCARD in target:
            return "pattern", self._canonical_pattern(target)
        if target.startswith(root_prefix):
            return "namespace", self._canonical_path(target)

        first = target.split(".", 1)[0]
        if first in self._root:
            return "namespace", self._canonical_path(target)
        if Path(target).suffix:
            return "file", str(Path(target).expanduser().resolve())
        raise UnsupportedTargetError.unclassifiable(target)

    def _canonical_pattern(self, pattern: str) -> str:
        prefix, sep, rest = pattern.rpartition(".")
        if not sep or rest != WILDCARD or WILDCARD in prefix:
            raise UnsupportedTargetError.unresolvable(
                pattern, "only one-level 'prefix.*' patterns are supported"
            )
        return f"{self._canonical_path(prefix)}.{WILDCARD}"

    # ------------------------------------------------------------------
    # Observe
    # ------------------------------------------------------------------

    def observe(
        self,
        target: Any,
        hooks: Hooks | Mapping[str, Any] | None = None,
        **hook_kwargs: Any,
    ) -> bool | int:
        """Intercept calls to, or mutations of, ``target``.

        Args:
            target: A namespace path (``hk.core.io.fs.read``), a one-level
                pattern (``hk.core.io.fs.*``) or a file path.
            hooks: ``before``/``after``/``error`` for functions,
                ``on_change`` for properties and files. May also be passed
                as keyword arguments.

        Returns:
            True once installed; for patterns, the number of observers
            installed (0 when nothing matched).

        Raises:
            UnsupportedTargetError: If the target is unclassifiable or
                cannot be resolved.
            ObserveError: If the hooks do not fit the target kind.
        """
        hook_set = Hooks.coerce(hooks, hook_kwargs)
        kind, key = self.classify(target)
        if kind == "file":
            return self._observe_file(key, hook_set)
        if kind == "pattern":
            return self._observe_pattern(key, hook_set)
        return self._observe_path(key, hook_set)

    def _observe_path(self, path: str, hooks: Hooks, pattern: str | None = None) -> bool:
        try:
            parent, leaf = resolve_parent(self._root, path)
            current = child(parent, leaf, path)
        except PathNotFoundError as e:
            raise UnsupportedTargetError.unresolvable(path, e.message) from e

        if isinstance(current, type):
            raise UnsupportedTargetError.not_observable(
                path, "classes cannot be wrapped without breaking isinstance checks"
            )
        kind: ObserverKind = "function" if callable(current) else "property"
        if kind == "function" and not hooks.has_call_hooks:
            raise ObserveError.missing_hook(path, kind, "before, after or error")
        if kind == "property":
            if hooks.on_change is None:
                raise ObserveError.missing_hook(path, kind, "on_change")
            if not isinstance(parent, Namespace):
                raise UnsupportedTargetError.not_observable(
                    path, "only namespace members can be observed as properties"
                )

        existing = self._observers.pop(path, None)
        if existing is not None:
            self._restore(existing)

        member = members.capture(parent, leaf, path)
        if kind == "function":
            wrapper = wrap_function(member.value, path, hooks)
            descriptor = member.descriptor_type
            members.replace(member, descriptor(wrapper) if descriptor else wrapper)
        else:
            assert hooks.on_change is not None
            members.replace(member, PropertyTrap(member.value, path, hooks.on_change))

        self._observers[path] = ObserverRecord(
            path=path, kind=kind, hooks=hooks, restore_state=member, pattern=pattern
        )
        logger.debug(
            "observer_installed",
            path=path,
            kind=kind,
            hooks=hooks.supplied(),
            replaced=existing is not None,
        )
        return True

    def _observe_pattern(self, pattern: str, hooks: Hooks) -> int:
        if not hooks.has_call_hooks:
            raise ObserveError.missing_hook(pattern, "function", "before, after or error")

        prefix = pattern[: -len(WILDCARD) - 1]
        try:
            container = resolve(self._root, prefix)
        except PathNotFoundError:
            logger.debug("observer_pattern_unmatched", pattern=pattern)
            return 0

        if isinstance(container, Namespace | Mapping):
            names = list(container)
        else:
            names = [n for n in dir(container) if not n.startswith("_")]

        installed = 0
        for name in names:
            path = f"{prefix}.{name}"
            try:
                if not callable(child(container, name, path)):
                    continue
                self._observe_path(path, hooks, pattern=pattern)
            except (PathNotFoundError, UnsupportedTargetError) as e:
                logger.debug("observer_pattern_member_skipped", path=path, reason=str(e))
                continue
            installed += 1

        logger.info("observer_pattern_installed", pattern=pattern, count=installed)
        return installed

    def _observe_file(self, path: str, hooks: Hooks) -> bool:
        if hooks.on_change is None:
            raise ObserveError.missing_hook(path, "file", "on_change")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise ObserveError.no_event_loop(path) from None
        try:
            watch = self._files.watch(Path(path))
        except FileNotFoundError as e:
            raise UnsupportedTargetError.unresolvable(path, "file not found") from e

        existing = self._observers.pop(path, None)
        if existing is not None:
            self._restore(existing)

        task = loop.create_task(self._consume(watch, path, hooks), name=f"observe:{path}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        self._observers[path] = ObserverRecord(
            path=path, kind="file", hooks=hooks, restore_state=watch, task=task
        )
        logger.debug("observer_installed", path=path, kind="file", hooks=hooks.supplied())
        return True

    async def _consume(self, watch: FileWatch, path: str, hooks: Hooks) -> None:
        """Deliver modify/create events until the watch is closed."""
        assert hooks.on_change is not None
        try:
            async for event in watch:
                if event.kind in _FILE_EVENTS:
                    await settle(hooks.on_change(event, path))
        except Exception as e:
            if hooks.error is None:
                logger.warning("file_watch_failed", path=path, error=str(e), error_type=type(e).__name__)
                return
            try:
                await settle(hooks.error(e, path))
            except Exception as hook_error:
                logger.error("file_watch_error_hook_failed", path=path, error=str(hook_error))
        finally:
            watch.close()
            record = self._observers.get(path)
            if record is not None and record.restore_state is watch:
                del self._observers[path]
            logger.debug("file_watch_closed", path=path)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def _restore(self, record: ObserverRecord) -> None:
        if record.kind == "file":
            record.restore_state.close()
        else:
            members.restore(record.restore_state)
        logger.debug("observer_removed", path=record.path, kind=record.kind)

    def unobserve(self, target: Any = None) -> int | bool:
        """Remove observers, restoring what they replaced.

        With no target every observer is removed and the count returned.
        With an exact path or a pattern, returns whether anything was removed.
        """
        if target is None:
            records = list(self._observers.values())
            self._observers.clear()
            for record in records:
                self._restore(record)
            if records:
                logger.info("observers_removed_all", count=len(records))
            return len(records)

        try:
            kind, key = self.classify(target)
        except UnsupportedTargetError:
            kind, key = "namespace", str(target)

        if kind == "pattern":
            matched = [path for path, record in self._observers.items() if record.pattern == key]
            for path in matched:
                self._restore(self._observers.pop(path))
            return bool(matched)

        record = self._observers.pop(key, None)
        if record is None:
            return False
        self._restore(record)
        return True

    def list(self) -> list[ObserverSummary]:
        return [ObserverSummary.from_record(r) for r in self._observers.values()]

    def is_observed(self, target: Any) -> bool:
        try:
            _, key = self.classify(target)
        except UnsupportedTargetError:
            return False
        return key in self._observers

    async def aclose(self) -> None:
        """Remove every observer and wait for file watch loops to finish."""
        self.unobserve()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
