"""Live namespace tree shared by the module store, alias registry and observers.

A ``Namespace`` is an attribute-style container of members (functions,
values, nested namespaces, or any Python object). Members live in a private
slot table, so observers can swap a slot's raw entry for a ``PropertyTrap``
and later put the exact original entry back.

The public surface of ``Namespace`` is dunder-only so that member names such
as ``get``, ``list`` or ``remove`` never collide with container methods.
Tree operations are module-level functions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from hostkit.core.errors import PathNotFoundError

ChangeHook = Callable[[Any, Any, str], Any]


class PropertyTrap:
    """Slot entry intercepting assignment to one namespace member.

    Reads return the current value. Assignment calls ``on_change(new, old,
    path)``; a non-``None`` return value is stored instead of the raw
    assignment.
    """

    __slots__ = ("value", "path", "on_change")

    def __init__(self, value: Any, path: str, on_change: ChangeHook) -> None:
        self.value = value
        self.path = path
        self.on_change = on_change

    def assign(self, new_value: Any) -> None:
        old_value = self.value
        result = self.on_change(new_value, old_value, self.path)
        self.value = new_value if result is None else result

    def __repr__(self) -> str:
        return f"PropertyTrap({self.path!r}, value={self.value!r})"


class Namespace:
    """Mutable attribute tree node."""

    def __init__(
        self,
        name: str,
        members: Mapping[str, Any] | None = None,
        *,
        path: str | None = None,
    ) -> None:
        object.__setattr__(self, "_ns_name", name)
        object.__setattr__(self, "_ns_path", path or name)
        object.__setattr__(self, "_ns_slots", {})
        for key, value in (members or {}).items():
            if isinstance(value, dict):
                value = Namespace(key, value, path=f"{path or name}.{key}")
            setattr(self, key, value)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails, i.e. for members
        slots = object.__getattribute__(self, "_ns_slots")
        try:
            entry = slots[name]
        except KeyError:
            raise AttributeError(
                f"'{object.__getattribute__(self, '_ns_path')}' has no member '{name}'"
            ) from None
        if isinstance(entry, PropertyTrap):
            return entry.value
        return entry

    def __setattr__(self, name: str, value: Any) -> None:
        entry = self._ns_slots.get(name)
        if isinstance(entry, PropertyTrap):
            entry.assign(value)
            return
        self._ns_slots[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self._ns_slots[name]
        except KeyError:
            raise AttributeError(f"'{self._ns_path}' has no member '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._ns_slots

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ns_slots))

    def __len__(self) -> int:
        return len(self._ns_slots)

    def __dir__(self) -> list[str]:
        return sorted(self._ns_slots)

    def __repr__(self) -> str:
        return f"<Namespace {self._ns_path} ({len(self._ns_slots)} members)>"


# =============================================================================
# Slot access (raw entries, used by observers)
# =============================================================================


def namespace_name(ns: Namespace) -> str:
    return ns._ns_name  # type: ignore[no-any-return]


def namespace_path(ns: Namespace) -> str:
    return ns._ns_path  # type: ignore[no-any-return]


def get_slot(ns: Namespace, name: str) -> Any:
    """Raw slot entry, which may be a PropertyTrap. Raises KeyError."""
    return ns._ns_slots[name]


def set_slot(ns: Namespace, name: str, entry: Any) -> None:
    """Replace a raw slot entry without triggering any trap."""
    ns._ns_slots[name] = entry


def delete_slot(ns: Namespace, name: str) -> None:
    ns._ns_slots.pop(name, None)


# =============================================================================
# Path resolution
# =============================================================================


def split_path(root: Namespace, path: str) -> list[str]:
    """Split a dotted path into segments below ``root``.

    A leading segment equal to the root's own name is optional.
    """
    parts = [p for p in path.split(".") if p]
    if parts and parts[0] == namespace_name(root):
        parts = parts[1:]
    return parts


def child(obj: Any, segment: str, path: str) -> Any:
    """One traversal step. Raises PathNotFoundError when the segment is absent."""
    if isinstance(obj, Namespace):
        if segment not in obj:
            raise PathNotFoundError.missing_segment(path, segment)
        return getattr(obj, segment)
    if isinstance(obj, Mapping):
        if segment not in obj:
            raise PathNotFoundError.missing_segment(path, segment)
        return obj[segment]
    try:
        return getattr(obj, segment)
    except AttributeError:
        raise PathNotFoundError.missing_segment(path, segment) from None


def resolve(root: Namespace, path: str) -> Any:
    """Walk ``path`` segment-by-segment from ``root``."""
    current: Any = root
    for segment in split_path(root, path):
        current = child(current, segment, path)
    return current


def resolve_parent(root: Namespace, path: str) -> tuple[Any, str]:
    """Resolve everything but the last segment. Returns (parent, leaf_name)."""
    parts = split_path(root, path)
    if not parts:
        raise PathNotFoundError.missing_segment(path, path)
    current: Any = root
    for segment in parts[:-1]:
        current = child(current, segment, path)
    return current, parts[-1]


def has_path(root: Namespace, path: str) -> bool:
    try:
        resolve(root, path)
    except PathNotFoundError:
        return False
    return True


def mount(root: Namespace, path: str, value: Any) -> None:
    """Set ``value`` at ``path``, creating intermediate namespaces."""
    parts = split_path(root, path)
    if not parts:
        raise PathNotFoundError.missing_segment(path, path)
    current = root
    for segment in parts[:-1]:
        if segment not in current:
            setattr(current, segment, Namespace(segment, path=f"{namespace_path(current)}.{segment}"))
        nxt = getattr(current, segment)
        if not isinstance(nxt, Namespace):
            raise PathNotFoundError.missing_segment(path, segment)
        current = nxt
    setattr(current, parts[-1], value)


def unmount(root: Namespace, path: str) -> bool:
    """Remove the member at ``path``. Returns whether anything was removed."""
    try:
        parent, leaf = resolve_parent(root, path)
    except PathNotFoundError:
        return False
    if not isinstance(parent, Namespace) or leaf not in parent:
        return False
    delete_slot(parent, leaf)
    return True
