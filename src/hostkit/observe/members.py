"""Capture and replace single members of namespaces and ordinary objects.

A ``CapturedMember`` remembers the raw entry a parent held for one name
before an observer replaced it, so that restoring puts back exactly that
entry: the same function object, the same ``staticmethod`` wrapper, or the
same ``PropertyTrap``. Members a parent only inherited (class attributes seen
through an instance) are restored by deleting the shadowing attribute.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from hostkit.core.errors import UnsupportedTargetError
from hostkit.namespace.tree import Namespace, PropertyTrap, get_slot, set_slot


@dataclass(frozen=True)
class CapturedMember:
    parent: Any
    name: str
    raw: Any
    own: bool = True

    @property
    def value(self) -> Any:
        """The member as readers see it."""
        raw = self.raw
        if isinstance(raw, PropertyTrap):
            return raw.value
        if isinstance(raw, staticmethod | classmethod):
            return raw.__func__
        if not self.own:
            return getattr(self.parent, self.name)
        return raw

    @property
    def descriptor_type(self) -> type | None:
        if isinstance(self.raw, staticmethod | classmethod):
            return type(self.raw)
        return None


def _own_entries(parent: Any) -> Mapping[str, Any] | None:
    try:
        return vars(parent)
    except TypeError:
        return None


def capture(parent: Any, name: str, path: str) -> CapturedMember:
    """Snapshot ``parent.<name>`` as a restorable raw entry."""
    if isinstance(parent, Namespace):
        try:
            return CapturedMember(parent, name, get_slot(parent, name))
        except KeyError:
            raise UnsupportedTargetError.unresolvable(path, f"no member '{name}'") from None

    if isinstance(parent, Mapping):
        if not isinstance(parent, MutableMapping):
            raise UnsupportedTargetError.not_observable(path, "parent mapping is read-only")
        return CapturedMember(parent, name, parent[name])

    own = _own_entries(parent)
    if own is not None and name in own:
        return CapturedMember(parent, name, own[name])
    if not hasattr(parent, name):
        raise UnsupportedTargetError.unresolvable(path, f"no member '{name}'")
    if own is None:
        # No __dict__; a slot value is restored by assignment
        return CapturedMember(parent, name, getattr(parent, name))
    return CapturedMember(parent, name, None, own=False)


def replace(member: CapturedMember, entry: Any) -> None:
    """Install ``entry`` in place of the captured member."""
    parent = member.parent
    try:
        if isinstance(parent, Namespace):
            set_slot(parent, member.name, entry)
        elif isinstance(parent, MutableMapping):
            parent[member.name] = entry
        else:
            setattr(parent, member.name, entry)
    except (AttributeError, TypeError) as e:
        raise UnsupportedTargetError.not_observable(member.name, str(e)) from e


def restore(member: CapturedMember) -> None:
    """Put the captured raw entry back."""
    parent = member.parent
    if isinstance(parent, Namespace):
        set_slot(parent, member.name, member.raw)
    elif isinstance(parent, MutableMapping):
        parent[member.name] = member.raw
    elif member.own:
        setattr(parent, member.name, member.raw)
    else:
        # Only ever shadowed an inherited attribute
        try:
            delattr(parent, member.name)
        except AttributeError:
            pass
