"""Namespace tree exports."""

from hostkit.namespace.tree import (
    Namespace,
    PropertyTrap,
    get_slot,
    has_path,
    mount,
    namespace_name,
    namespace_path,
    resolve,
    resolve_parent,
    set_slot,
    split_path,
    unmount,
)

__all__ = [
    "Namespace",
    "PropertyTrap",
    "get_slot",
    "has_path",
    "mount",
    "namespace_name",
    "namespace_path",
    "resolve",
    "resolve_parent",
    "set_slot",
    "split_path",
    "unmount",
]
