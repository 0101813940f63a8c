"""Alias registry: persisted short global names for namespace paths."""

from hostkit.alias.registry import AliasRecord, AliasRegistry, AliasThunk, category_for
from hostkit.alias.reserved import reserved_names

__all__ = [
    "AliasRecord",
    "AliasRegistry",
    "AliasThunk",
    "category_for",
    "reserved_names",
]
