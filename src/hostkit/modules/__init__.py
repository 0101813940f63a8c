"""Module store: persisted, named, executable code units."""

from hostkit.modules.analysis import (
    ImportReport,
    check_imports,
    detect_entry_point,
    detect_export,
    parse_source,
)
from hostkit.modules.bundler import Bundler, StickytapeBundler
from hostkit.modules.loader import UnitLoader
from hostkit.modules.store import (
    EVENT_BUNDLE_FAILED,
    EVENT_MODULES_CHANGED,
    ModuleStore,
    ModuleSummary,
)

__all__ = [
    "EVENT_BUNDLE_FAILED",
    "EVENT_MODULES_CHANGED",
    "Bundler",
    "ImportReport",
    "ModuleStore",
    "ModuleSummary",
    "StickytapeBundler",
    "UnitLoader",
    "check_imports",
    "detect_entry_point",
    "detect_export",
    "parse_source",
]
