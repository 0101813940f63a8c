"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
These are on-disk formats, schema names and implementation details.

For configurable values, see models.py.
"""

# =============================================================================
# Code units
# =============================================================================

MODULE_FILE_SUFFIX = ".module.py"
"""Suffix of every materialized module file in the module storage root."""

MODULE_TYPE = "python"
"""Source dialect tag recorded for saved units."""

DEFAULT_EXPORT = "default"
"""Module-level name holding a unit's primary export."""

ENTRY_DEFAULT = "default"
ENTRY_SCRIPT = "script"
"""Entry point kinds: a primary export, or a side-effecting script."""

UNIT_MODULE_PREFIX = "hostkit_unit_"
"""Module name prefix for materialized units (never left in sys.modules)."""

# =============================================================================
# Schema
# =============================================================================

MODULES_TABLE = "modules"
ALIASES_TABLE = "aliases"
PROPERTIES_TABLE = "custom_properties"

LEGACY_SOURCE_COLUMN = "source_code"
"""Column that marks the legacy inline-source shape of the modules table."""

LEGACY_MS_THRESHOLD = 100_000_000_000
"""Timestamps above this are legacy milliseconds rather than seconds."""

# =============================================================================
# Observation
# =============================================================================

WILDCARD = "*"
"""Pattern marker selecting every callable member one level below a prefix."""

FILE_PREFIXES = ("/", "./", "../", "~")
"""Targets starting with these are always treated as filesystem paths."""

# =============================================================================
# Aliases
# =============================================================================

BOOTSTRAP_ALIAS = "alias"
"""Global name of the alias listing function, always present after restore."""
