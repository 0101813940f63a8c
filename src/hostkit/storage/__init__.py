"""Persistence: SQLite database, schema, migrations and user properties."""

from hostkit.storage.database import Database
from hostkit.storage.layout import module_file_name
from hostkit.storage.migrations import migrate_legacy_modules, needs_module_migration
from hostkit.storage.models import AliasRow, ModuleRow, PropertyRow
from hostkit.storage.user import PropertySummary, UserStorage

__all__ = [
    "AliasRow",
    "Database",
    "ModuleRow",
    "PropertyRow",
    "PropertySummary",
    "UserStorage",
    "migrate_legacy_modules",
    "module_file_name",
    "needs_module_migration",
]
