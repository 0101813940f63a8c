"""SQLModel definitions for persisted code units, aliases and user properties.

Single source of truth for the current schema. The legacy inline-source shape
of the modules table is handled by storage.migrations, not declared here.
"""

import json
from typing import Any

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel

from hostkit.config.constants import (
    ALIASES_TABLE,
    ENTRY_DEFAULT,
    MODULE_TYPE,
    MODULES_TABLE,
    PROPERTIES_TABLE,
)


class ModuleRow(SQLModel, table=True):
    """A persisted, named, executable code unit."""

    __tablename__ = MODULES_TABLE

    key: str = Field(primary_key=True)
    namespace: str
    file_path: str  # Relative to the module storage root
    entry_point: str = Field(default=ENTRY_DEFAULT)
    # "metadata" is reserved on declarative classes; the column keeps the name
    metadata_json: str = Field(
        default="{}",
        sa_column=Column("metadata", Text, nullable=False, server_default="{}"),
    )
    type: str = Field(default=MODULE_TYPE)
    updated_at: float = Field(index=True)
    visible: bool = Field(default=True)

    def get_metadata(self) -> dict[str, Any]:
        """Parse metadata JSON to dict."""
        result: dict[str, Any] = json.loads(self.metadata_json or "{}")
        return result


class AliasRow(SQLModel, table=True):
    """A short global name bound to a dotted namespace path."""

    __tablename__ = ALIASES_TABLE

    name: str = Field(primary_key=True)
    path: str
    created_at: float
    updated_at: float


class PropertyRow(SQLModel, table=True):
    """A user-defined value mounted at the top of the namespace root."""

    __tablename__ = PROPERTIES_TABLE

    key: str = Field(primary_key=True)
    value: str  # JSON text
    type: str
    updated_at: float
