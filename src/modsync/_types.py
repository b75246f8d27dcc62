"""Shared type definitions for modsync."""

from collections.abc import Mapping
from typing import Any, TypeAlias

# Module identity (a path relative to the bundle base directory)
ModuleName: TypeAlias = str

# Content hash produced by the build process
ModuleHash: TypeAlias = str

# Opaque per-module data as sent by the build process
ModuleData: TypeAlias = Mapping[str, Any]

# A client's belief about the table: name -> hash (None if unknown)
ClientView: TypeAlias = Mapping[ModuleName, ModuleHash | None]

# Connection identifier
ClientID: TypeAlias = str
