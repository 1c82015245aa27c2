"""Enumerations for catalog, canvas and resolution data types."""

import re
from enum import Enum
from typing import Tuple


ENTITY_PREFIX = re.compile(r"^(BASE|CTE|VIEW)_")


class EntityType(str, Enum):
    """Kind of SQL entity in a catalog."""
    BASE = "BASE"   # Physical table, assumed leaf-level
    CTE = "CTE"     # Common table expression
    VIEW = "VIEW"   # View / final select

    @classmethod
    def from_key(cls, entity_key: str) -> "EntityType":
        """Infer the type from a key prefix, defaulting to BASE."""
        match = ENTITY_PREFIX.match(entity_key or "")
        if match:
            return cls(match.group(1))
        return cls.BASE

    @classmethod
    def split_key(cls, entity_key: str) -> Tuple["EntityType", str]:
        """Split ``CTE_Orders`` into ``(EntityType.CTE, "Orders")``."""
        return cls.from_key(entity_key), ENTITY_PREFIX.sub("", entity_key or "", count=1)

    @property
    def derivable(self) -> bool:
        """Only CTEs and VIEWs can be suggested from other entities."""
        return self in (EntityType.CTE, EntityType.VIEW)

    def key_for(self, name: str) -> str:
        return f"{self.value}_{name}"


class ConnectionType(str, Enum):
    """How a target field depends on a source field."""
    REF = "ref"                   # Direct field reference
    CALCULATION = "calculation"   # Input of a calculation expression


class AttributeMode(str, Enum):
    """Runtime/loadtime classification of a field."""
    RUNTIME = "runtime"
    LOADTIME = "loadtime"

    def flipped(self) -> "AttributeMode":
        if self is AttributeMode.RUNTIME:
            return AttributeMode.LOADTIME
        return AttributeMode.RUNTIME


class SuggestionLevel(int, Enum):
    """Distance of a suggestion from the current canvas."""
    DIRECT = 1       # Builds on canvas entities
    TRANSITIVE = 2   # Builds on at least one level-1 suggestion


class SuggestionStatus(str, Enum):
    """Outcome signal returned alongside a suggestion set."""
    OK = "OK"
    NO_CATALOG = "NO_CATALOG"   # Catalog has no entities
    NO_CANVAS = "NO_CANVAS"     # Nothing on the canvas yet
