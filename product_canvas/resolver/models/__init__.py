"""Data models and enums for the resolution engine."""

from .enums import (
    AttributeMode, ConnectionType, EntityType, SuggestionLevel, SuggestionStatus
)
from .dataclasses import (
    AttributeConfiguration,
    Calculation,
    CanvasField,
    CanvasNode,
    Connection,
    DependencyDetail,
    DependencyMap,
    Entity,
    EntityCatalog,
    EntityResolution,
    FieldDef,
    FieldRef,
    FieldResolution,
    MissingEntity,
    ReverseDependency,
    Suggestion,
    SuggestionSet,
    split_toggle_key,
)

__all__ = [
    "AttributeMode",
    "ConnectionType",
    "EntityType",
    "SuggestionLevel",
    "SuggestionStatus",
    "AttributeConfiguration",
    "Calculation",
    "CanvasField",
    "CanvasNode",
    "Connection",
    "DependencyDetail",
    "DependencyMap",
    "Entity",
    "EntityCatalog",
    "EntityResolution",
    "FieldDef",
    "FieldRef",
    "FieldResolution",
    "MissingEntity",
    "ReverseDependency",
    "Suggestion",
    "SuggestionSet",
    "split_toggle_key",
]
