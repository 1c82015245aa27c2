"""Data classes for catalog, canvas and resolution structures."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from .enums import (
    AttributeMode, ConnectionType, EntityType, SuggestionLevel, SuggestionStatus
)


@dataclass(frozen=True)
class FieldRef:
    """Reference to a field of another entity (``EntityKey.FieldName``)."""
    entity_key: str
    field_name: str

    @classmethod
    def parse(cls, ref: str) -> Optional["FieldRef"]:
        """Split on the first ``.``; None when either half is missing."""
        if not isinstance(ref, str):
            return None
        entity_key, sep, field_name = ref.partition(".")
        if not sep or not entity_key or not field_name:
            return None
        return cls(entity_key, field_name)

    def __str__(self) -> str:
        return f"{self.entity_key}.{self.field_name}"


@dataclass
class Calculation:
    """Expression computing a field from referenced fields."""
    expression: str = ""
    ref: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"ref": list(self.ref), "expression": self.expression}


@dataclass
class FieldDef:
    """A single field of an entity."""
    name: str
    ref: List[str] = field(default_factory=list)
    calculation: Optional[Calculation] = None
    type: Optional[str] = None  # Carried through from the catalog, never inferred

    @classmethod
    def from_dict(cls, name: str, data: Optional[Mapping]) -> "FieldDef":
        data = data or {}
        calculation = None
        if data.get("calculation") is not None:
            calc = data["calculation"]
            calculation = Calculation(
                expression=calc.get("expression") or "",
                ref=list(calc.get("ref") or []),
            )
        return cls(
            name=name,
            ref=list(data.get("ref") or []),
            calculation=calculation,
            type=data.get("type"),
        )

    def iter_refs(self) -> Iterator[Tuple[str, ConnectionType]]:
        """Yield every raw reference with the connection type it implies."""
        for ref in self.ref:
            yield ref, ConnectionType.REF
        if self.calculation is not None:
            for ref in self.calculation.ref:
                yield ref, ConnectionType.CALCULATION

    def to_dict(self) -> Dict:
        result: Dict[str, Any] = {}
        if self.type:
            result["type"] = self.type
        if self.ref or self.calculation is not None:
            result["ref"] = list(self.ref)
        if self.calculation is not None:
            result["calculation"] = self.calculation.to_dict()
        return result


@dataclass
class Entity:
    """A BASE/CTE/VIEW definition keyed ``{TYPE}_{Name}``."""
    key: str
    fields: Dict[str, FieldDef] = field(default_factory=dict)
    alias: Optional[str] = None

    @property
    def entity_type(self) -> EntityType:
        return EntityType.from_key(self.key)

    @property
    def name(self) -> str:
        return EntityType.split_key(self.key)[1]

    @property
    def field_names(self) -> List[str]:
        return list(self.fields)

    @classmethod
    def from_dict(cls, key: str, data: Optional[Mapping]) -> "Entity":
        data = data or {}
        fields = {
            name: FieldDef.from_dict(name, field_data)
            for name, field_data in (data.get("fields") or {}).items()
        }
        return cls(key=key, fields=fields, alias=data.get("alias"))

    def to_dict(self) -> Dict:
        result: Dict[str, Any] = {}
        if self.alias:
            result["alias"] = self.alias
        result["fields"] = {name: f.to_dict() for name, f in self.fields.items()}
        return result


@dataclass
class EntityCatalog:
    """Ordered set of entities available for composition."""
    entities: Dict[str, Entity] = field(default_factory=dict)
    metadata: Dict = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metadata.get("name") or "Data Product"

    def get(self, key: str) -> Optional[Entity]:
        return self.entities.get(key)

    def keys(self) -> List[str]:
        return list(self.entities)

    def __contains__(self, key: object) -> bool:
        return key in self.entities

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.entities.values())

    def add(self, entity: Entity) -> bool:
        """Add an entity unless the key is taken; first occurrence wins."""
        if entity.key in self.entities:
            return False
        self.entities[entity.key] = entity
        return True

    @classmethod
    def from_dict(cls, data: Mapping) -> "EntityCatalog":
        entities = {
            key: Entity.from_dict(key, entity_data)
            for key, entity_data in (data.get("entities") or {}).items()
        }
        return cls(entities=entities, metadata=dict(data.get("metadata") or {}))

    @classmethod
    def combine(cls, catalogs: Iterable["EntityCatalog"]) -> "EntityCatalog":
        """Merge catalogs in order; duplicate keys keep the first definition."""
        combined = cls()
        names = []
        for catalog in catalogs:
            if catalog.metadata.get("name"):
                names.append(catalog.metadata["name"])
            for entity in catalog:
                combined.add(entity)
        if names:
            combined.metadata["name"] = " + ".join(names)
        return combined

    def to_dict(self) -> Dict:
        result: Dict[str, Any] = {}
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        result["entities"] = {key: e.to_dict() for key, e in self.entities.items()}
        return result


# =============================================================================
# Resolution results
# =============================================================================

@dataclass
class DependencyDetail:
    """One field-level connection backing a suggestion or reverse dependency."""
    referenced_entity: str
    source_field: str         # Field on the referenced entity
    target_field: str         # Field on the dependent entity
    connection_type: ConnectionType = ConnectionType.REF
    calculation: Optional[str] = None

    def to_dict(self) -> Dict:
        entity_type, entity_name = EntityType.split_key(self.referenced_entity)
        return {
            "sourceField": self.source_field,
            "targetField": self.target_field,
            "connectionType": self.connection_type.value,
            "calculation": self.calculation,
            "dependencyEntityType": entity_type.value,
            "dependencyEntityName": entity_name,
        }


DependencyMap = Dict[str, List[DependencyDetail]]


@dataclass
class FieldResolution:
    """References of a single field classified against a candidate set."""
    resolved: Set[str] = field(default_factory=set)
    missing: Set[str] = field(default_factory=set)
    details: List[DependencyDetail] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)  # Refs without a separator


@dataclass
class EntityResolution:
    """All field resolutions of an entity, aggregated per referenced entity."""
    entity_key: str
    resolved: List[str] = field(default_factory=list)   # First-seen order
    missing: List[str] = field(default_factory=list)
    dependency_map: DependencyMap = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def referenced_count(self) -> int:
        return len(self.resolved) + len(self.missing)

    @property
    def coverage_percent(self) -> int:
        """Share of distinct referenced entities that resolve, 0-100."""
        total = self.referenced_count
        if total == 0 or not self.resolved:
            return 0
        if not self.missing:
            return 100
        # Half-up (12.5 -> 13), kept inside 1..99 while anything is missing
        percent = int(100 * len(self.resolved) / total + 0.5)
        return max(1, min(99, percent))


@dataclass
class MissingEntity:
    """A referenced entity that is not available yet."""
    full_key: str
    name: str
    type: EntityType

    @classmethod
    def from_key(cls, entity_key: str) -> "MissingEntity":
        entity_type, name = EntityType.split_key(entity_key)
        return cls(full_key=entity_key, name=name, type=entity_type)

    def to_dict(self) -> Dict:
        return {"fullKey": self.full_key, "name": self.name, "type": self.type.value}


@dataclass
class Suggestion:
    """A catalog entity that can be derived from the canvas (or level 1)."""
    entity_key: str
    level: SuggestionLevel
    coverage_percent: int
    matching_entities: List[str] = field(default_factory=list)
    missing_entities: List[MissingEntity] = field(default_factory=list)
    dependency_map: DependencyMap = field(default_factory=dict)
    alias: Optional[str] = None
    total_fields: int = 0
    source: str = ""

    @property
    def entity_type(self) -> EntityType:
        return EntityType.from_key(self.entity_key)

    @property
    def referenced_entities_count(self) -> int:
        return len(self.matching_entities) + len(self.missing_entities)

    @property
    def matching_tables(self) -> List[str]:
        """Matching entity names without their type prefix."""
        return [EntityType.split_key(key)[1] for key in self.matching_entities]

    @property
    def connection_count(self) -> int:
        return sum(len(details) for details in self.dependency_map.values())

    def to_dict(self) -> Dict:
        return {
            "entityName": self.entity_key,
            "alias": self.alias or self.entity_key,
            "entityType": self.entity_type.value,
            "level": int(self.level),
            "sourceFile": self.source,
            "coveragePercent": self.coverage_percent,
            "matchingTables": self.matching_tables,
            "missingEntities": [m.to_dict() for m in self.missing_entities],
            "totalFields": self.total_fields,
            "referencedEntitiesCount": self.referenced_entities_count,
            "dependencyMap": {
                key: [d.to_dict() for d in details]
                for key, details in self.dependency_map.items()
            },
        }


@dataclass
class SuggestionSet:
    """Level-1 and level-2 suggestions computed from one canvas snapshot."""
    level1: List[Suggestion] = field(default_factory=list)
    level2: List[Suggestion] = field(default_factory=list)
    status: SuggestionStatus = SuggestionStatus.OK

    @property
    def has_input(self) -> bool:
        return self.status is SuggestionStatus.OK

    def all(self) -> List[Suggestion]:
        return self.level1 + self.level2

    def __len__(self) -> int:
        return len(self.level1) + len(self.level2)


@dataclass
class ReverseDependency:
    """An entity the selected entity requires but the canvas lacks."""
    entity_key: str
    required_by: str
    dependencies: List[DependencyDetail] = field(default_factory=list)
    alias: Optional[str] = None
    in_catalog: bool = False

    @property
    def entity_type(self) -> EntityType:
        return EntityType.from_key(self.entity_key)

    @property
    def name(self) -> str:
        return EntityType.split_key(self.entity_key)[1]

    @property
    def connection_count(self) -> int:
        return len(self.dependencies)

    def to_dict(self) -> Dict:
        return {
            "entityName": self.entity_key,
            "name": self.name,
            "alias": self.alias or self.entity_key,
            "entityType": self.entity_type.value,
            "requiredBy": self.required_by,
            "inCatalog": self.in_catalog,
            "connectionCount": self.connection_count,
            "dependencyMap": [d.to_dict() for d in self.dependencies],
        }


# =============================================================================
# Canvas
# =============================================================================

@dataclass
class CanvasField:
    """A field as shown on a canvas node."""
    name: str
    type: Optional[str] = None
    is_pk: bool = False
    attribute_mode: Optional[AttributeMode] = None


@dataclass
class CanvasNode:
    """An entity placed on the canvas under an ephemeral id."""
    id: str
    table_name: str
    table_type: EntityType
    fields: List[CanvasField] = field(default_factory=list)
    position: Tuple[float, float] = (0.0, 0.0)
    entity_id: str = ""  # Stable identifier persisted across sessions

    @property
    def entity_key(self) -> str:
        return self.table_type.key_for(self.table_name)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)


@dataclass
class Connection:
    """A field-level edge between two canvas nodes."""
    id: str
    source_node: str
    source_field: str
    target_node: str
    target_field: str
    connection_type: ConnectionType = ConnectionType.REF
    calculation: Optional[str] = None


def split_toggle_key(key: str) -> Tuple[str, str]:
    """Split ``node-3_email`` into ``("node-3", "email")``."""
    node_id, _, field_name = key.partition("_")
    return node_id, field_name


@dataclass(frozen=True)
class AttributeConfiguration:
    """
    Per-field attribute toggles and per-entity modes.

    Values are never mutated in place; every operation returns a new
    configuration. A toggled field uses the opposite of its entity's mode.
    """
    toggles: Dict[str, bool] = field(default_factory=dict)
    entity_modes: Dict[str, AttributeMode] = field(default_factory=dict)
    global_mode: AttributeMode = AttributeMode.RUNTIME

    @staticmethod
    def toggle_key(node_id: str, field_name: str) -> str:
        return f"{node_id}_{field_name}"

    def toggle_field(self, node_id: str, field_name: str) -> "AttributeConfiguration":
        key = self.toggle_key(node_id, field_name)
        toggles = dict(self.toggles)
        toggles[key] = not toggles.get(key, False)
        return replace(self, toggles=toggles)

    def set_entity_mode(self, node_id: str, mode: AttributeMode) -> "AttributeConfiguration":
        modes = dict(self.entity_modes)
        modes[node_id] = AttributeMode(mode)
        return replace(self, entity_modes=modes)

    def set_global_mode(self, mode: AttributeMode) -> "AttributeConfiguration":
        return replace(self, global_mode=AttributeMode(mode))

    def entity_mode(self, node_id: str) -> AttributeMode:
        return self.entity_modes.get(node_id, self.global_mode)

    def is_toggled(self, node_id: str, field_name: str) -> bool:
        return self.toggles.get(self.toggle_key(node_id, field_name), False)

    def effective_mode(self, node_id: str, field_name: str) -> AttributeMode:
        mode = self.entity_mode(node_id)
        if self.is_toggled(node_id, field_name):
            return mode.flipped()
        return mode

    def node_toggles(self, node_id: str) -> Dict[str, bool]:
        """Toggle values of one node keyed by field name."""
        result = {}
        for key, value in self.toggles.items():
            owner, field_name = split_toggle_key(key)
            if owner == node_id:
                result[field_name] = value
        return result

    def drop_node(self, node_id: str) -> "AttributeConfiguration":
        toggles = {
            key: value for key, value in self.toggles.items()
            if split_toggle_key(key)[0] != node_id
        }
        modes = {key: mode for key, mode in self.entity_modes.items() if key != node_id}
        return replace(self, toggles=toggles, entity_modes=modes)

    def rekey(self, id_map: Mapping[str, str]) -> "AttributeConfiguration":
        """Move state to new node ids; entries of unmapped ids are dropped."""
        toggles = {}
        for key, value in self.toggles.items():
            owner, field_name = split_toggle_key(key)
            if owner in id_map:
                toggles[self.toggle_key(id_map[owner], field_name)] = value
        modes = {
            id_map[owner]: mode for owner, mode in self.entity_modes.items()
            if owner in id_map
        }
        return replace(self, toggles=toggles, entity_modes=modes)
