"""
Save and load data products in the persisted JSON format.

Saved products carry a stable identifier per entity (``entityIds``) and
key their attribute state by it, so a reload restores toggles and modes
exactly. Products saved before stable ids existed key their state by the
saving session's node ids; those go through :func:`migrate_legacy_state`,
a best-effort signature match.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ..config import Config
from ..models.dataclasses import (
    AttributeConfiguration, CanvasField, CanvasNode, Connection, Entity, split_toggle_key
)
from ..models.enums import AttributeMode, ConnectionType, EntityType
from .identity_reconciler import ReconciliationResult, new_node_id, reconcile
from .materializer import CanvasGraph, node_position


logger = logging.getLogger(__name__)


@dataclass
class LoadedProduct:
    """Canvas state rebuilt from a persisted data product."""
    graph: CanvasGraph
    configuration: AttributeConfiguration
    metadata: Dict = field(default_factory=dict)
    reconciliation: Optional[ReconciliationResult] = None  # Set for legacy products

    @property
    def migrated(self) -> bool:
        return self.reconciliation is not None


def build_persisted_state(graph: CanvasGraph, configuration: AttributeConfiguration,
                          name: str = "data_product") -> Dict[str, Any]:
    """
    Serialize the canvas and its attribute configuration.

    Nodes without a stable entity id are given one here.
    """
    entities: Dict[str, Any] = {}
    entity_ids: Dict[str, str] = {}
    stable_by_node: Dict[str, str] = {}

    for node in graph.nodes:
        if not node.entity_id:
            node.entity_id = uuid.uuid4().hex
        entities[node.entity_key] = {"fields": {f.name: _field_state(f) for f in node.fields}}
        entity_ids[node.entity_key] = node.entity_id
        stable_by_node[node.id] = node.entity_id

    relationships = []
    for conn in graph.connections:
        source = graph.get_node(conn.source_node)
        target = graph.get_node(conn.target_node)
        if source is None or target is None:
            continue
        relationship = {
            "from": {"entity": source.entity_key, "field": conn.source_field},
            "to": {"entity": target.entity_key, "field": conn.target_field},
            "type": conn.connection_type.value,
        }
        if conn.connection_type is ConnectionType.CALCULATION and conn.calculation:
            relationship["calculation"] = conn.calculation
        relationships.append(relationship)

    stable = configuration.rekey(stable_by_node)

    return {
        "formatVersion": Config.FORMAT_VERSION,
        "entities": entities,
        "relationships": relationships,
        "entityIds": entity_ids,
        "attributeToggles": dict(stable.toggles),
        "entityAttributeModes": {key: mode.value for key, mode in stable.entity_modes.items()},
        "globalAttributeMode": configuration.global_mode.value,
        "metadata": {
            "name": name,
            "created": datetime.now().isoformat(),
            "tableCount": len(graph.nodes),
            "connectionCount": len(relationships),
        },
    }


def load_persisted_state(state: Mapping[str, Any]) -> LoadedProduct:
    """
    Rebuild nodes, connections and attribute configuration.

    Node ids are regenerated (``node-0``, ``node-1``, ... in entity order);
    relationships whose endpoints are missing are skipped.
    """
    entities = [
        Entity.from_dict(key, data)
        for key, data in (state.get("entities") or {}).items()
    ]
    node_ids = [new_node_id(i) for i in range(len(entities))]
    global_mode = _mode(state.get("globalAttributeMode")) or Config.DEFAULT_ATTRIBUTE_MODE
    saved_ids = state.get("entityIds")

    graph = CanvasGraph()
    node_by_key: Dict[str, str] = {}
    for index, (entity, node_id) in enumerate(zip(entities, node_ids)):
        entity_type, table_name = EntityType.split_key(entity.key)
        stable_id = (saved_ids or {}).get(entity.key) or uuid.uuid4().hex
        graph.nodes.append(CanvasNode(
            id=node_id,
            table_name=table_name,
            table_type=entity_type,
            fields=[
                CanvasField(name=name, type=field_def.type or Config.UNKNOWN_FIELD_TYPE)
                for name, field_def in entity.fields.items()
            ],
            position=node_position(index + 1),
            entity_id=stable_id,
        ))
        node_by_key[entity.key] = node_id

    for idx, rel in enumerate(state.get("relationships") or []):
        source = node_by_key.get(rel["from"]["entity"])
        target = node_by_key.get(rel["to"]["entity"])
        if source is None or target is None:
            logger.debug(f"[LOAD] relationship {idx} skipped: endpoint not loaded")
            continue
        graph.connections.append(Connection(
            id=f"{Config.EDGE_ID_PREFIX}{idx}",
            source_node=source,
            source_field=rel["from"]["field"],
            target_node=target,
            target_field=rel["to"]["field"],
            connection_type=ConnectionType(rel.get("type") or "ref"),
            calculation=rel.get("calculation"),
        ))

    toggles = state.get("attributeToggles") or {}
    modes = state.get("entityAttributeModes") or {}
    reconciliation = None

    if saved_ids is not None:
        configuration = _restore_stable(graph, toggles, modes, global_mode)
    else:
        reconciliation = migrate_legacy_state(toggles, modes, entities, node_ids)
        configuration = reconciliation.to_configuration(global_mode)

    apply_attribute_modes(graph, configuration)
    logger.info(f"Loaded {len(graph.nodes)} node(s), {len(graph.connections)} connection(s)"
                f"{' (legacy attribute state migrated)' if reconciliation else ''}")

    return LoadedProduct(
        graph=graph,
        configuration=configuration,
        metadata=dict(state.get("metadata") or {}),
        reconciliation=reconciliation,
    )


def migrate_legacy_state(saved_toggles: Mapping[str, bool], saved_modes: Mapping[str, str],
                         entities: List[Entity], node_ids: List[str]) -> ReconciliationResult:
    """Best-effort migration of state keyed by a previous session's node ids."""
    if saved_toggles or saved_modes:
        logger.info("Data product has no stable entity ids, matching saved state by field set")
    return reconcile(saved_toggles, saved_modes, entities, node_ids)


def apply_attribute_modes(graph: CanvasGraph, configuration: AttributeConfiguration) -> None:
    """Set each canvas field's effective mode from the configuration."""
    for node in graph.nodes:
        for canvas_field in node.fields:
            canvas_field.attribute_mode = configuration.effective_mode(node.id, canvas_field.name)


def _restore_stable(graph: CanvasGraph, toggles: Mapping[str, bool],
                    modes: Mapping[str, str], global_mode: AttributeMode) -> AttributeConfiguration:
    id_map = {node.entity_id: node.id for node in graph.nodes}

    dropped = [key for key in toggles if split_toggle_key(key)[0] not in id_map]
    dropped.extend(key for key in modes if key not in id_map)
    if dropped:
        logger.info(f"Attribute state: {len(dropped)} entries for unknown entities dropped")

    entity_modes = {}
    for key, value in modes.items():
        mode = _mode(value)
        if mode is not None:
            entity_modes[key] = mode

    saved = AttributeConfiguration(
        toggles={key: bool(value) for key, value in toggles.items()},
        entity_modes=entity_modes,
        global_mode=global_mode,
    )
    return saved.rekey(id_map)


def _field_state(canvas_field: CanvasField) -> Dict[str, Any]:
    if canvas_field.type and canvas_field.type != Config.UNKNOWN_FIELD_TYPE:
        return {"type": canvas_field.type}
    return {}


def _mode(value: Any) -> Optional[AttributeMode]:
    try:
        return AttributeMode(value) if value is not None else None
    except ValueError:
        logger.debug(f"[LOAD] unknown attribute mode {value!r}")
        return None
