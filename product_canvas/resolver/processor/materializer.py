"""
Turn suggestions and reverse dependencies into canvas nodes and edges.

The canvas graph is the only mutable structure in the engine. A node is
always added together with all of its edges in one validated step: the
graph is never left holding a node without its edges, or an edge pointing
at a node that was not added.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..config import Config
from ..models.dataclasses import (
    CanvasField, CanvasNode, Connection, DependencyDetail, EntityCatalog,
    ReverseDependency, Suggestion
)
from ..models.enums import EntityType
from .reference_resolver import resolve_entity


logger = logging.getLogger(__name__)


class MaterializationError(Exception):
    """Raised when a node and its edges cannot be added consistently."""
    pass


@dataclass
class CanvasGraph:
    """Nodes and field-level connections currently on the canvas."""
    nodes: List[CanvasNode] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)

    @property
    def entity_keys(self) -> List[str]:
        return [node.entity_key for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[CanvasNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def find_node(self, entity_key: str) -> Optional[CanvasNode]:
        for node in self.nodes:
            if node.entity_key == entity_key:
                return node
        return None

    def next_node_id(self) -> str:
        return f"{Config.NODE_ID_PREFIX}{self._next_index((n.id for n in self.nodes), Config.NODE_ID_PREFIX)}"

    def next_connection_ids(self, count: int) -> List[str]:
        start = self._next_index((c.id for c in self.connections), Config.EDGE_ID_PREFIX)
        return [f"{Config.EDGE_ID_PREFIX}{start + i}" for i in range(count)]

    @staticmethod
    def _next_index(ids: Iterable[str], prefix: str) -> int:
        highest = -1
        for item in ids:
            suffix = item[len(prefix):] if item.startswith(prefix) else ""
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest + 1

    def add_node_with_connections(self, node: CanvasNode,
                                  connections: Iterable[Connection] = ()) -> CanvasNode:
        """
        Add a node and its connections atomically.

        Raises:
            MaterializationError: If the node id or entity already exists,
                or a connection references an unknown node or field.
                The graph is unchanged in that case.
        """
        connections = list(connections)

        if self.get_node(node.id) is not None:
            raise MaterializationError(f"Node id already on canvas: {node.id}")
        if self.find_node(node.entity_key) is not None:
            raise MaterializationError(f"Entity already on canvas: {node.entity_key}")

        known = {n.id: n for n in self.nodes}
        known[node.id] = node
        existing_ids = {c.id for c in self.connections}

        for conn in connections:
            if conn.id in existing_ids:
                raise MaterializationError(f"Connection id already used: {conn.id}")
            existing_ids.add(conn.id)
            for node_id, field_name in ((conn.source_node, conn.source_field),
                                        (conn.target_node, conn.target_field)):
                endpoint = known.get(node_id)
                if endpoint is None:
                    raise MaterializationError(f"{conn.id} references unknown node {node_id}")
                if not endpoint.has_field(field_name):
                    raise MaterializationError(
                        f"{conn.id} references unknown field {node_id}.{field_name}")

        if not node.entity_id:
            node.entity_id = uuid.uuid4().hex

        self.nodes.append(node)
        self.connections.extend(connections)
        logger.info(f"Added {node.entity_key} as {node.id} with {len(connections)} connection(s)")
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every connection touching it."""
        self.nodes = [n for n in self.nodes if n.id != node_id]
        self.connections = [
            c for c in self.connections
            if c.source_node != node_id and c.target_node != node_id
        ]


def node_position(index: int) -> Tuple[int, int]:
    """Initial placement of the index-th node (1-based), staggered over rows."""
    return (
        Config.ORIGIN_X + index * Config.NODE_SPACING_X,
        Config.ORIGIN_Y + (index % Config.LAYOUT_ROWS) * Config.NODE_SPACING_Y,
    )


def materialize_suggestion(graph: CanvasGraph, suggestion: Suggestion,
                           catalog: Optional[EntityCatalog] = None) -> CanvasNode:
    """
    Add a suggested entity and wire every on-canvas dependency into it.

    Dependencies whose entity is not on the canvas produce no edge.
    """
    details = [d for deps in suggestion.dependency_map.values() for d in deps]
    node = _new_node(graph, suggestion.entity_key, catalog,
                     extra_fields=[d.target_field for d in details])

    pairs = []
    for detail in details:
        source = graph.find_node(detail.referenced_entity)
        if source is None:
            continue
        if not source.has_field(detail.source_field):
            logger.debug(f"[MATERIALIZE] {source.entity_key} has no field {detail.source_field}")
            continue
        pairs.append(((source.id, detail.source_field), (node.id, detail.target_field), detail))

    return graph.add_node_with_connections(node, _connections(graph, pairs))


def materialize_reverse_dependency(graph: CanvasGraph, dependency: ReverseDependency,
                                   selected_node_id: str,
                                   catalog: Optional[EntityCatalog] = None) -> CanvasNode:
    """
    Add a required entity and wire it into the selected node.

    Raises:
        MaterializationError: If the selected node is not on the canvas
    """
    selected = graph.get_node(selected_node_id)
    if selected is None:
        raise MaterializationError(f"Selected node not on canvas: {selected_node_id}")

    node = _new_node(graph, dependency.entity_key, catalog,
                     extra_fields=[d.source_field for d in dependency.dependencies])

    pairs = []
    for detail in dependency.dependencies:
        if not selected.has_field(detail.target_field):
            logger.debug(f"[MATERIALIZE] {selected.entity_key} has no field {detail.target_field}")
            continue
        pairs.append(((node.id, detail.source_field), (selected.id, detail.target_field), detail))

    return graph.add_node_with_connections(node, _connections(graph, pairs))


def build_canvas_graph(entity_keys: Iterable[str],
                       catalog: Optional[EntityCatalog] = None) -> CanvasGraph:
    """
    Place entities on a new canvas and wire the references between them.

    Keys are placed in order, duplicates once. Each entity is connected to
    the entities already placed, in both directions, so every reference
    between two placed entities becomes an edge.
    """
    graph = CanvasGraph()

    for entity_key in dict.fromkeys(entity_keys):
        entity = catalog.get(entity_key) if catalog is not None else None
        node = _new_node(graph, entity_key, catalog, extra_fields=[])
        pairs = []

        if entity is not None:
            resolution = resolve_entity(entity, set(graph.entity_keys), exclude=[entity_key])
            for key in resolution.resolved:
                source = graph.find_node(key)
                for detail in resolution.dependency_map[key]:
                    if source.has_field(detail.source_field):
                        pairs.append(((source.id, detail.source_field),
                                      (node.id, detail.target_field), detail))

        for placed in list(graph.nodes):
            placed_entity = catalog.get(placed.entity_key) if catalog is not None else None
            if placed_entity is None:
                continue
            resolution = resolve_entity(placed_entity, {entity_key}, exclude=[placed.entity_key])
            for detail in resolution.dependency_map.get(entity_key, []):
                if node.has_field(detail.source_field) and placed.has_field(detail.target_field):
                    pairs.append(((node.id, detail.source_field),
                                  (placed.id, detail.target_field), detail))

        graph.add_node_with_connections(node, _connections(graph, pairs))

    return graph


def _new_node(graph: CanvasGraph, entity_key: str, catalog: Optional[EntityCatalog],
              extra_fields: Iterable[str]) -> CanvasNode:
    """Build a node from the catalog definition plus referenced field names."""
    entity_type, name = EntityType.split_key(entity_key)
    entity = catalog.get(entity_key) if catalog is not None else None

    names = list(entity.fields) if entity is not None else []
    for field_name in extra_fields:
        if field_name not in names:
            names.append(field_name)

    return CanvasNode(
        id=graph.next_node_id(),
        table_name=name,
        table_type=entity_type,
        fields=[CanvasField(name=n, type=_catalog_type(entity, n)) for n in names],
        position=node_position(len(graph.nodes) + 1),
    )


def _catalog_type(entity, field_name: str) -> Optional[str]:
    if entity is None or field_name not in entity.fields:
        return None
    return entity.fields[field_name].type


def _connections(graph: CanvasGraph,
                 pairs: List[Tuple[Tuple[str, str], Tuple[str, str], DependencyDetail]]
                 ) -> List[Connection]:
    ids = graph.next_connection_ids(len(pairs))
    return [
        Connection(
            id=conn_id,
            source_node=source[0],
            source_field=source[1],
            target_node=target[0],
            target_field=target[1],
            connection_type=detail.connection_type,
            calculation=detail.calculation,
        )
        for conn_id, (source, target, detail) in zip(ids, pairs)
    ]
