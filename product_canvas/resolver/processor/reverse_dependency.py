"""Find the entities a selected entity still needs on the canvas."""

import logging
from typing import Iterable, List

from ..models.dataclasses import EntityCatalog, ReverseDependency
from .reference_resolver import resolve_entity


logger = logging.getLogger(__name__)


def resolve_reverse_dependencies(selected_key: str, catalog: EntityCatalog,
                                 canvas_keys: Iterable[str]) -> List[ReverseDependency]:
    """
    List the entities referenced by ``selected_key`` that are not on the canvas.

    Args:
        selected_key: Entity key of the selected canvas node
        catalog: Catalog holding the selected entity's definition
        canvas_keys: Entity keys currently on the canvas

    Returns:
        One ReverseDependency per missing entity in first-reference order;
        empty when the entity is unknown or has no fields
    """
    entity = catalog.get(selected_key) if catalog is not None else None
    if entity is None or not entity.fields:
        logger.info(f"No catalog definition with fields for {selected_key}")
        return []

    canvas = frozenset(canvas_keys)
    resolution = resolve_entity(entity, canvas, exclude=[selected_key])

    required = []
    for key in resolution.missing:
        definition = catalog.get(key)
        required.append(ReverseDependency(
            entity_key=key,
            required_by=selected_key,
            dependencies=list(resolution.dependency_map[key]),
            alias=definition.alias if definition else None,
            in_catalog=definition is not None,
        ))

    logger.info(f"{selected_key} requires {len(required)} entities not on canvas")
    return required
