"""
Suggest catalog entities that can be composed from the current canvas.

Level 1 suggestions reference at least one entity already on the canvas.
Level 2 suggestions build on at least one level-1 suggestion, treating the
canvas plus all level-1 entities as available.
"""

import logging
from typing import AbstractSet, Iterable, List, Optional

from ..models.dataclasses import EntityCatalog, MissingEntity, Suggestion, SuggestionSet
from ..models.enums import SuggestionLevel, SuggestionStatus
from .reference_resolver import resolve_entity


logger = logging.getLogger(__name__)


def compute_level1(canvas_keys: Iterable[str], catalog: EntityCatalog) -> List[Suggestion]:
    """
    Find CTE/VIEW entities with at least one reference resolvable on the canvas.

    Args:
        canvas_keys: Entity keys currently on the canvas
        catalog: Entity catalog to search

    Returns:
        Suggestions ordered by coverage (desc) then entity key
    """
    available = frozenset(canvas_keys)
    if not available or not len(catalog):
        return []

    return _collect(catalog, available, SuggestionLevel.DIRECT, excluded=available)


def compute_level2(canvas_keys: Iterable[str], level1: Iterable[Suggestion],
                   catalog: EntityCatalog) -> List[Suggestion]:
    """
    Find CTE/VIEW entities that build on at least one level-1 suggestion.

    Args:
        canvas_keys: Entity keys currently on the canvas
        level1: Output of :func:`compute_level1` for the same snapshot
        catalog: Entity catalog to search

    Returns:
        Suggestions ordered by coverage (desc) then entity key; empty
        when ``level1`` is empty
    """
    level1_keys = frozenset(s.entity_key for s in level1)
    if not level1_keys or not len(catalog):
        return []

    pool = frozenset(canvas_keys) | level1_keys
    return _collect(catalog, pool, SuggestionLevel.TRANSITIVE,
                    excluded=pool, required=level1_keys)


def suggest(canvas_keys: Iterable[str], catalog: Optional[EntityCatalog]) -> SuggestionSet:
    """
    Compute both suggestion levels for a canvas snapshot.

    Empty input is not an error: the returned set carries a status telling
    the caller whether the catalog or the canvas was empty.
    """
    canvas = frozenset(canvas_keys)

    if catalog is None or not len(catalog):
        logger.info("No catalog entities available for suggestions")
        return SuggestionSet(status=SuggestionStatus.NO_CATALOG)

    if not canvas:
        logger.info("Canvas is empty, nothing to suggest from")
        return SuggestionSet(status=SuggestionStatus.NO_CANVAS)

    level1 = compute_level1(canvas, catalog)
    level2 = compute_level2(canvas, level1, catalog)

    logger.info(f"Suggestions: {len(level1)} level-1, {len(level2)} level-2")
    return SuggestionSet(level1=level1, level2=level2)


def _collect(catalog: EntityCatalog, available: AbstractSet[str],
             level: SuggestionLevel, excluded: AbstractSet[str],
             required: Optional[AbstractSet[str]] = None) -> List[Suggestion]:
    """Build, dedup and sort suggestions for one level."""
    found: List[Suggestion] = []
    seen = set()

    for entity in catalog:
        if entity.key in excluded or not entity.entity_type.derivable:
            continue
        if not entity.fields:
            continue

        resolution = resolve_entity(entity, available)
        if not resolution.resolved:
            continue

        # Level-2 entities must lean on a level-1 entity, not only on the canvas
        if required is not None and not required.intersection(resolution.resolved):
            continue

        if entity.key in seen:
            continue
        seen.add(entity.key)

        suggestion = Suggestion(
            entity_key=entity.key,
            level=level,
            coverage_percent=resolution.coverage_percent,
            matching_entities=list(resolution.resolved),
            missing_entities=[MissingEntity.from_key(key) for key in resolution.missing],
            dependency_map=resolution.dependency_map,
            alias=entity.alias,
            total_fields=len(entity.fields),
            source=catalog.name,
        )
        found.append(suggestion)

        logger.debug(f"[SUGGEST_L{int(level)}] {entity.key}: {suggestion.coverage_percent}% "
                     f"({len(resolution.resolved)}/{resolution.referenced_count} entities)")

    return sort_suggestions(found)


def sort_suggestions(suggestions: Iterable[Suggestion]) -> List[Suggestion]:
    """Total order: coverage descending, then entity key ascending."""
    return sorted(suggestions, key=lambda s: (-s.coverage_percent, s.entity_key))
