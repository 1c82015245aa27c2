"""
Classify field references as resolved or missing against a candidate set.

Every reference is recorded as a DependencyDetail, whether or not its
entity is available, so callers can materialize edges later.
"""

import logging
from typing import AbstractSet, Iterable, Optional

from ..models.dataclasses import (
    DependencyDetail, Entity, EntityResolution, FieldDef, FieldRef, FieldResolution
)
from ..models.enums import ConnectionType


logger = logging.getLogger(__name__)


def resolve_field(field_def: FieldDef, candidate_keys: AbstractSet[str]) -> FieldResolution:
    """
    Resolve the ``ref`` and ``calculation.ref`` entries of one field.

    Args:
        field_def: Field whose references are classified
        candidate_keys: Entity keys considered available

    Returns:
        FieldResolution with resolved/missing entity keys and details
    """
    result = FieldResolution()
    expression = field_def.calculation.expression if field_def.calculation else None

    for raw_ref, connection_type in field_def.iter_refs():
        ref = FieldRef.parse(raw_ref)
        if ref is None:
            logger.debug(f"[REF_SKIP] {field_def.name}: malformed reference {raw_ref!r}")
            result.skipped.append(raw_ref)
            continue

        if ref.entity_key in candidate_keys:
            result.resolved.add(ref.entity_key)
        else:
            result.missing.add(ref.entity_key)

        result.details.append(DependencyDetail(
            referenced_entity=ref.entity_key,
            source_field=ref.field_name,
            target_field=field_def.name,
            connection_type=connection_type,
            calculation=expression if connection_type is ConnectionType.CALCULATION else None,
        ))

    return result


def resolve_entity(entity: Entity, candidate_keys: AbstractSet[str],
                   exclude: Optional[Iterable[str]] = None) -> EntityResolution:
    """
    Resolve every field of an entity and group the details per referenced entity.

    Args:
        entity: Entity to resolve
        candidate_keys: Entity keys considered available
        exclude: Entity keys to ignore entirely (e.g. self references)

    Returns:
        EntityResolution with first-seen ordering of referenced entities
    """
    excluded = set(exclude or ())
    result = EntityResolution(entity_key=entity.key)

    for field_def in entity.fields.values():
        field_result = resolve_field(field_def, candidate_keys)
        result.skipped.extend(field_result.skipped)

        for detail in field_result.details:
            key = detail.referenced_entity
            if key in excluded:
                continue

            result.dependency_map.setdefault(key, []).append(detail)

            if key in field_result.resolved:
                if key not in result.resolved:
                    result.resolved.append(key)
            elif key not in result.missing:
                result.missing.append(key)

    if result.skipped:
        logger.debug(f"[REF_SKIP] {entity.key}: {len(result.skipped)} malformed reference(s)")

    return result
