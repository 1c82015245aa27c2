"""
Reattach per-field toggle/mode state to regenerated canvas node ids.

Legacy data products key their attribute state by the node ids of the
session that saved them (``node-0``, ``node-1``, ...). Those ids are
reassigned in catalog order on every load, so the saved state must be
re-anchored by signature: the set of field names each old id toggled.

A saved field set matches when it covers every field of the entity; the
largest overlap wins and ties go to the earliest saved id. Adding a field
to an entity invalidates the match and the entity falls back to defaults
rather than inheriting another entity's state. Every entry of a matched
id moves to the new id, including fields the entity no longer has.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set

from ..config import Config
from ..models.dataclasses import AttributeConfiguration, Entity, split_toggle_key
from ..models.enums import AttributeMode


logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """State rekeyed onto new node ids."""
    toggles: Dict[str, bool] = field(default_factory=dict)
    modes: Dict[str, AttributeMode] = field(default_factory=dict)
    node_ids: List[str] = field(default_factory=list)     # New id per loaded entity
    matches: Dict[str, str] = field(default_factory=dict)  # new id -> old id
    dropped_keys: List[str] = field(default_factory=list)  # Saved keys not carried over

    def to_configuration(self, global_mode: AttributeMode = AttributeMode.RUNTIME
                         ) -> AttributeConfiguration:
        return AttributeConfiguration(
            toggles=dict(self.toggles),
            entity_modes=dict(self.modes),
            global_mode=global_mode,
        )


def new_node_id(index: int) -> str:
    return f"{Config.NODE_ID_PREFIX}{index}"


def toggled_field_sets(saved_toggles: Mapping[str, bool]) -> Dict[str, Set[str]]:
    """Field names recorded per old id, in first-seen order of the ids."""
    records: Dict[str, Set[str]] = {}
    for key in saved_toggles:
        old_id, field_name = split_toggle_key(key)
        if not old_id or not field_name:
            continue
        records.setdefault(old_id, set()).add(field_name)
    return records


def reconcile(saved_toggles: Mapping[str, bool],
              saved_modes: Mapping[str, str],
              entities: Sequence[Entity],
              node_ids: Optional[Sequence[str]] = None) -> ReconciliationResult:
    """
    Rekey saved toggles/modes onto the ids assigned to ``entities``.

    Args:
        saved_toggles: ``{"{oldId}_{field}": bool}`` from the saved product
        saved_modes: ``{oldId: mode}`` from the saved product
        entities: Entities being loaded, in load order
        node_ids: New ids per entity (default ``node-{i}``)

    Returns:
        ReconciliationResult; unmatched entities simply get no state
    """
    saved_toggles = saved_toggles or {}
    saved_modes = saved_modes or {}
    if node_ids is None:
        node_ids = [new_node_id(i) for i in range(len(entities))]

    result = ReconciliationResult(node_ids=list(node_ids))
    records = toggled_field_sets(saved_toggles)
    order = {old_id: i for i, old_id in enumerate(records)}
    consumed: Set[str] = set()
    carried: Set[str] = set()  # Saved toggle keys and mode ids that were rekeyed

    for entity, node_id in zip(entities, node_ids):
        entity_fields = set(entity.fields)
        old_id = _best_match(entity_fields, records, order, consumed)
        if old_id is None:
            logger.debug(f"[RECONCILE] {entity.key} -> {node_id}: no saved match, using defaults")
            continue

        consumed.add(old_id)
        result.matches[node_id] = old_id
        logger.debug(f"[RECONCILE] {entity.key}: {old_id} -> {node_id}")

        for old_key, value in saved_toggles.items():
            owner, field_name = split_toggle_key(old_key)
            if owner == old_id and field_name:
                result.toggles[AttributeConfiguration.toggle_key(node_id, field_name)] = bool(value)
                carried.add(old_key)

        if old_id in saved_modes:
            try:
                result.modes[node_id] = AttributeMode(saved_modes[old_id])
                carried.add(old_id)
            except ValueError:
                logger.debug(f"[RECONCILE] {old_id}: unknown mode {saved_modes[old_id]!r}")

    result.dropped_keys = [key for key in saved_toggles if key not in carried]
    result.dropped_keys.extend(key for key in saved_modes if key not in carried)

    if result.dropped_keys:
        logger.info(f"Attribute state: {len(result.matches)} node(s) restored, "
                    f"{len(result.dropped_keys)} saved entries dropped")
    return result


def _best_match(entity_fields: Set[str], records: Dict[str, Set[str]],
                order: Dict[str, int], consumed: Set[str]) -> Optional[str]:
    """Unconsumed old id whose field set covers ``entity_fields``."""
    if not entity_fields:
        return None

    best = None
    best_rank = None
    for old_id, fields in records.items():
        if old_id in consumed or not entity_fields <= fields:
            continue
        rank = (-len(entity_fields & fields), order[old_id])
        if best_rank is None or rank < best_rank:
            best, best_rank = old_id, rank
    return best
