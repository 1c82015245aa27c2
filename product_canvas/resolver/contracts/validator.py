"""
Validate catalog and product-state JSON against the exchange contract.

This ensures any input (catalog export, saved data product) conforms to
the expected shape before the resolution engine sees it. It is the only
place where malformed input fails loudly.
"""

from pathlib import Path
from typing import Any, List, Mapping, Union
import json

from ..models.enums import ENTITY_PREFIX


class ValidationError(Exception):
    """Raised when input doesn't conform to the catalog contract."""
    pass


VALID_CONNECTION_TYPES = {"ref", "calculation"}
VALID_ATTRIBUTE_MODES = {"runtime", "loadtime"}


def validate_input(path: Path) -> bool:
    """
    Validate a JSON catalog file.

    Args:
        path: Path to catalog JSON

    Raises:
        ValidationError: If the file is missing or invalid

    Returns:
        True if valid
    """
    return validate_catalog(_read_json(path))


def validate_catalog(data: Any) -> bool:
    """
    Validate a catalog dictionary.

    Args:
        data: Parsed catalog JSON

    Raises:
        ValidationError: With every problem found, one per line

    Returns:
        True if valid
    """
    errors: List[str] = []

    if not isinstance(data, Mapping):
        raise ValidationError("Catalog must be a JSON object")

    if "entities" not in data:
        raise ValidationError("Catalog missing 'entities' key")

    if "metadata" in data and not isinstance(data["metadata"], Mapping):
        errors.append("$.metadata: expected an object")

    errors.extend(_entity_errors(data["entities"], "$.entities"))

    if errors:
        raise ValidationError("Catalog validation failed:\n" + "\n".join(errors))
    return True


def validate_product_state(data: Any) -> bool:
    """
    Validate a persisted data product.

    Raises:
        ValidationError: If the state doesn't conform to the contract

    Returns:
        True if valid
    """
    errors: List[str] = []

    if not isinstance(data, Mapping):
        raise ValidationError("Data product must be a JSON object")

    errors.extend(_entity_errors(data.get("entities", {}), "$.entities"))

    relationships = data.get("relationships", [])
    if not isinstance(relationships, list):
        errors.append("$.relationships: expected a list")
        relationships = []

    for i, rel in enumerate(relationships):
        path = f"$.relationships[{i}]"
        if not isinstance(rel, Mapping):
            errors.append(f"{path}: expected an object")
            continue
        for end in ("from", "to"):
            endpoint = rel.get(end)
            if not isinstance(endpoint, Mapping):
                errors.append(f"{path}.{end}: expected an object")
                continue
            for key in ("entity", "field"):
                if not isinstance(endpoint.get(key), str) or not endpoint.get(key):
                    errors.append(f"{path}.{end}.{key}: expected a non-empty string")
        rel_type = rel.get("type", "ref")
        if rel_type not in VALID_CONNECTION_TYPES:
            errors.append(f"{path}.type: invalid value {rel_type!r}")

    toggles = data.get("attributeToggles", {})
    if not isinstance(toggles, Mapping):
        errors.append("$.attributeToggles: expected an object")
    else:
        for key, value in toggles.items():
            if not isinstance(value, bool):
                errors.append(f"$.attributeToggles.{key}: expected a boolean")

    modes = data.get("entityAttributeModes", {})
    if not isinstance(modes, Mapping):
        errors.append("$.entityAttributeModes: expected an object")
    else:
        for key, value in modes.items():
            if value not in VALID_ATTRIBUTE_MODES:
                errors.append(f"$.entityAttributeModes.{key}: invalid mode {value!r}")

    global_mode = data.get("globalAttributeMode")
    if global_mode is not None and global_mode not in VALID_ATTRIBUTE_MODES:
        errors.append(f"$.globalAttributeMode: invalid mode {global_mode!r}")

    entity_ids = data.get("entityIds")
    if entity_ids is not None and not isinstance(entity_ids, Mapping):
        errors.append("$.entityIds: expected an object")

    if errors:
        raise ValidationError("Data product validation failed:\n" + "\n".join(errors))
    return True


def _entity_errors(entities: Any, root: str) -> List[str]:
    """Collect shape errors for an ``entities`` mapping."""
    errors = []

    if not isinstance(entities, Mapping):
        return [f"{root}: expected an object"]

    for key, entity in entities.items():
        path = f"{root}.{key}"
        if not ENTITY_PREFIX.match(key):
            errors.append(f"{path}: key must start with BASE_, CTE_ or VIEW_")
        if not isinstance(entity, Mapping):
            errors.append(f"{path}: expected an object")
            continue

        fields = entity.get("fields", {})
        if not isinstance(fields, Mapping):
            errors.append(f"{path}.fields: expected an object")
            continue

        for field_name, field_data in fields.items():
            errors.extend(_field_errors(field_data, f"{path}.fields.{field_name}"))

    return errors


def _field_errors(field_data: Any, path: str) -> List[str]:
    """Collect shape errors for a single field definition."""
    if field_data is None:
        return []
    if not isinstance(field_data, Mapping):
        return [f"{path}: expected an object"]

    errors = []

    if "ref" in field_data:
        errors.extend(_ref_list_errors(field_data["ref"], f"{path}.ref"))

    calculation = field_data.get("calculation")
    if calculation is not None:
        if not isinstance(calculation, Mapping):
            errors.append(f"{path}.calculation: expected an object")
        else:
            if "ref" in calculation:
                errors.extend(_ref_list_errors(calculation["ref"], f"{path}.calculation.ref"))
            expression = calculation.get("expression", "")
            if expression is not None and not isinstance(expression, str):
                errors.append(f"{path}.calculation.expression: expected a string")

    return errors


def _ref_list_errors(refs: Any, path: str) -> List[str]:
    # Strings without a '.' are accepted here; the resolver skips them
    if refs is None:
        return []
    if not isinstance(refs, list):
        return [f"{path}: expected a list"]
    return [
        f"{path}[{i}]: expected a string"
        for i, ref in enumerate(refs) if not isinstance(ref, str)
    ]


def _read_json(path: Union[str, Path]) -> Any:
    """Read a JSON file or raise ValidationError."""
    path = Path(path)

    if not path.exists():
        raise ValidationError(f"Input file not found: {path}")

    if path.suffix.lower() != ".json":
        raise ValidationError(f"Unsupported file format: {path.suffix}")

    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except Exception as e:
        raise ValidationError(f"Cannot read JSON: {e}")


# Report sheet contracts
SUGGESTION_COLUMNS = [
    "level",
    "entity_key",
    "alias",
    "entity_type",
    "coverage_percent",
    "matching_entities",
    "missing_entities",
    "total_fields",
    "referenced_entities",
    "connection_count",
    "source",
]

DEPENDENCY_COLUMNS = [
    "entity_key",
    "relation",
    "referenced_entity",
    "referenced_type",
    "available",
    "source_field",
    "target_field",
    "connection_type",
    "calculation",
]

SUMMARY_COLUMNS = ["metric", "value", "notes"]


def get_column_order(sheet: str) -> list:
    """Get the standard column order for a report sheet."""
    orders = {
        "suggestions": SUGGESTION_COLUMNS,
        "dependencies": DEPENDENCY_COLUMNS,
        "summary": SUMMARY_COLUMNS,
    }
    if sheet not in orders:
        raise ValueError(f"Unknown report sheet: {sheet}")
    return list(orders[sheet])
