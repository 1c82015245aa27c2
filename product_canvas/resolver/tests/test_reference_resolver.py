"""
Test suite for reference resolution.

Run with:
    python -m pytest product_canvas/resolver/tests/test_reference_resolver.py -v
"""

from product_canvas.resolver.models import ConnectionType, Entity, FieldDef
from product_canvas.resolver.processor import resolve_entity, resolve_field


def _entity(key, fields):
    return Entity.from_dict(key, {"fields": fields})


def test_resolve_field_classifies_refs():
    """Refs are resolved or missing depending on the candidate set."""
    field_def = FieldDef.from_dict("total", {
        "ref": ["CTE_Orders.amount"],
        "calculation": {"ref": ["BASE_Fx.rate", "CTE_Orders.qty"], "expression": "amount * rate"},
    })

    result = resolve_field(field_def, {"CTE_Orders"})

    assert result.resolved == {"CTE_Orders"}
    assert result.missing == {"BASE_Fx"}
    assert len(result.details) == 3, "Every ref produces a detail"

    direct, rate, qty = result.details
    assert direct.connection_type is ConnectionType.REF
    assert direct.calculation is None, "Direct refs carry no expression"
    assert rate.connection_type is ConnectionType.CALCULATION
    assert rate.calculation == "amount * rate"
    assert (rate.referenced_entity, rate.source_field, rate.target_field) == \
        ("BASE_Fx", "rate", "total")
    assert qty.source_field == "qty"


def test_resolve_field_skips_malformed_refs():
    """Refs without an entity/field separator are skipped, not raised."""
    field_def = FieldDef.from_dict("id", {"ref": ["customer_id", "BASE_Customers.id", ".x"]})

    result = resolve_field(field_def, set())

    assert result.skipped == ["customer_id", ".x"]
    assert result.missing == {"BASE_Customers"}
    assert len(result.details) == 1


def test_resolve_entity_groups_by_referenced_entity():
    """Details are grouped per entity in first-seen order."""
    entity = _entity("VIEW_Report", {
        "customer": {"ref": ["BASE_Customers.name"]},
        "product": {"ref": ["BASE_Products.sku"]},
        "email": {"ref": ["BASE_Customers.email"]},
    })

    result = resolve_entity(entity, {"BASE_Products"})

    assert result.resolved == ["BASE_Products"]
    assert result.missing == ["BASE_Customers"]
    assert list(result.dependency_map) == ["BASE_Customers", "BASE_Products"]
    assert [d.target_field for d in result.dependency_map["BASE_Customers"]] == \
        ["customer", "email"]
    assert result.referenced_count == 2
    assert result.coverage_percent == 50


def test_resolve_entity_exclude():
    """Excluded keys never appear in the result."""
    entity = _entity("CTE_Tree", {
        "parent_id": {"ref": ["CTE_Tree.id"]},
        "id": {"ref": ["BASE_Nodes.id"]},
    })

    result = resolve_entity(entity, set(), exclude=["CTE_Tree"])

    assert result.missing == ["BASE_Nodes"]
    assert "CTE_Tree" not in result.dependency_map


def test_resolve_entity_without_refs():
    entity = _entity("BASE_Customers", {"id": {}, "email": {}})
    result = resolve_entity(entity, {"BASE_Products"})

    assert result.resolved == [] and result.missing == []
    assert result.coverage_percent == 0


def test_resolve_entity_does_not_mutate_input():
    entity = _entity("CTE_Orders", {"customer_id": {"ref": ["BASE_Customers.id"]}})
    before = entity.to_dict()
    candidates = {"BASE_Customers"}

    resolve_entity(entity, candidates)

    assert entity.to_dict() == before
    assert candidates == {"BASE_Customers"}
