"""
Test suite for catalog and canvas data models.

Run with:
    python -m pytest product_canvas/resolver/tests/test_models.py -v
"""

import pytest

from product_canvas.resolver.models import (
    AttributeConfiguration, AttributeMode, Entity, EntityCatalog, EntityResolution,
    EntityType, FieldDef, FieldRef, MissingEntity, split_toggle_key
)


def test_field_ref_parse():
    """Split on the first dot only; missing halves are rejected."""
    ref = FieldRef.parse("BASE_Customers.id")
    assert ref == FieldRef("BASE_Customers", "id")
    assert str(ref) == "BASE_Customers.id"

    nested = FieldRef.parse("BASE_Raw.payload.amount")
    assert nested.entity_key == "BASE_Raw"
    assert nested.field_name == "payload.amount", "Only the first '.' separates"

    for bad in ("no_separator", ".id", "BASE_Customers.", "", None):
        assert FieldRef.parse(bad) is None, f"{bad!r} should not parse"


def test_entity_type_from_key():
    """Key prefixes map to entity types; unknown prefixes default to BASE."""
    assert EntityType.split_key("CTE_Orders") == (EntityType.CTE, "Orders")
    assert EntityType.split_key("VIEW_Order_Summary") == (EntityType.VIEW, "Order_Summary")
    assert EntityType.split_key("BASE_Customers") == (EntityType.BASE, "Customers")
    assert EntityType.from_key("Customers") is EntityType.BASE
    assert EntityType.CTE.key_for("Orders") == "CTE_Orders"
    assert EntityType.VIEW.derivable and EntityType.CTE.derivable
    assert not EntityType.BASE.derivable


def test_field_def_iter_refs():
    """Direct refs come first, then calculation inputs."""
    field_def = FieldDef.from_dict("total", {
        "ref": ["CTE_Orders.amount"],
        "calculation": {"ref": ["BASE_Fx.rate"], "expression": "amount * rate"},
    })

    refs = [(ref, conn.value) for ref, conn in field_def.iter_refs()]
    assert refs == [("CTE_Orders.amount", "ref"), ("BASE_Fx.rate", "calculation")]
    assert field_def.to_dict()["calculation"]["expression"] == "amount * rate"


def test_catalog_combine_keeps_first_definition():
    """A key defined in several catalogs keeps the first definition."""
    first = EntityCatalog.from_dict({
        "metadata": {"name": "Sales"},
        "entities": {"CTE_Orders": {"alias": "Orders v1", "fields": {"id": {}}}},
    })
    second = EntityCatalog.from_dict({
        "metadata": {"name": "Finance"},
        "entities": {
            "CTE_Orders": {"alias": "Orders v2", "fields": {"id": {}, "amount": {}}},
            "VIEW_Revenue": {"fields": {"amount": {"ref": ["CTE_Orders.amount"]}}},
        },
    })

    combined = EntityCatalog.combine([first, second])

    assert combined.keys() == ["CTE_Orders", "VIEW_Revenue"]
    assert combined.get("CTE_Orders").alias == "Orders v1"
    assert combined.name == "Sales + Finance"


def test_catalog_default_name():
    assert EntityCatalog().name == "Data Product"


def test_missing_entity_from_key():
    missing = MissingEntity.from_key("BASE_Products")
    assert missing.to_dict() == {"fullKey": "BASE_Products", "name": "Products", "type": "BASE"}


@pytest.mark.parametrize("resolved,missing,expected", [
    (1, 1, 50),
    (1, 2, 33),
    (2, 1, 67),
    (1, 7, 13),    # 12.5 rounds half up
    (3, 0, 100),
    (0, 2, 0),
])
def test_coverage_percent(resolved, missing, expected):
    """Coverage counts distinct referenced entities."""
    resolution = EntityResolution(
        entity_key="CTE_X",
        resolved=[f"BASE_R{i}" for i in range(resolved)],
        missing=[f"BASE_M{i}" for i in range(missing)],
    )
    assert resolution.coverage_percent == expected


def test_coverage_stays_below_100_while_missing():
    """Rounding never reports full coverage while something is missing."""
    almost = EntityResolution("CTE_X", resolved=[f"BASE_R{i}" for i in range(399)],
                              missing=["BASE_M"])
    assert almost.coverage_percent == 99

    barely = EntityResolution("CTE_X", resolved=["BASE_R"],
                              missing=[f"BASE_M{i}" for i in range(400)])
    assert barely.coverage_percent == 1


def test_attribute_configuration_is_immutable():
    """Every operation returns a new configuration."""
    config = AttributeConfiguration()
    toggled = config.toggle_field("node-0", "email")

    assert config.toggles == {}, "Original configuration must not change"
    assert toggled.is_toggled("node-0", "email")

    with pytest.raises(AttributeError):
        toggled.global_mode = AttributeMode.LOADTIME


def test_toggle_flips_effective_mode():
    """A toggled field uses the opposite of its entity's mode."""
    config = AttributeConfiguration().set_entity_mode("node-1", AttributeMode.LOADTIME)
    config = config.toggle_field("node-1", "total")

    assert config.effective_mode("node-1", "total") is AttributeMode.RUNTIME
    assert config.effective_mode("node-1", "sku") is AttributeMode.LOADTIME
    assert config.effective_mode("node-2", "sku") is AttributeMode.RUNTIME, \
        "Entities without a mode use the global default"

    untoggled = config.toggle_field("node-1", "total")
    assert untoggled.toggles == {"node-1_total": False}
    assert untoggled.effective_mode("node-1", "total") is AttributeMode.LOADTIME


def test_global_mode_applies_to_unset_entities():
    config = AttributeConfiguration().set_global_mode(AttributeMode.LOADTIME)
    assert config.entity_mode("node-5") is AttributeMode.LOADTIME
    assert config.effective_mode("node-5", "id") is AttributeMode.LOADTIME


def test_rekey_and_drop_node():
    """Rekey moves state to new ids and drops unmapped entries."""
    config = AttributeConfiguration(
        toggles={"node-0_email": True, "node-0_first_name": True, "node-1_id": True},
        entity_modes={"node-0": AttributeMode.LOADTIME, "node-1": AttributeMode.RUNTIME},
    )

    rekeyed = config.rekey({"node-0": "abc"})
    assert rekeyed.toggles == {"abc_email": True, "abc_first_name": True}
    assert rekeyed.entity_modes == {"abc": AttributeMode.LOADTIME}

    dropped = config.drop_node("node-0")
    assert dropped.toggles == {"node-1_id": True}
    assert config.node_toggles("node-0") == {"email": True, "first_name": True}


def test_split_toggle_key():
    """Only the first underscore separates node id from field name."""
    assert split_toggle_key("node-3_first_name") == ("node-3", "first_name")


def test_entity_round_trip_shape():
    entity = Entity.from_dict("CTE_Orders", {"alias": "Orders", "fields": {"id": None}})
    assert entity.field_names == ["id"]
    assert entity.to_dict() == {"alias": "Orders", "fields": {"id": {}}}
