"""
Test suite for catalog validation and loading.

Run with:
    python -m pytest product_canvas/resolver/tests/test_loader.py -v
"""

import json
from pathlib import Path

import pytest

from product_canvas.resolver.contracts import (
    ValidationError, validate_catalog, validate_input, validate_product_state
)
from product_canvas.resolver.contracts.validator import get_column_order
from product_canvas.resolver.loader import (
    CatalogLoadError, CatalogLoader, SQLFileLoader, load_product, save_json
)


FIXTURES = Path(__file__).parent / "fixtures"


def test_valid_catalog_file():
    assert validate_input(FIXTURES / "orders_catalog.json")


def test_invalid_catalog_lists_every_problem():
    """All shape errors are reported with their JSON path."""
    with pytest.raises(ValidationError) as excinfo:
        validate_input(FIXTURES / "invalid_catalog.json")

    message = str(excinfo.value)
    assert "$.entities.Orders: key must start with BASE_, CTE_ or VIEW_" in message
    assert "$.entities.Orders.fields.total.ref: expected a list" in message
    assert "$.entities.CTE_Items.fields.qty.calculation.ref[0]: expected a string" in message


def test_catalog_requires_entities():
    with pytest.raises(ValidationError, match="missing 'entities'"):
        validate_catalog({"metadata": {"name": "x"}})
    with pytest.raises(ValidationError, match="JSON object"):
        validate_catalog([])


def test_malformed_ref_strings_are_accepted():
    """Refs without a separator pass validation; resolution skips them."""
    assert validate_catalog({"entities": {"CTE_A": {"fields": {"x": {"ref": ["nodot"]}}}}})


def test_validate_input_rejects_other_formats(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("entities: {}", encoding="utf-8")

    with pytest.raises(ValidationError, match="Unsupported file format"):
        validate_input(path)
    with pytest.raises(ValidationError, match="not found"):
        validate_input(tmp_path / "missing.json")


def test_product_state_validation():
    state = {
        "entities": {"BASE_A": {"fields": {"x": {}}}},
        "relationships": [{"from": {"entity": "BASE_A"}, "to": {"entity": "BASE_B", "field": "y"},
                           "type": "join"}],
        "attributeToggles": {"node-0_x": "yes"},
        "entityAttributeModes": {"node-0": "sometimes"},
        "globalAttributeMode": "runtime",
    }

    with pytest.raises(ValidationError) as excinfo:
        validate_product_state(state)

    message = str(excinfo.value)
    assert "$.relationships[0].from.field" in message
    assert "$.relationships[0].type: invalid value 'join'" in message
    assert "$.attributeToggles.node-0_x: expected a boolean" in message
    assert "$.entityAttributeModes.node-0: invalid mode 'sometimes'" in message


def test_load_file_uses_metadata_name():
    loader = CatalogLoader()
    catalog = loader.load_file(FIXTURES / "orders_catalog.json")

    assert catalog.name == "Orders"
    assert len(catalog) == 4
    assert catalog.get("CTE_Orders").fields["total"].calculation.expression == "SUM(price)"
    assert loader.catalogs == [catalog]


def test_load_files_combines(tmp_path):
    """First definition of a duplicated key wins; names default to the file stem."""
    extra = {
        "entities": {
            "CTE_Orders": {"fields": {"other": {}}},
            "VIEW_Returns": {"fields": {"sku": {"ref": ["BASE_Products.sku"]}}},
        }
    }
    save_json(extra, tmp_path / "returns.json")

    catalog = CatalogLoader().load_files([FIXTURES / "orders_catalog.json", tmp_path / "returns.json"])

    assert catalog.keys()[-1] == "VIEW_Returns"
    assert list(catalog.get("CTE_Orders").fields) == ["customer_id", "sku", "total"]
    assert catalog.name == "Orders + returns"


def test_load_directory(tmp_path):
    save_json({"entities": {"BASE_B": {"fields": {}}}}, tmp_path / "b.json")
    save_json({"entities": {"BASE_A": {"fields": {}}}}, tmp_path / "a.json")

    catalog = CatalogLoader().load_directory(tmp_path)

    assert catalog.keys() == ["BASE_A", "BASE_B"]
    with pytest.raises(CatalogLoadError, match="Not a directory"):
        CatalogLoader().load_directory(tmp_path / "a.json")


def test_load_errors_are_wrapped(tmp_path):
    """Unreadable or invalid files raise CatalogLoadError."""
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(CatalogLoadError, match="Cannot read JSON"):
        CatalogLoader().load_file(broken)
    with pytest.raises(CatalogLoadError, match="invalid_catalog.json"):
        CatalogLoader().load_file(FIXTURES / "invalid_catalog.json")
    with pytest.raises(CatalogLoadError, match="File not found"):
        load_product(tmp_path / "nothing.json")


def test_load_product():
    state = load_product(FIXTURES / "legacy_product.json")
    assert state["metadata"]["name"] == "orders_product"


def test_sql_file_loader(tmp_path):
    (tmp_path / "b_orders.sql").write_text("SELECT 1 FROM DUAL", encoding="utf-8")
    (tmp_path / "a_items.SQL").write_text("SELECT 2 FROM DUAL", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    loader = SQLFileLoader()
    files = loader.load_directory(tmp_path)

    assert files == [("a_items", "SELECT 2 FROM DUAL"), ("b_orders", "SELECT 1 FROM DUAL")]
    assert len(loader.files) == 2


def test_normalize_sql_drops_client_directives():
    """Client directives go; UPDATE ... SET lines and comments stay."""
    script = "\n".join([
        "SET DEFINE OFF",
        "PROMPT creating view",
        "-- keep me",
        "CREATE VIEW V AS SELECT A FROM T",
        "/",
        "UPDATE T",
        "SET A = 1;",
        "EXIT",
    ])

    normalized = SQLFileLoader.normalize_sql(script)

    assert normalized.splitlines() == [
        "-- keep me",
        "CREATE VIEW V AS SELECT A FROM T;",
        "UPDATE T",
        "SET A = 1;",
    ]


def test_column_orders():
    assert get_column_order("summary") == ["metric", "value", "notes"]
    assert get_column_order("suggestions")[0] == "level"
    with pytest.raises(ValueError):
        get_column_order("lineage")
