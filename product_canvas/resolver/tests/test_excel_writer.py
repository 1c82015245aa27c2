"""
Test suite for the Excel resolution report.

Run with:
    python -m pytest product_canvas/resolver/tests/test_excel_writer.py -v
"""

import json
from pathlib import Path

import pandas as pd
import pytest

from product_canvas.resolver.contracts.validator import get_column_order
from product_canvas.resolver.models import EntityCatalog, SuggestionSet
from product_canvas.resolver.output import ExcelWriter
from product_canvas.resolver.processor import resolve_reverse_dependencies, suggest


FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def catalog() -> EntityCatalog:
    with open(FIXTURES / "orders_catalog.json", encoding="utf-8") as f:
        return EntityCatalog.from_dict(json.load(f))


def test_write_report(tmp_path, catalog):
    """The workbook has one sheet per report section in contract order."""
    canvas = ["BASE_Customers"]
    suggestions = suggest(canvas, catalog)
    reverse = resolve_reverse_dependencies("CTE_Orders", catalog, canvas)

    path = ExcelWriter(tmp_path / "reports").write(suggestions, canvas, reverse, name="orders")

    assert path.exists()
    assert path.name.startswith("orders_DataProduct_Resolution_")
    assert path.suffix == ".xlsx"

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["Suggestions", "Dependencies_exploded", "Summary"]

    suggestions_df = sheets["Suggestions"]
    assert list(suggestions_df.columns) == get_column_order("suggestions")
    assert suggestions_df["entity_key"].tolist() == ["CTE_Orders", "VIEW_OrderSummary"]
    assert suggestions_df["coverage_percent"].tolist() == [50, 100]
    assert suggestions_df["missing_entities"].iloc[0] == "BASE_Products"


def test_dependency_rows(tmp_path, catalog):
    """One row per field-level dependency, availability from the canvas."""
    canvas = ["BASE_Customers"]
    suggestions = suggest(canvas, catalog)
    reverse = resolve_reverse_dependencies("CTE_Orders", catalog, canvas)

    df = ExcelWriter(tmp_path)._build_dependency_df(suggestions.all(), reverse, canvas)

    assert list(df.columns) == get_column_order("dependencies")
    assert df["relation"].tolist() == [
        "SUGGESTION_L1", "SUGGESTION_L1", "SUGGESTION_L1", "SUGGESTION_L2", "REQUIRES", "REQUIRES",
    ]

    l1 = df[df["relation"] == "SUGGESTION_L1"]
    available = dict(zip(l1["source_field"], l1["available"]))
    assert available == {"id": "Y", "sku": "N", "price": "N"}

    l2 = df[df["relation"] == "SUGGESTION_L2"].iloc[0]
    assert l2["referenced_entity"] == "CTE_Orders"
    assert l2["available"] == "Y", "Level-1 entities count as available for level 2"

    calc = df[df["source_field"] == "price"].iloc[0]
    assert calc["connection_type"] == "calculation"
    assert calc["calculation"] == "SUM(price)"


def test_summary(tmp_path, catalog):
    suggestions = suggest(["BASE_Customers"], catalog)

    df = ExcelWriter(tmp_path)._build_summary_df(suggestions, [], ["BASE_Customers"])

    values = dict(zip(df["metric"], df["value"]))
    assert values["status"] == "OK"
    assert values["level1_suggestions"] == 1
    assert values["level2_suggestions"] == 1
    assert values["fully_covered"] == 1


def test_empty_report(tmp_path):
    """Empty inputs still produce a workbook with headers only."""
    path = ExcelWriter(tmp_path).write(SuggestionSet(), [], name="empty")

    sheets = pd.read_excel(path, sheet_name=None)
    assert sheets["Suggestions"].empty
    assert list(sheets["Dependencies_exploded"].columns) == get_column_order("dependencies")
