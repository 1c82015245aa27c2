"""
Excel writer for resolution reports.

Produces Excel workbooks with:
- Suggestions (one row per level-1 / level-2 suggestion)
- Dependencies_exploded (one row per field-level dependency)
- Summary
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from ..config import Config
from ..contracts.validator import get_column_order
from ..models.dataclasses import ReverseDependency, Suggestion, SuggestionSet


logger = logging.getLogger(__name__)


class ExcelWriter:
    """Write suggestion and reverse-dependency results to Excel."""

    def __init__(self, output_dir: Path):
        """
        Initialize the writer.

        Args:
            output_dir: Directory for output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write(self, suggestions: SuggestionSet,
              canvas_keys: Iterable[str],
              reverse_dependencies: Optional[List[ReverseDependency]] = None,
              name: str = "data_product") -> Path:
        """
        Write a resolution report workbook.

        Args:
            suggestions: Suggestion set for the canvas snapshot
            canvas_keys: Entity keys on the canvas
            reverse_dependencies: Optional result for a selected entity
            name: Product name used in the filename

        Returns:
            Path to written file
        """
        canvas = sorted(set(canvas_keys))
        reverse_dependencies = reverse_dependencies or []

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = self.output_dir / f"{name}_{Config.REPORT_PREFIX}_{timestamp}.xlsx"

        suggestion_df = self._build_suggestion_df(suggestions.all())
        dependency_df = self._build_dependency_df(suggestions.all(), reverse_dependencies, canvas)
        summary_df = self._build_summary_df(suggestions, reverse_dependencies, canvas)

        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            suggestion_df.to_excel(writer, sheet_name="Suggestions", index=False)
            dependency_df.to_excel(writer, sheet_name="Dependencies_exploded", index=False)
            summary_df.to_excel(writer, sheet_name="Summary", index=False)

        logger.info(f"Written: {output_path}")
        return output_path

    def _build_suggestion_df(self, suggestions: List[Suggestion]) -> pd.DataFrame:
        """Build the Suggestions DataFrame, level then coverage order."""
        rows = []
        for s in suggestions:
            rows.append({
                "level": int(s.level),
                "entity_key": s.entity_key,
                "alias": s.alias or s.entity_key,
                "entity_type": s.entity_type.value,
                "coverage_percent": s.coverage_percent,
                "matching_entities": ", ".join(s.matching_entities),
                "missing_entities": ", ".join(m.full_key for m in s.missing_entities),
                "total_fields": s.total_fields,
                "referenced_entities": s.referenced_entities_count,
                "connection_count": s.connection_count,
                "source": s.source,
            })

        df = pd.DataFrame(rows, columns=get_column_order("suggestions"))
        if df.empty:
            return df

        df = df.sort_values(
            ["level", "coverage_percent", "entity_key"],
            ascending=[True, False, True],
        )
        return df.reset_index(drop=True)

    def _build_dependency_df(self, suggestions: List[Suggestion],
                            reverse_dependencies: List[ReverseDependency],
                            canvas: List[str]) -> pd.DataFrame:
        """Build the Dependencies_exploded DataFrame."""
        rows = []
        pool = set(canvas) | {s.entity_key for s in suggestions if int(s.level) == 1}

        for s in suggestions:
            available = set(canvas) if int(s.level) == 1 else pool
            for key, details in s.dependency_map.items():
                for d in details:
                    rows.append(self._dependency_row(
                        s.entity_key, f"SUGGESTION_L{int(s.level)}", d, key in available))

        for r in reverse_dependencies:
            for d in r.dependencies:
                rows.append(self._dependency_row(r.required_by, "REQUIRES", d, False))

        df = pd.DataFrame(rows, columns=get_column_order("dependencies"))
        return self._sort_dependencies(df)

    def _sort_dependencies(self, df: pd.DataFrame) -> pd.DataFrame:
        """Deterministic sort: relation, entity, referenced entity, fields."""
        if df.empty:
            return df

        relation_order = {"SUGGESTION_L1": 0, "SUGGESTION_L2": 1, "REQUIRES": 2}

        df = df.copy()
        df["_sort_relation"] = df["relation"].map(relation_order).fillna(99)
        df = df.sort_values([
            "_sort_relation",
            "entity_key",
            "referenced_entity",
            "target_field",
            "source_field",
            "connection_type",
        ])
        df = df.drop(columns=[c for c in df.columns if c.startswith("_sort_")])

        return df.reset_index(drop=True)

    @staticmethod
    def _dependency_row(entity_key: str, relation: str, detail, available: bool) -> dict:
        row = detail.to_dict()
        return {
            "entity_key": entity_key,
            "relation": relation,
            "referenced_entity": detail.referenced_entity,
            "referenced_type": row["dependencyEntityType"],
            "available": "Y" if available else "N",
            "source_field": detail.source_field,
            "target_field": detail.target_field,
            "connection_type": detail.connection_type.value,
            "calculation": detail.calculation or "",
        }

    def _build_summary_df(self, suggestions: SuggestionSet,
                         reverse_dependencies: List[ReverseDependency],
                         canvas: List[str]) -> pd.DataFrame:
        """Build the Summary DataFrame."""
        full = [s for s in suggestions.all() if s.coverage_percent == 100]
        rows = [
            {"metric": "status", "value": suggestions.status.value, "notes": ""},
            {"metric": "canvas_entities", "value": len(canvas), "notes": ", ".join(canvas)},
            {"metric": "level1_suggestions", "value": len(suggestions.level1), "notes": ""},
            {"metric": "level2_suggestions", "value": len(suggestions.level2), "notes": ""},
            {"metric": "fully_covered", "value": len(full),
             "notes": ", ".join(s.entity_key for s in full)},
            {"metric": "required_entities", "value": len(reverse_dependencies),
             "notes": ", ".join(r.entity_key for r in reverse_dependencies)},
        ]
        return pd.DataFrame(rows, columns=get_column_order("summary"))
