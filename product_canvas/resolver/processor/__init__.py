"""Resolution, reconciliation and materialization of data product entities."""

from .reference_resolver import resolve_entity, resolve_field
from .suggestion_engine import compute_level1, compute_level2, sort_suggestions, suggest
from .reverse_dependency import resolve_reverse_dependencies
from .identity_reconciler import ReconciliationResult, reconcile
from .materializer import (
    CanvasGraph, MaterializationError, build_canvas_graph, materialize_reverse_dependency,
    materialize_suggestion
)
from .product_state import (
    LoadedProduct, apply_attribute_modes, build_persisted_state, load_persisted_state,
    migrate_legacy_state
)
from .catalog_extractor import CatalogExtractionError, CatalogExtractor

__all__ = [
    "resolve_entity",
    "resolve_field",
    "compute_level1",
    "compute_level2",
    "sort_suggestions",
    "suggest",
    "resolve_reverse_dependencies",
    "ReconciliationResult",
    "reconcile",
    "CanvasGraph",
    "MaterializationError",
    "build_canvas_graph",
    "materialize_reverse_dependency",
    "materialize_suggestion",
    "LoadedProduct",
    "apply_attribute_modes",
    "build_persisted_state",
    "load_persisted_state",
    "migrate_legacy_state",
    "CatalogExtractionError",
    "CatalogExtractor",
]
