"""Loaders for input files."""

from .catalog_loader import CatalogLoadError, CatalogLoader, load_product, save_json
from .sql_file_loader import SQLFileLoader

__all__ = ["CatalogLoadError", "CatalogLoader", "load_product", "save_json", "SQLFileLoader"]
