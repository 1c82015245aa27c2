"""
Load entity catalogs and saved data products from JSON files.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from ..contracts.validator import ValidationError, validate_catalog, validate_product_state
from ..models.dataclasses import EntityCatalog


logger = logging.getLogger(__name__)


class CatalogLoadError(Exception):
    """Raised when a catalog or data product file cannot be loaded."""
    pass


class CatalogLoader:
    """Load and validate catalog JSON files."""

    def __init__(self):
        self.catalogs: List[EntityCatalog] = []

    def load_file(self, path: Union[str, Path]) -> EntityCatalog:
        """
        Load a single catalog file.

        Args:
            path: Path to catalog JSON

        Returns:
            EntityCatalog named after ``metadata.name`` or the file stem

        Raises:
            CatalogLoadError: If the file is unreadable or fails validation
        """
        path = Path(path)
        data = read_json(path)

        try:
            validate_catalog(data)
        except ValidationError as e:
            raise CatalogLoadError(f"{path.name}: {e}")

        catalog = EntityCatalog.from_dict(data)
        catalog.metadata.setdefault("name", path.stem)
        self.catalogs.append(catalog)

        logger.info(f"Loaded catalog {catalog.name}: {len(catalog)} entities")
        return catalog

    def load_files(self, paths: Iterable[Union[str, Path]]) -> EntityCatalog:
        """Load several catalogs and combine them (first definition of a key wins)."""
        loaded = [self.load_file(p) for p in paths]
        combined = EntityCatalog.combine(loaded)
        if len(loaded) > 1:
            logger.info(f"Combined {len(loaded)} catalogs into {len(combined)} entities")
        return combined

    def load_directory(self, dir_path: Union[str, Path], pattern: str = "*.json") -> EntityCatalog:
        """
        Load every catalog in a directory, in file name order.

        Raises:
            CatalogLoadError: If the path is not a directory
        """
        dir_path = Path(dir_path)

        if not dir_path.is_dir():
            raise CatalogLoadError(f"Not a directory: {dir_path}")

        paths = sorted(p for p in dir_path.glob(pattern) if p.is_file())
        logger.info(f"Found {len(paths)} catalog file(s) in {dir_path}")
        return self.load_files(paths)


def load_product(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and validate a saved data product.

    Raises:
        CatalogLoadError: If the file is unreadable or fails validation
    """
    path = Path(path)
    data = read_json(path)

    try:
        validate_product_state(data)
    except ValidationError as e:
        raise CatalogLoadError(f"{path.name}: {e}")

    return data


def save_json(data: Any, path: Union[str, Path]) -> Path:
    """Write JSON with stable formatting."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Written: {path}")
    return path


def read_json(path: Path) -> Any:
    if not path.exists():
        raise CatalogLoadError(f"File not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"Cannot read JSON {path}: {e}")
