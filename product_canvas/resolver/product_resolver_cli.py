#!/usr/bin/env python
"""
Data Product Resolver - suggest derivable entities for a data product canvas.

Usage:
    # Suggestions for entities already on the canvas
    product-resolver --catalog catalog.json --canvas BASE_Customers,BASE_Orders

    # Suggestions for a saved data product, with Excel report
    product-resolver --catalog catalog.json --product my_product.json --output output/

    # Catalog extracted from SQL, reverse dependencies of one entity
    product-resolver --sql views.sql --canvas BASE_Orders --select VIEW_Report --json

    # Rewrite a legacy data product with stable entity ids
    product-resolver --catalog catalog.json --product old.json --save product.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config
from .contracts.validator import ValidationError
from .loader import CatalogLoadError, CatalogLoader, SQLFileLoader, load_product, save_json
from .models.dataclasses import AttributeConfiguration, EntityCatalog
from .output import ExcelWriter
from .processor import (
    CatalogExtractionError, CatalogExtractor, MaterializationError, build_canvas_graph,
    build_persisted_state, load_persisted_state, resolve_reverse_dependencies, suggest
)


logger = logging.getLogger(__name__)


def setup_logging(level: str, output_dir: Optional[Path] = None) -> None:
    """Configure logging."""
    log_levels = {
        'normal': logging.WARNING,
        'verbose': logging.INFO,
        'debug': logging.DEBUG,
    }

    handlers: List[logging.Handler] = []

    # File handler only when a report directory is given
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            output_dir / Config.LOG_FILE,
            mode='w',
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
        ))
        handlers.append(file_handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_levels.get(level, logging.WARNING))
    console_handler.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
    handlers.append(console_handler)

    logging.basicConfig(
        level=min(log_levels.values()),
        handlers=handlers,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='product-resolver',
        description='Data Product Resolver - suggest entities derivable from a canvas',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    # Catalog source (one required)
    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument('--catalog', type=Path, action='append',
                              help='Catalog JSON file (repeatable; first definition wins)')
    source_group.add_argument('--sql', type=Path,
                              help='SQL file or directory to extract the catalog from')

    # Canvas
    canvas_group = parser.add_mutually_exclusive_group()
    canvas_group.add_argument('--canvas', type=str,
                              help='Comma separated entity keys on the canvas')
    canvas_group.add_argument('--product', type=Path,
                              help='Saved data product JSON')

    parser.add_argument('--select', type=str,
                        help='Entity key to list missing dependencies for')

    # Output
    parser.add_argument('--output', type=Path,
                        help='Write an Excel report to this directory')
    parser.add_argument('--json', action='store_true',
                        help='Print results as JSON')
    parser.add_argument('--save', type=Path,
                        help='Write the canvas as a data product JSON (stable entity ids)')

    parser.add_argument('--dialect', type=str, default=Config.DEFAULT_DIALECT,
                        choices=Config.SUPPORTED_DIALECTS,
                        help=f'SQL dialect (default: {Config.DEFAULT_DIALECT})')

    # Logging
    log_group = parser.add_mutually_exclusive_group()
    log_group.add_argument('--verbose', action='store_true', help='Verbose output')
    log_group.add_argument('--debug', action='store_true', help='Debug output')

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    return parser


def load_catalog(args: argparse.Namespace) -> EntityCatalog:
    """Load catalog JSON files or extract a catalog from SQL."""
    if args.catalog:
        return CatalogLoader().load_files(args.catalog)

    sql_loader = SQLFileLoader()
    if args.sql.is_dir():
        sql_files = sql_loader.load_directory(args.sql)
    else:
        sql_files = [sql_loader.load_file(args.sql)]

    extractor = CatalogExtractor(dialect=args.dialect)
    return EntityCatalog.combine(extractor.extract(sql, name) for name, sql in sql_files)


def canvas_from_args(args: argparse.Namespace, catalog: EntityCatalog):
    """Return (canvas graph, attribute configuration, product name)."""
    if args.product:
        loaded = load_persisted_state(load_product(args.product))
        name = loaded.metadata.get('name') or args.product.stem
        return loaded.graph, loaded.configuration, name

    keys = []
    if args.canvas:
        keys = [key.strip() for key in args.canvas.split(',') if key.strip()]
    return build_canvas_graph(keys, catalog), AttributeConfiguration(), 'data_product'


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    log_level = 'normal'
    if args.debug:
        log_level = 'debug'
    elif args.verbose:
        log_level = 'verbose'

    setup_logging(log_level, args.output)
    logger.info(f"Data Product Resolver v{__version__}")

    try:
        catalog = load_catalog(args)
        graph, configuration, product_name = canvas_from_args(args, catalog)
    except (ValidationError, CatalogLoadError, CatalogExtractionError, MaterializationError) as e:
        logger.error(str(e))
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read input: {e}")
        return 1

    canvas = graph.entity_keys
    suggestions = suggest(canvas, catalog)

    reverse = []
    if args.select:
        if args.select not in catalog:
            logger.error(f"Selected entity not in catalog: {args.select}")
            return 1
        reverse = resolve_reverse_dependencies(args.select, catalog, canvas)

    if args.json:
        print(json.dumps({
            'status': suggestions.status.value,
            'catalog': catalog.name,
            'canvas': canvas,
            'level1': [s.to_dict() for s in suggestions.level1],
            'level2': [s.to_dict() for s in suggestions.level2],
            'reverseDependencies': [r.to_dict() for r in reverse],
        }, indent=2))
    else:
        _print_summary(suggestions, reverse, args.select)

    if args.output:
        output_path = ExcelWriter(args.output).write(
            suggestions, canvas, reverse, name=product_name.replace(' ', '_')
        )
        if not args.json:
            print(f"\nOutput: {output_path}")

    if args.save:
        try:
            save_json(build_persisted_state(graph, configuration, product_name), args.save)
        except OSError as e:
            logger.error(f"Cannot write data product: {e}")
            return 1
        if not args.json:
            print(f"Saved: {args.save}")

    return 0


def _print_summary(suggestions, reverse, selected: Optional[str]) -> None:
    if not suggestions.has_input:
        print(f"No suggestions ({suggestions.status.value})")
    for label, items in (("Level 1", suggestions.level1), ("Level 2", suggestions.level2)):
        print(f"\n{label} suggestions: {len(items)}")
        for s in items:
            missing = ", ".join(m.full_key for m in s.missing_entities)
            print(f"  {s.coverage_percent:>3}%  {s.entity_key}"
                  f"{f'  (missing: {missing})' if missing else ''}")

    if selected:
        print(f"\n{selected} requires {len(reverse)} entities not on canvas")
        for r in reverse:
            print(f"  {r.entity_key}  ({r.connection_count} connection(s))")


if __name__ == '__main__':
    sys.exit(main())
