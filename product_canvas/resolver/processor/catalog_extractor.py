"""
Build an entity catalog from SQL using SQLGlot.

Each physical table becomes a ``BASE_`` entity holding the columns the SQL
reads from it, each ``WITH`` clause a ``CTE_`` entity, each ``CREATE VIEW``
a ``VIEW_`` entity and a bare final SELECT a ``VIEW_{name}`` entity. Plain
column projections become ``ref`` entries; computed projections become a
``calculation`` whose expression is the projection's SQL text.
"""

import logging
from typing import Dict, List, Optional, Set

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from ..config import Config
from ..models.dataclasses import Calculation, Entity, EntityCatalog, FieldDef, FieldRef
from ..models.enums import EntityType


logger = logging.getLogger(__name__)


class CatalogExtractionError(Exception):
    """Raised when SQL cannot be parsed into a catalog."""
    pass


class CatalogExtractor:
    """Extract BASE/CTE/VIEW entities and field references from SQL."""

    def __init__(self, dialect: str = Config.DEFAULT_DIALECT):
        """
        Initialize the extractor.

        Args:
            dialect: SQL dialect passed to SQLGlot (default: oracle)
        """
        self.dialect = dialect

    def extract(self, sql: str, name: str) -> EntityCatalog:
        """
        Extract a catalog from one or more SQL statements.

        Args:
            sql: SQL text (SELECT, WITH ... SELECT or CREATE VIEW statements)
            name: Catalog name, also used for a bare final SELECT

        Returns:
            EntityCatalog with entities in discovery order

        Raises:
            CatalogExtractionError: If the SQL cannot be parsed
        """
        try:
            statements = sqlglot.parse(sql, read=self.dialect)
        except (ParseError, TokenError) as e:
            raise CatalogExtractionError(f"Cannot parse SQL for {name}: {e}")

        catalog = EntityCatalog(metadata={"name": name})

        for statement in statements:
            if statement is None:
                continue

            if isinstance(statement, exp.Create) and str(statement.args.get("kind", "")).upper() == "VIEW":
                view = statement.this.find(exp.Table) if statement.this else None
                query = statement.expression
                view_name = view.name if view is not None else name
            elif isinstance(statement, exp.Query):
                query = statement
                view_name = name
            else:
                logger.warning(f"Skipping unsupported statement in {name}: {statement.key.upper()}")
                continue

            self._extract_query(query, EntityType.VIEW.key_for(view_name), catalog)

        logger.info(f"Extracted {len(catalog)} entities from {name}")
        return catalog

    def _extract_query(self, query: exp.Expression, entity_key: str,
                       catalog: EntityCatalog, cte_names: Optional[Set[str]] = None):
        """Register the CTEs of ``query`` and then ``query`` itself as ``entity_key``."""
        cte_names = set(cte_names or ())

        for cte in getattr(query, "ctes", []):
            cte_names.add(cte.alias_or_name)
            self._extract_query(cte.this, EntityType.CTE.key_for(cte.alias_or_name),
                                catalog, cte_names)

        branches = self._flatten_union(query)
        if not branches:
            logger.warning(f"No SELECT found for {entity_key}")
            return

        fields: Dict[str, FieldDef] = {}
        for branch in branches:
            self._extract_select(branch, entity_key, fields, catalog, cte_names)

        if entity_key in catalog:
            logger.warning(f"Duplicate entity {entity_key}, keeping first definition")
            return
        catalog.add(Entity(key=entity_key, fields=fields))

    def _extract_select(self, select: exp.Select, entity_key: str, fields: Dict[str, FieldDef],
                        catalog: EntityCatalog, cte_names: Set[str]):
        """Merge the projections of one SELECT branch into ``fields``."""
        alias_map = self._build_alias_map(select, cte_names)
        sources = set(alias_map.values())

        for i, projection in enumerate(select.expressions):
            if projection.is_star:
                logger.debug(f"[STAR_SKIP] {entity_key}: star projection not expanded")
                continue

            target = projection.alias_or_name or f"EXPR_{i}"
            inner = projection.this if isinstance(projection, exp.Alias) else projection

            refs = []
            for column in inner.find_all(exp.Column):
                ref = self._resolve_column(column, alias_map, sources)
                if ref is None:
                    logger.debug(f"[UNRESOLVED] {entity_key}.{target}: {column.sql(dialect=self.dialect)}")
                    continue
                self._register_base_field(ref, catalog)
                if str(ref) not in refs:
                    refs.append(str(ref))

            field_def = fields.setdefault(target, FieldDef(name=target))
            if isinstance(inner, exp.Column):
                field_def.ref.extend(r for r in refs if r not in field_def.ref)
            else:
                if field_def.calculation is None:
                    field_def.calculation = Calculation(expression=inner.sql(dialect=self.dialect))
                field_def.calculation.ref.extend(
                    r for r in refs if r not in field_def.calculation.ref)

    def _build_alias_map(self, select: exp.Select, cte_names: Set[str]) -> Dict[str, str]:
        """Map every alias/table name used directly by ``select`` to an entity key."""
        alias_map = {}

        for table in select.find_all(exp.Table):
            if table.find_ancestor(exp.Select) is not select or not table.name:
                continue
            entity_type = EntityType.CTE if table.name in cte_names else EntityType.BASE
            key = entity_type.key_for(table.name)
            alias_map[table.alias_or_name] = key
            alias_map[table.name] = key

        return alias_map

    @staticmethod
    def _resolve_column(column: exp.Column, alias_map: Dict[str, str],
                        sources: Set[str]) -> Optional[FieldRef]:
        """Resolve a column to ``EntityKey.field`` or None when ambiguous."""
        if not column.name:
            return None
        if column.table:
            key = alias_map.get(column.table)
        elif len(sources) == 1:
            key = next(iter(sources))
        else:
            key = None
        if key is None:
            return None
        return FieldRef(key, column.name)

    @staticmethod
    def _register_base_field(ref: FieldRef, catalog: EntityCatalog):
        """Record a column read from a physical table on its BASE entity."""
        if EntityType.from_key(ref.entity_key) is not EntityType.BASE:
            return
        entity = catalog.get(ref.entity_key)
        if entity is None:
            entity = Entity(key=ref.entity_key)
            catalog.add(entity)
        entity.fields.setdefault(ref.field_name, FieldDef(name=ref.field_name))

    def _flatten_union(self, query: exp.Expression) -> List[exp.Select]:
        """SELECT branches of a (possibly nested) set operation."""
        if isinstance(query, exp.Subquery):
            return self._flatten_union(query.this)
        if isinstance(query, exp.Select):
            return [query]
        if isinstance(query, exp.SetOperation):
            return self._flatten_union(query.left) + self._flatten_union(query.right)
        return []
