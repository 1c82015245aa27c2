"""Configuration constants for the resolution engine and CLI."""

from .models.enums import AttributeMode


class Config:
    # Saved data products with stable entity ids
    FORMAT_VERSION = 2

    # Ephemeral canvas ids, regenerated on every load
    NODE_ID_PREFIX = "node-"
    EDGE_ID_PREFIX = "edge-"

    # Initial placement of loaded nodes (x spacing, y spacing, rows)
    ORIGIN_X = 100
    ORIGIN_Y = 100
    NODE_SPACING_X = 320
    NODE_SPACING_Y = 250
    LAYOUT_ROWS = 3

    # Attribute mode for entities without an explicit mode
    DEFAULT_ATTRIBUTE_MODE = AttributeMode.RUNTIME

    # Canvas field type when the catalog gives none; not written on save
    UNKNOWN_FIELD_TYPE = "unknown"

    # SQL catalog extraction
    DEFAULT_DIALECT = "oracle"
    SUPPORTED_DIALECTS = ["oracle", "tsql", "mysql", "postgres", "bigquery", "snowflake"]

    # Output
    REPORT_PREFIX = "DataProduct_Resolution"
    LOG_FILE = "product_resolver.log"
