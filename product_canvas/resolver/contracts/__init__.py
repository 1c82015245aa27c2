"""Contract definitions and validation for catalog and product exchange."""

from .validator import validate_input, validate_catalog, validate_product_state, ValidationError

__all__ = ["validate_input", "validate_catalog", "validate_product_state", "ValidationError"]
