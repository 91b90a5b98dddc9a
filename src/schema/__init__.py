"""CRM schema model, validation, and templates."""

from src.schema.loader import list_templates, load_schema_file, load_template
from src.schema.models import (
    CRMSchema,
    DatabaseDefinition,
    PropertyDefinition,
    PropertyType,
    RelationConfig,
    SelectOption,
)
from src.schema.validator import (
    ValidationIssue,
    ensure_valid,
    has_errors,
    parse_schema,
    validate_schema,
)

__all__ = [
    "CRMSchema",
    "DatabaseDefinition",
    "PropertyDefinition",
    "PropertyType",
    "RelationConfig",
    "SelectOption",
    "ValidationIssue",
    "validate_schema",
    "has_errors",
    "parse_schema",
    "ensure_valid",
    "list_templates",
    "load_template",
    "load_schema_file",
]
