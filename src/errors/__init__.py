"""Error handling framework for CRMForge.

This package provides:
- Error code registry with E-XXXX format codes
- CRMForgeError and terminal formatting
- Typed domain exceptions mapped to HTTP status codes by the API

Error categories:
- E-2xxx: Schema validation errors
- E-3xxx: Record store (Notion API) errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors
"""

from src.errors.domain import (
    DomainError,
    InvalidRelationError,
    NotFoundError,
    RelationTargetMissingError,
    SchemaValidationError,
)
from src.errors.formatter import CRMForgeError, format_error
from src.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    error_code_for,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    "error_code_for",
    # Formatter
    "CRMForgeError",
    "format_error",
    # Domain
    "DomainError",
    "NotFoundError",
    "SchemaValidationError",
    "InvalidRelationError",
    "RelationTargetMissingError",
]
