"""Error code registry with E-XXXX format codes.

This module defines the error code system for CRMForge, organizing errors
into categories:
- E-2xxx: Schema validation errors
- E-3xxx: Record store (Notion API) errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum

from src.errors.domain import (
    InvalidRelationError,
    RelationTargetMissingError,
    SchemaValidationError,
)
from src.services.errors import RecordStoreError, ThrottledError


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    VALIDATION = "validation"  # E-2xxx: Schema validation errors
    RECORD_STORE = "record_store"  # E-3xxx: Notion API errors
    SYSTEM = "system"  # E-4xxx: System/internal errors
    AUTH = "auth"  # E-5xxx: Authentication errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid CRM Schema",
        message_template="Schema failed validation with {count} error(s).",
        remediation="Fix the reported schema errors and submit again.",
    ),
    # Record store errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.RECORD_STORE,
        title="Rate Limit Exhausted",
        message_template="The record store kept throttling requests after {attempts} attempts.",
        remediation="Wait a minute, inspect the partially created workspace, and re-run.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.RECORD_STORE,
        title="Record Store Rejected Request",
        message_template="The record store returned HTTP {status}: {message}",
        remediation="Check the parent page is shared with the integration and the schema is valid.",
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.RECORD_STORE,
        title="Record Store Unreachable",
        message_template="Could not reach the record store: {message}",
        remediation="Check network connectivity and retry.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Invalid Relation Property",
        message_template="Relation patch requested for an invalid relation property: {message}",
        remediation="This indicates a defect; report it with the schema used.",
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Relation Target Missing",
        message_template="{message}",
        remediation="Validate the schema before provisioning; every relation target must exist.",
    ),
    "E-4099": ErrorCode(
        code="E-4099",
        category=ErrorCategory.SYSTEM,
        title="Unexpected Provisioning Error",
        message_template="{message}",
        remediation="Inspect the server logs and the partially created workspace.",
    ),
    # Auth errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Missing API Key",
        message_template="No record store API key configured.",
        remediation="Set NOTION_API_KEY or record_store.api_key in crmforge.yaml.",
    ),
    "E-5002": ErrorCode(
        code="E-5002",
        category=ErrorCategory.AUTH,
        title="Record Store Authentication Failed",
        message_template="The record store rejected the API key: {message}",
        remediation="Regenerate the integration token and update your configuration.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Look up error code definition.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all error codes in a category.

    Args:
        category: Category to filter by.

    Returns:
        List of ErrorCode objects in that category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]


def error_code_for(exc: BaseException) -> str:
    """Map a provisioning failure to its registry code.

    Args:
        exc: Exception raised while provisioning.

    Returns:
        Error code in E-XXXX format.
    """
    if isinstance(exc, ThrottledError):
        return "E-3001"
    if isinstance(exc, RecordStoreError):
        if exc.status_code in (401, 403):
            return "E-5002"
        if exc.status_code == 0:
            return "E-3003"
        return "E-3002"
    if isinstance(exc, InvalidRelationError):
        return "E-4001"
    if isinstance(exc, RelationTargetMissingError):
        return "E-4002"
    if isinstance(exc, SchemaValidationError):
        return "E-2001"
    return "E-4099"
