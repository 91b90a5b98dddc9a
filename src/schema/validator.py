"""Structural validation for CRM schemas.

The provisioner trusts its input, so every outer surface (API, CLI, MCP)
runs validate_schema() first and refuses to provision when any issue has
severity "error". Warnings are reported but do not block provisioning.
"""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import ValidationError as PydanticValidationError

from src.errors.domain import SchemaValidationError
from src.schema.models import (
    CRMSchema,
    DatabaseDefinition,
    PropertyDefinition,
    PropertyType,
)

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found in a schema.

    Attributes:
        severity: "error" blocks provisioning, "warning" does not.
        message: Human-readable description.
        database_key: Key of the database the issue belongs to, if any.
        property_name: Name of the offending property, if any.
    """

    severity: Severity
    message: str
    database_key: str | None = None
    property_name: str | None = None

    def to_dict(self) -> dict:
        """Serialize for JSON responses."""
        return {
            "severity": self.severity,
            "message": self.message,
            "databaseKey": self.database_key,
            "propertyName": self.property_name,
        }


def validate_schema(schema: CRMSchema) -> list[ValidationIssue]:
    """Validate an entire CRM schema.

    Args:
        schema: Schema to check.

    Returns:
        All issues found, errors and warnings, in discovery order.
    """
    if not schema.databases:
        return [ValidationIssue("error", "Schema must have at least one database")]

    issues: list[ValidationIssue] = []

    seen_keys: set[str] = set()
    for database in schema.databases:
        if database.key in seen_keys:
            issues.append(
                ValidationIssue(
                    "error",
                    f"Duplicate database key: {database.key}",
                    database_key=database.key,
                )
            )
        seen_keys.add(database.key)

    for database in schema.databases:
        issues.extend(validate_database(database))

    issues.extend(validate_relations(schema))
    return issues


def validate_database(database: DatabaseDefinition) -> list[ValidationIssue]:
    """Validate a single database definition."""
    issues: list[ValidationIssue] = []
    key = database.key

    if not database.name.strip():
        issues.append(ValidationIssue("error", "Database name cannot be empty", key))

    if not database.properties:
        issues.append(
            ValidationIssue("error", "Database must have at least one property", key)
        )
        return issues

    title_count = sum(1 for p in database.properties if p.type == PropertyType.title)
    if title_count == 0:
        issues.append(
            ValidationIssue("error", "Database must have exactly one title property", key)
        )
    elif title_count > 1:
        issues.append(
            ValidationIssue("error", "Database can only have one title property", key)
        )

    for prop in database.properties:
        issues.extend(validate_property(prop, database))

    names = [p.name.strip().lower() for p in database.properties]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        issues.append(
            ValidationIssue(
                "error",
                f"Duplicate property names found: {', '.join(duplicates)}",
                key,
            )
        )

    return issues


def validate_property(
    prop: PropertyDefinition,
    database: DatabaseDefinition,
) -> list[ValidationIssue]:
    """Validate a single property definition."""
    issues: list[ValidationIssue] = []
    key = database.key

    if not prop.name.strip():
        issues.append(
            ValidationIssue("error", "Property name cannot be empty", key, prop.name)
        )

    if prop.type in (PropertyType.select, PropertyType.multi_select):
        if not prop.options:
            issues.append(
                ValidationIssue(
                    "warning",
                    f'{prop.type.value} property "{prop.name}" has no options',
                    key,
                    prop.name,
                )
            )
        elif any(not opt.name.strip() for opt in prop.options):
            issues.append(
                ValidationIssue(
                    "error",
                    f'{prop.type.value} property "{prop.name}" has empty option names',
                    key,
                    prop.name,
                )
            )

    if prop.type == PropertyType.relation:
        if prop.relation is None:
            issues.append(
                ValidationIssue(
                    "error",
                    f'Relation property "{prop.name}" is missing relation config',
                    key,
                    prop.name,
                )
            )
        else:
            if not prop.relation.target_database_key:
                issues.append(
                    ValidationIssue(
                        "error",
                        f'Relation property "{prop.name}" is missing target database',
                        key,
                        prop.name,
                    )
                )
            if not prop.relation.synced_property_name:
                issues.append(
                    ValidationIssue(
                        "error",
                        f'Relation property "{prop.name}" is missing synced property name',
                        key,
                        prop.name,
                    )
                )

    return issues


def validate_relations(schema: CRMSchema) -> list[ValidationIssue]:
    """Check every relation points at a database in the same schema."""
    issues: list[ValidationIssue] = []
    keys = {db.key for db in schema.databases}

    for database in schema.databases:
        for prop in database.relation_properties:
            if prop.relation is None or not prop.relation.target_database_key:
                continue
            target = prop.relation.target_database_key
            if target not in keys:
                issues.append(
                    ValidationIssue(
                        "error",
                        f'Relation "{prop.name}" in "{database.name}" points to '
                        f'non-existent database "{target}"',
                        database.key,
                        prop.name,
                    )
                )

    return issues


def has_errors(issues: list[ValidationIssue]) -> bool:
    """Whether any issue blocks provisioning."""
    return any(issue.severity == "error" for issue in issues)


def parse_schema(data: Any) -> CRMSchema:
    """Build a CRMSchema from untrusted input, reporting shape errors as issues.

    Args:
        data: A CRMSchema, or a dict as received from JSON/YAML.

    Returns:
        The parsed schema.

    Raises:
        SchemaValidationError: If the data does not describe a schema.
    """
    if isinstance(data, CRMSchema):
        return data
    try:
        return CRMSchema.model_validate(data)
    except PydanticValidationError as e:
        issues = [
            ValidationIssue(
                "error",
                f"{'.'.join(str(part) for part in err['loc']) or 'schema'}: {err['msg']}",
            )
            for err in e.errors()
        ]
        raise SchemaValidationError(issues) from e


def ensure_valid(schema: CRMSchema) -> list[ValidationIssue]:
    """Validate a schema and refuse it when any issue is an error.

    Returns:
        The warnings, for callers that want to surface them.

    Raises:
        SchemaValidationError: If validation found errors.
    """
    issues = validate_schema(schema)
    if has_errors(issues):
        raise SchemaValidationError(issues)
    return issues
