"""Typed domain exceptions for API error mapping.

These exceptions provide stronger API contract guarantees than
string-based error message matching. Routes can catch specific
exception types to return appropriate HTTP status codes.

Usage:
    # In service layer
    raise NotFoundError("Template", name)

    # In route handler
    try:
        schema = load_template(name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class SchemaValidationError(DomainError):
    """Schema failed validation. Maps to HTTP 422.

    Attributes:
        issues: The ValidationIssue list that caused the rejection.
    """

    def __init__(self, issues: list) -> None:
        self.issues = issues
        errors = [i for i in issues if i.severity == "error"]
        super().__init__(
            f"Schema has {len(errors)} error(s): "
            + "; ".join(i.message for i in errors[:3])
        )


class InvalidRelationError(DomainError):
    """Relation patch requested for a property that is not a usable relation.

    A programmer error: the provisioner only asks for patches on relation
    properties, and validation rejects relations without a config.
    """

    def __init__(self, property_name: str, reason: str) -> None:
        super().__init__(f"Property '{property_name}': {reason}")
        self.property_name = property_name
        self.reason = reason


class RelationTargetMissingError(DomainError):
    """Relation target key has no runtime handle in the current run."""

    def __init__(self, target_key: str) -> None:
        super().__init__(f"Target database {target_key} not found")
        self.target_key = target_key
