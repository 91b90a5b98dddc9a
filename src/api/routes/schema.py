"""FastAPI routes for schema templates and validation."""

import logging

from fastapi import APIRouter, HTTPException

from src.api.schemas import (
    SchemaValidateRequest,
    SchemaValidateResponse,
    TemplateListResponse,
    ValidationIssueResponse,
)
from src.errors import NotFoundError, SchemaValidationError
from src.schema import list_templates, load_template, parse_schema, validate_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schema", tags=["schema"])


@router.get("/templates", response_model=TemplateListResponse)
def get_templates() -> TemplateListResponse:
    """List the built-in schema templates."""
    return TemplateListResponse(templates=list_templates())


@router.get("/templates/{name}")
def get_template(name: str) -> dict:
    """Return one built-in template as a camelCase schema document.

    Raises:
        HTTPException: If the template does not exist (404).
    """
    try:
        schema = load_template(name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {
        "name": name,
        "totalSteps": schema.total_steps,
        "schema": schema.model_dump(by_alias=True, exclude_none=True, mode="json"),
    }


@router.post("/validate", response_model=SchemaValidateResponse)
def validate(body: SchemaValidateRequest) -> SchemaValidateResponse:
    """Validate a schema without provisioning it.

    Always answers 200; ``valid`` is False when any issue is an error.
    """
    try:
        schema = parse_schema(body.schema_)
    except SchemaValidationError as e:
        return SchemaValidateResponse(
            valid=False,
            issues=[ValidationIssueResponse(**i.to_dict()) for i in e.issues],
        )

    issues = validate_schema(schema)
    valid = not any(i.severity == "error" for i in issues)
    return SchemaValidateResponse(
        valid=valid,
        total_steps=schema.total_steps if valid else None,
        issues=[ValidationIssueResponse(**i.to_dict()) for i in issues],
    )
