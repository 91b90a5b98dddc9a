"""Pydantic schemas for API request/response validation.

Request bodies use camelCase on the wire, matching the progress events
and the schema editor's JSON export.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Base for camelCase wire models that also accept field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CRMCreateRequest(_CamelModel):
    """Request schema for POST /crm/create.

    Fields are optional at this layer so the route can answer a missing
    title or parent page with 400 instead of a generic 422.
    """

    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    page_title: str | None = None
    parent_page_id: str | None = None


class SchemaValidateRequest(_CamelModel):
    """Request schema for POST /schema/validate."""

    schema_: dict[str, Any] = Field(alias="schema")


class ValidationIssueResponse(_CamelModel):
    """One schema issue."""

    severity: str
    message: str
    database_key: str | None = None
    property_name: str | None = None


class SchemaValidateResponse(_CamelModel):
    """Response schema for POST /schema/validate."""

    valid: bool
    total_steps: int | None = None
    issues: list[ValidationIssueResponse] = []


class TemplateListResponse(_CamelModel):
    """Response schema for GET /schema/templates."""

    templates: list[str]


class RunResponse(_CamelModel):
    """Response schema for a provisioning run record."""

    id: str
    page_title: str
    parent_page_id: str | None = None
    status: str
    total_steps: int
    completed_steps: int
    current_phase: str | None = None
    created_page_id: str | None = None
    databases: dict[str, dict[str, str]] = {}
    relations_created: int = 0
    created_at: str
    started_at: str | None = None
    completed_at: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class RunListResponse(_CamelModel):
    """Response schema for GET /crm/runs.

    ``total`` is the number of runs matching the filter across all pages.
    """

    runs: list[RunResponse]
    total: int
