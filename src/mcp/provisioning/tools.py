"""MCP tools for CRM provisioning.

Tools return plain dicts with camelCase keys, the same shapes the HTTP
API uses. Failures are reported in the result rather than raised so the
calling agent can read the remediation.
"""

from fastmcp import Context

from src.errors import CRMForgeError, NotFoundError, SchemaValidationError, error_code_for
from src.orchestrator.provisioning import ProgressEvent, start_provisioning
from src.schema import (
    ensure_valid,
    list_templates,
    load_template,
    parse_schema,
    validate_schema,
)


def _get_lifespan_context(ctx: Context) -> dict:
    """Get the lifespan context from the request context.

    Raises:
        RuntimeError: If request context not available
    """
    if ctx.request_context is None:
        raise RuntimeError("Request context not available")
    return ctx.request_context.lifespan_context


async def list_schema_templates(ctx: Context) -> dict:
    """List the built-in CRM schema templates.

    Returns:
        Dictionary with:
        - templates: Template names
        - count: Number of templates
    """
    names = list_templates()
    await ctx.info(f"Found {len(names)} schema templates")
    return {"templates": names, "count": len(names)}


async def get_schema_template(name: str, ctx: Context) -> dict:
    """Return a built-in schema template.

    Args:
        name: Template name, as listed by list_schema_templates.

    Returns:
        Dictionary with the template's schema and step count, or an error.
    """
    try:
        schema = load_template(name)
    except NotFoundError as e:
        return {"success": False, "error": str(e), "available": list_templates()}
    return {
        "success": True,
        "name": name,
        "totalSteps": schema.total_steps,
        "schema": schema.model_dump(by_alias=True, exclude_none=True, mode="json"),
    }


async def validate_crm_schema(schema: dict, ctx: Context) -> dict:
    """Validate a CRM schema without creating anything.

    Args:
        schema: Schema document with a "databases" list.

    Returns:
        Dictionary with:
        - valid: False when any issue is an error
        - totalSteps: Steps provisioning would take (valid schemas only)
        - issues: Errors and warnings found
    """
    try:
        parsed = parse_schema(schema)
    except SchemaValidationError as e:
        return {"valid": False, "issues": [i.to_dict() for i in e.issues]}

    issues = validate_schema(parsed)
    valid = not any(i.severity == "error" for i in issues)
    result = {"valid": valid, "issues": [i.to_dict() for i in issues]}
    if valid:
        result["totalSteps"] = parsed.total_steps
    return result


async def provision_crm(
    page_title: str,
    ctx: Context,
    schema: dict | None = None,
    template: str | None = None,
    parent_page_id: str | None = None,
) -> dict:
    """Create a CRM in Notion from a schema or a built-in template.

    Args:
        page_title: Title of the page holding the CRM databases.
        schema: Schema document. Takes precedence over template.
        template: Built-in template name, used when schema is omitted.
            Defaults to "default".
        parent_page_id: Notion page to create the CRM under. Required for
            internal integrations, which cannot write to the workspace root.

    Returns:
        Dictionary with:
        - success: Whether every step completed
        - result: ProvisioningResult (created ids, counts, error)
        - events: Every progress event, in order
    """
    lifespan_ctx = _get_lifespan_context(ctx)

    try:
        if schema is not None:
            parsed = parse_schema(schema)
        else:
            parsed = load_template(template or "default")
        ensure_valid(parsed)
        client = lifespan_ctx["client_factory"]()
    except (SchemaValidationError, NotFoundError, CRMForgeError) as e:
        code = e.code if isinstance(e, CRMForgeError) else error_code_for(e)
        return {"success": False, "errorCode": code, "error": str(e), "events": []}

    await ctx.info(f"Provisioning '{page_title}': {parsed.total_steps} steps")

    events: list[ProgressEvent] = []
    stream = start_provisioning(
        client,
        parsed,
        page_title,
        parent_page_id=parent_page_id,
        executor=lifespan_ctx["executor"],
    )
    try:
        async for event in stream:
            events.append(event)
            await ctx.report_progress(progress=event.step, total=event.total_steps)
            if event.is_terminal:
                await ctx.info(event.detail or event.error or event.message)
    finally:
        await stream.aclose()
        await client.aclose()

    result = stream.result
    return {
        "success": bool(result and result.success),
        "result": result.to_dict() if result else None,
        "events": [e.to_wire() for e in events],
    }
