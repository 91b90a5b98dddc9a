"""CRMForge CLI.

Provision CRM workspaces in Notion from a declarative schema.

Usage:
    crmforge provision schema.yaml --title "Sales CRM" --parent <page-id>
    crmforge validate schema.yaml
    crmforge template list
    crmforge runs list
    crmforge serve
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from src.cli.config import load_config
from src.cli.factory import get_client, get_executor
from src.cli.output import (
    format_event,
    format_issues,
    format_result,
    format_run_detail,
    format_run_table,
    format_schema,
    format_templates,
)
from src.errors import (
    CRMForgeError,
    NotFoundError,
    SchemaValidationError,
    format_error,
)
from src.orchestrator.provisioning import ProvisioningResult, start_provisioning
from src.schema import (
    CRMSchema,
    ensure_valid,
    has_errors,
    list_templates,
    load_schema_file,
    load_template,
    validate_schema,
)
from src.utils.redaction import redact_secrets

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="crmforge",
    help="Provision CRM workspaces in Notion from a declarative schema",
    no_args_is_help=True,
)
template_app = typer.Typer(help="Browse built-in schema templates")
config_app = typer.Typer(help="Configuration management")
runs_app = typer.Typer(help="Inspect provisioning run history")

app.add_typer(template_app, name="template")
app.add_typer(config_app, name="config")
app.add_typer(runs_app, name="runs")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to crmforge.yaml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """CRMForge CLI."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _load_schema(schema_path: Path | None, template: str | None) -> CRMSchema:
    """Load a schema from a file, a template, or the default template.

    Exits with status 1 when the source is missing or malformed.
    """
    try:
        if schema_path is not None:
            return load_schema_file(schema_path)
        return load_template(template or "default")
    except (FileNotFoundError, NotFoundError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Schema is malformed:[/red]\n{e}")
        raise typer.Exit(1)


# --- Provisioning ---


@app.command()
def provision(
    schema_path: Optional[Path] = typer.Argument(
        None, help="Schema file (JSON or YAML). Defaults to the 'default' template."
    ),
    title: str = typer.Option(..., "--title", "-t", help="Title of the CRM parent page"),
    parent: Optional[str] = typer.Option(
        None, "--parent", "-p", help="Notion page ID to create the CRM under"
    ),
    template: Optional[str] = typer.Option(
        None, "--template", help="Built-in template to use instead of a file"
    ),
    record: bool = typer.Option(
        True, "--record/--no-record", help="Record the run in the local run history"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output result as JSON"),
):
    """Create the parent page, databases and relations in Notion."""
    cfg = load_config(config_path=_config_path)
    schema = _load_schema(schema_path, template)

    try:
        ensure_valid(schema)
    except SchemaValidationError as e:
        console.print(format_issues(e.issues))
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if parent is None:
        console.print(
            "[yellow]No --parent given; internal integrations cannot create "
            "pages at the workspace root.[/yellow]"
        )

    try:
        client = get_client(cfg)
    except CRMForgeError as e:
        console.print(f"[red]{format_error(e)}[/red]")
        raise typer.Exit(1)

    run_id: str | None = None
    if record:
        from src.db.connection import get_db_context, init_db
        from src.services.run_service import ProvisioningRunService

        init_db()
        with get_db_context() as db:
            run_id = ProvisioningRunService(db).create_run(schema, title, parent).id

    async def _run() -> ProvisioningResult | None:
        executor = get_executor(cfg)
        stream = start_provisioning(
            client, schema, title, parent_page_id=parent, executor=executor
        )
        try:
            async for event in stream:
                if run_id is not None:
                    with get_db_context() as db:
                        ProvisioningRunService(db).apply_event(run_id, event)
                if not json_output:
                    console.print(format_event(event))
        finally:
            await stream.aclose()
            await client.aclose()
            await executor.aclose()
        return stream.result

    result = asyncio.run(_run())
    if result is None:
        console.print("[red]Provisioning stopped before completion.[/red]")
        raise typer.Exit(1)

    if run_id is not None:
        with get_db_context() as db:
            ProvisioningRunService(db).record_result(run_id, result)

    console.print(format_result(result, as_json=json_output))
    if run_id is not None and not json_output:
        console.print(f"[dim]Run recorded: {run_id}[/dim]")
    if not result.success:
        raise typer.Exit(1)


@app.command()
def validate(
    schema_path: Path = typer.Argument(help="Schema file (JSON or YAML)"),
    json_output: bool = typer.Option(False, "--json", help="Output issues as JSON"),
):
    """Validate a schema file without provisioning it."""
    schema = _load_schema(schema_path, None)
    issues = validate_schema(schema)
    console.print(format_issues(issues, as_json=json_output))
    if has_errors(issues):
        raise typer.Exit(1)
    if not json_output:
        console.print(
            f"[green]Schema is valid.[/green] {len(schema.databases)} databases, "
            f"{schema.relation_count} relations, {schema.total_steps} steps."
        )


# --- Template commands ---


@template_app.command("list")
def template_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List built-in schema templates."""
    console.print(format_templates(list_templates(), as_json=json_output))


@template_app.command("show")
def template_show(
    name: str = typer.Argument(help="Template name"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a built-in schema template."""
    schema = _load_schema(None, name)
    console.print(format_schema(schema, as_json=json_output))


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    data = redact_secrets(cfg.model_dump())
    for section, values in data.items():
        console.print(f"[bold]{section}:[/bold]")
        for key, value in values.items():
            console.print(f"  {key}: {value if value != '' else '[dim](unset)[/dim]'}")

    if not cfg.resolved_api_key():
        console.print(
            "\n[yellow]No API key configured.[/yellow] "
            "Set NOTION_API_KEY or record_store.api_key."
        )


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", help="Config file path"),
):
    """Validate a config file."""
    path = config or _config_path
    try:
        load_config(config_path=path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValidationError, ValueError, TypeError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)
    console.print("[green]Config is valid.[/green]")


# --- Run history commands ---


@runs_app.command("list")
def runs_list(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum runs to show"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List recorded provisioning runs."""
    from src.db.connection import get_db_context, init_db
    from src.db.models import RunStatus
    from src.services.run_service import ProvisioningRunService, run_to_dict

    try:
        status_filter = RunStatus(status) if status else None
    except ValueError:
        console.print(f"[red]Unknown status:[/red] {status}")
        raise typer.Exit(1)

    init_db()
    with get_db_context() as db:
        runs = ProvisioningRunService(db).list_runs(status=status_filter, limit=limit)
        console.print(format_run_table([run_to_dict(r) for r in runs], as_json=json_output))


@runs_app.command("show")
def runs_show(
    run_id: str = typer.Argument(help="Run ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show one provisioning run, including what it created."""
    from src.db.connection import get_db_context, init_db
    from src.services.run_service import ProvisioningRunService, run_to_dict

    init_db()
    with get_db_context() as db:
        run = ProvisioningRunService(db).get_run(run_id)
        if run is None:
            console.print(f"[red]Run not found:[/red] {run_id}")
            raise typer.Exit(1)
        console.print(format_run_detail(run_to_dict(run), as_json=json_output))


# --- Servers ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Start the HTTP API (FastAPI + SSE)."""
    import os

    import uvicorn

    cfg = load_config(config_path=_config_path)
    final_host = host or cfg.server.host
    final_port = port or cfg.server.port

    # The API process loads its own config; point it at the same file.
    if _config_path:
        os.environ["CRMFORGE_CONFIG"] = str(_config_path)

    console.print(f"[bold]Starting CRMForge API on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "src.api.main:app",
        host=final_host,
        port=final_port,
        log_level=cfg.server.log_level,
    )


@app.command()
def mcp():
    """Start the MCP server over stdio."""
    import os

    from src.mcp.provisioning.server import main as run_mcp

    if _config_path:
        os.environ["CRMFORGE_CONFIG"] = str(_config_path)
    run_mcp()


@app.command()
def version():
    """Show CRMForge version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("crmforge")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]CRMForge[/bold] v{v}")


if __name__ == "__main__":
    app()
