"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich output (default) and machine-parseable JSON
output (--json flag). All formatting goes through these functions so the
CLI commands stay clean.
"""

import json

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.orchestrator.provisioning import ProgressEvent, ProvisioningResult
from src.schema import CRMSchema, ValidationIssue

console = Console()

STATUS_COLORS = {
    "pending": "yellow",
    "running": "blue",
    "in_progress": "blue",
    "completed": "green",
    "success": "green",
    "failed": "red",
    "error": "red",
}

SEVERITY_COLORS = {"error": "red", "warning": "yellow"}


def _render(renderable) -> str:
    """Render a Rich object to a string."""
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def format_event(event: ProgressEvent) -> str:
    """Format one progress event as a single markup line.

    Args:
        event: Event to display.

    Returns:
        Rich markup string like ``[2/5] ✓ Created Accounts database``.
    """
    color = STATUS_COLORS.get(event.status, "white")
    marker = {"in_progress": "…", "success": "✓", "error": "✗"}.get(event.status, "•")
    line = f"[dim][{event.step}/{event.total_steps}][/dim] [{color}]{marker}[/{color}] {escape(event.message)}"
    if event.detail:
        line += f" [dim]({escape(event.detail)})[/dim]"
    if event.error:
        line += f"\n    [red]{escape(event.error)}[/red]"
    return line


def format_issues(issues: list[ValidationIssue], as_json: bool = False) -> str:
    """Format schema validation issues as a Rich table or JSON."""
    if as_json:
        return json.dumps([i.to_dict() for i in issues], indent=2)

    if not issues:
        return "No issues found."

    table = Table(title="Schema Issues", show_lines=False)
    table.add_column("Severity")
    table.add_column("Database", style="cyan")
    table.add_column("Property")
    table.add_column("Message")
    for issue in issues:
        color = SEVERITY_COLORS.get(issue.severity, "white")
        table.add_row(
            f"[{color}]{issue.severity}[/{color}]",
            issue.database_key or "—",
            issue.property_name or "—",
            escape(issue.message),
        )
    return _render(table)


def format_templates(names: list[str], as_json: bool = False) -> str:
    """Format the built-in template names."""
    if as_json:
        return json.dumps(names)
    if not names:
        return "No templates found."
    return "\n".join(f"  {name}" for name in names)


def format_schema(schema: CRMSchema, as_json: bool = False) -> str:
    """Format a schema as a table of databases, or as its JSON document."""
    if as_json:
        return json.dumps(
            schema.model_dump(by_alias=True, exclude_none=True, mode="json"), indent=2
        )

    table = Table(title=f"CRM Schema ({schema.total_steps} steps)", show_lines=True)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Properties")
    table.add_column("Relations")
    for database in schema.databases:
        plain = [
            f"{p.name} [dim]({p.type.value})[/dim]"
            for p in database.properties
            if not p.is_relation
        ]
        relations = [
            f"{p.name} → {p.relation.target_database_key}"
            for p in database.relation_properties
            if p.relation is not None
        ]
        table.add_row(
            database.key,
            f"{database.icon + ' ' if database.icon else ''}{database.name}",
            "\n".join(plain) or "—",
            "\n".join(relations) or "—",
        )
    return _render(table)


def format_result(result: ProvisioningResult, as_json: bool = False) -> str:
    """Format a provisioning result as a Rich panel or JSON."""
    if as_json:
        return json.dumps(result.to_dict(), indent=2)

    if result.success:
        title, border = "CRM Created", "green"
    else:
        title, border = "CRM Creation Failed", "red"

    lines = [
        f"[bold]Steps:[/bold]      {result.completed_steps}/{result.total_steps}",
        f"[bold]Parent page:[/bold] {result.parent_page_id or '—'}",
        f"[bold]Relations:[/bold]  {result.relations_created}",
    ]
    if result.databases:
        lines.append("")
        lines.append("[bold]Databases:[/bold]")
        for key, handle in result.databases.items():
            lines.append(f"  {key}: {handle.database_id}")
    if result.error_message:
        lines.append("")
        lines.append(
            f"[bold red]Error:[/bold red] {result.error_code}: {escape(result.error_message)}"
        )
    return _render(Panel("\n".join(lines), title=title, border_style=border))


def format_run_table(runs: list[dict], as_json: bool = False) -> str:
    """Format provisioning runs (as produced by run_to_dict) as a table or JSON."""
    if as_json:
        return json.dumps(runs, indent=2)

    if not runs:
        return "No runs found."

    table = Table(title="Provisioning Runs", show_lines=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Created")
    for run in runs:
        color = STATUS_COLORS.get(run["status"], "white")
        table.add_row(
            run["id"][:12],
            run["pageTitle"],
            f"[{color}]{run['status']}[/{color}]",
            f"{run['completedSteps']}/{run['totalSteps']}",
            run["createdAt"][:19] if run["createdAt"] else "—",
        )
    return _render(table)


def format_run_detail(run: dict, as_json: bool = False) -> str:
    """Format one provisioning run as a Rich panel or JSON."""
    if as_json:
        return json.dumps(run, indent=2)

    color = STATUS_COLORS.get(run["status"], "white")
    lines = [
        f"[bold]Run ID:[/bold]    {run['id']}",
        f"[bold]Title:[/bold]     {escape(run['pageTitle'])}",
        f"[bold]Status:[/bold]    [{color}]{run['status']}[/{color}]",
        f"[bold]Steps:[/bold]     {run['completedSteps']}/{run['totalSteps']}",
        f"[bold]Phase:[/bold]     {run['currentPhase'] or '—'}",
        f"[bold]Page:[/bold]      {run['createdPageId'] or '—'}",
        "",
        f"[bold]Created:[/bold]   {run['createdAt'][:19] if run['createdAt'] else '—'}",
        f"[bold]Completed:[/bold] {run['completedAt'][:19] if run['completedAt'] else '—'}",
    ]
    if run["databases"]:
        lines.append("")
        lines.append("[bold]Databases:[/bold]")
        for key, ids in run["databases"].items():
            lines.append(f"  {key}: {ids['databaseId']}")
    if run["errorCode"]:
        lines.append("")
        lines.append(
            f"[bold red]Error:[/bold red] {run['errorCode']}: {escape(run['errorMessage'] or '')}"
        )
    return _render(Panel("\n".join(lines), title="Run Detail", border_style="cyan"))
