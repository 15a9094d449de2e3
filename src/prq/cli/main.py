"""
Command-line interface for the Project Review Queue.

Usage:
    prq queue Science
    prq requests list Science Math
    prq reconcile projects.json requests.json
    prq approve-deletion req-123 --entity-type task
    prq reject-deletion req-123
"""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from prq.backend import BackendTransportError, HttpReviewBackend
from prq.backend.envelopes import extract_projects, extract_requests
from prq.models import EntityType
from prq.settings import get_settings

# Main app
app = typer.Typer(name="prq", help="Project Review Queue CLI")
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", "-l", help="Override PRQ_LOG_LEVEL"),
):
    """Configure logging for every command."""
    settings = get_settings()
    level = (log_level or ("DEBUG" if settings.debug else settings.log_level)).upper()
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def get_backend() -> HttpReviewBackend:
    settings = get_settings()
    return HttpReviewBackend(
        settings.backend_url,
        reviewer_email=settings.reviewer_email,
        timeout=settings.request_timeout_seconds,
    )


def run_async(coro):
    """Helper to run async functions from Typer commands."""
    return asyncio.run(coro)


def _load_json(path: Path):
    try:
        return json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"Cannot read {path}: {e}", err=True)
        raise typer.Exit(1)


# ============================================================================
# Queue
# ============================================================================


@app.command("queue")
def queue(subject: str = typer.Argument(..., help="Subject domain to review")):
    """Show the review queue for a subject with deletion request counts."""
    from prq.services.review_workflow import ReviewWorkflow
    from prq.services.status import derive_project_status, summarize_statuses

    async def _queue():
        async with get_backend() as backend:
            workflow = ReviewWorkflow(backend)
            result = await workflow.load_projects(subject)
            if result.success:
                await workflow.session.wait_for_background()
            return result, workflow.session.projects

    result, projects = run_async(_queue())
    if not result.success:
        typer.echo(f"Error: {result.message}", err=True)
        raise typer.Exit(1)

    if not projects:
        typer.echo("No projects found.")
        return

    table = Table(title=f"Review queue: {subject}", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Owner")
    table.add_column("Status", style="green")
    table.add_column("Deletion requests", justify="right")
    for p in projects:
        count = str(p.deletion_request_count) if p.has_deletion_requests else "-"
        table.add_row(p.project_id, p.title, p.owner_name, derive_project_status(p), count)
    console.print(table)

    counts = summarize_statuses(projects)
    typer.echo(
        f"Total: {counts['total']}  Approved: {counts['approved']}  "
        f"Pending: {counts['pending']}  Revision: {counts['revision']}"
    )


# ============================================================================
# Deletion Request Commands
# ============================================================================

requests_app = typer.Typer(help="Deletion requests")
app.add_typer(requests_app, name="requests")


@requests_app.command("list")
def requests_list(subjects: list[str] = typer.Argument(..., help="Subject domains")):
    """List pending deletion requests for one or more subject domains."""
    from prq.services.request_store import RequestStore

    async def _list():
        async with get_backend() as backend:
            return await RequestStore(backend).load(subjects)

    pending = run_async(_list())

    if not pending:
        typer.echo("No pending deletion requests.")
        return

    table = Table(title="Pending deletion requests", show_header=True, header_style="bold magenta")
    table.add_column("Request", style="dim")
    table.add_column("Type")
    table.add_column("Project")
    table.add_column("Stage")
    table.add_column("Task")
    table.add_column("Reason")
    for r in pending:
        table.add_row(
            r.request_id, r.entity_type, r.project_id or "", r.stage_id or "", r.task_id or "",
            r.reason,
        )
    console.print(table)


@app.command("reconcile")
def reconcile_files(
    projects_file: Path = typer.Argument(..., help="JSON file with projects (any envelope)"),
    requests_file: Path = typer.Argument(..., help="JSON file with deletion requests"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write result here"),
):
    """Annotate projects with deletion requests offline and print the result."""
    from prq.services.reconciliation import reconcile

    projects = extract_projects(_load_json(projects_file))
    requests = extract_requests(_load_json(requests_file))
    annotated = reconcile(projects, requests)

    text = json.dumps(
        [p.model_dump(mode="json", exclude_none=True) for p in annotated], indent=2
    )
    if output:
        output.write_text(text)
        typer.echo(f"Wrote {len(annotated)} projects to {output}")
    else:
        typer.echo(text)


@app.command("approve-deletion")
def approve_deletion(
    request_id: str = typer.Argument(..., help="Deletion request ID"),
    entity_type: EntityType = typer.Option(
        EntityType.TASK, "--entity-type", "-t", help="project, stage or task"
    ),
):
    """Approve a deletion request."""

    async def _approve():
        async with get_backend() as backend:
            return await backend.approve_deletion_request(request_id, entity_type.value)

    try:
        response = run_async(_approve())
    except BackendTransportError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if not response.success:
        typer.echo(f"Error: {response.message or 'Failed to approve deletion request'}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Approved deletion request {request_id}")


@app.command("reject-deletion")
def reject_deletion(request_id: str = typer.Argument(..., help="Deletion request ID")):
    """Reject a deletion request."""

    async def _reject():
        async with get_backend() as backend:
            return await backend.reject_deletion_request(request_id)

    try:
        response = run_async(_reject())
    except BackendTransportError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if not response.success:
        typer.echo(f"Error: {response.message or 'Failed to reject deletion request'}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Rejected deletion request {request_id}")


if __name__ == "__main__":
    app()
