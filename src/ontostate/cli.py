"""CLI for inspecting and reviewing ontology state.

Usage:
    ontostate init-db
    ontostate stale <ontology_id>
    ontostate questions next <workflow_id>
    ontostate questions count <workflow_id>
    ontostate changes list <project_id> --status pending
    ontostate changes review <change_id> --approve --by alice
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table as RichTable

from ontostate.core.config import get_settings
from ontostate.core.connections import ConnectionConfig, ConnectionManager
from ontostate.core.errors import OntostateError
from ontostate.core.logging import configure_logging
from ontostate.core.models.changes import ChangeStatus

app = typer.Typer(
    name="ontostate",
    help="Ontology state - staleness, workflow questions and pending changes.",
    no_args_is_help=True,
)
questions_app = typer.Typer(help="Inspect the workflow question queue.", no_args_is_help=True)
changes_app = typer.Typer(help="List and review pending changes.", no_args_is_help=True)
app.add_typer(questions_app, name="questions")
app.add_typer(changes_app, name="changes")

console = Console()

_state: dict[str, Any] = {"database_url": None}


@app.callback()
def _main(
    database_url: Annotated[
        str | None,
        typer.Option(
            "--database-url",
            envvar="ONTOSTATE_DATABASE_URL",
            help="SQLAlchemy async database URL",
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    settings = get_settings()
    configure_logging(
        log_level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
    )
    _state["database_url"] = database_url


def _config() -> ConnectionConfig:
    if _state["database_url"]:
        return ConnectionConfig.from_settings(database_url=_state["database_url"])
    return ConnectionConfig.from_settings()


def _run(coro: Any) -> None:
    try:
        asyncio.run(coro)
    except OntostateError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e


@app.command("init-db")
def init_db(
    reset: Annotated[
        bool, typer.Option("--reset", help="Drop and recreate all tables (destroys data)")
    ] = False,
) -> None:
    """Create the database tables."""
    _run(_init_db_async(reset))


async def _init_db_async(reset: bool) -> None:
    from ontostate.storage.schema import SCHEMA_VERSION, reset_database

    manager = ConnectionManager(_config())
    await manager.initialize()
    try:
        if reset:
            await reset_database(manager.engine)
        console.print(f"[green]Database ready[/green] (schema {SCHEMA_VERSION})")
    finally:
        await manager.close()


@app.command()
def stale(
    ontology_id: Annotated[str, typer.Argument(help="Ontology to inspect")],
) -> None:
    """Show entities and relationships that were not rediscovered."""
    _run(_stale_async(ontology_id))


async def _stale_async(ontology_id: str) -> None:
    from ontostate.ontology.staleness import StalenessTracker

    manager = ConnectionManager(_config())
    await manager.initialize()
    try:
        async with manager.session_scope() as session:
            rows = await StalenessTracker().get_stale(session, ontology_id)

            if rows.is_empty:
                console.print("[green]Nothing stale[/green]")
                return

            if rows.entities:
                table = RichTable(title="Stale entities", show_header=True, header_style="bold")
                table.add_column("Name")
                table.add_column("Table")
                table.add_column("Updated")
                for entity in rows.entities:
                    location = ".".join(p for p in (entity.primary_schema, entity.primary_table) if p)
                    table.add_row(entity.name, location or "-", entity.updated_at.strftime("%Y-%m-%d %H:%M"))
                console.print(table)

            if rows.relationships:
                table = RichTable(title="Stale relationships", show_header=True, header_style="bold")
                table.add_column("From")
                table.add_column("To")
                table.add_column("Cardinality")
                for rel in rows.relationships:
                    table.add_row(
                        f"{rel.source_column_table}.{rel.source_column_name}",
                        f"{rel.target_column_table}.{rel.target_column_name}",
                        rel.cardinality,
                    )
                console.print(table)
    finally:
        await manager.close()


@questions_app.command("next")
def questions_next(
    workflow_id: Annotated[str, typer.Argument(help="Workflow to inspect")],
) -> None:
    """Show the most urgent pending question."""
    _run(_questions_next_async(workflow_id))


async def _questions_next_async(workflow_id: str) -> None:
    from ontostate.workflow.questions import QuestionEngine

    manager = ConnectionManager(_config())
    await manager.initialize()
    try:
        async with manager.session_scope() as session:
            question, state_id = await QuestionEngine().get_next_pending_question(
                session, workflow_id
            )
        if question is None:
            console.print("[green]No pending questions[/green]")
            return

        required = "[red]required[/red]" if question.is_required else "optional"
        console.print(f"[bold]{question.text}[/bold]")
        console.print(f"priority {question.priority}, {required}, category {question.category or '-'}")
        console.print(f"question {question.id} on state {state_id}")
        if question.reasoning:
            console.print(f"[dim]{question.reasoning}[/dim]")
    finally:
        await manager.close()


@questions_app.command("count")
def questions_count(
    workflow_id: Annotated[str, typer.Argument(help="Workflow to inspect")],
) -> None:
    """Count pending questions, split into required and optional."""
    _run(_questions_count_async(workflow_id))


async def _questions_count_async(workflow_id: str) -> None:
    from ontostate.workflow.questions import QuestionEngine

    manager = ConnectionManager(_config())
    await manager.initialize()
    try:
        async with manager.session_scope() as session:
            counts = await QuestionEngine().get_pending_questions_count(session, workflow_id)
        console.print(
            f"required: {counts.required}  optional: {counts.optional}  total: {counts.total}"
        )
    finally:
        await manager.close()


@changes_app.command("list")
def changes_list(
    project_id: Annotated[str, typer.Argument(help="Project to inspect")],
    status: Annotated[
        ChangeStatus | None, typer.Option("--status", "-s", help="Only show this status")
    ] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Maximum rows")] = None,
) -> None:
    """List pending changes, newest first."""
    _run(_changes_list_async(project_id, status, limit))


async def _changes_list_async(project_id: str, status: ChangeStatus | None, limit: int | None) -> None:
    from ontostate.changes.ledger import PendingChangeRepository

    manager = ConnectionManager(_config())
    await manager.initialize()
    try:
        async with manager.session_scope() as session:
            changes = await PendingChangeRepository().list(session, project_id, status, limit)

        if not changes:
            console.print("[yellow]No changes found[/yellow]")
            return

        table = RichTable(show_header=True, header_style="bold")
        table.add_column("ID")
        table.add_column("Type")
        table.add_column("Table")
        table.add_column("Column")
        table.add_column("Suggested")
        table.add_column("Status")

        for change in changes:
            status_color = {
                "pending": "yellow",
                "approved": "green",
                "rejected": "red",
                "auto_applied": "blue",
            }.get(change.status, "white")
            table.add_row(
                change.change_id[:8],
                change.change_type,
                change.table_name or "-",
                change.column_name or "-",
                change.suggested_action or "-",
                f"[{status_color}]{change.status}[/{status_color}]",
            )
        console.print(table)
    finally:
        await manager.close()


@changes_app.command("review")
def changes_review(
    change_id: Annotated[str, typer.Argument(help="Change to review")],
    reviewed_by: Annotated[str, typer.Option("--by", help="Reviewer name")],
    approve: Annotated[
        bool, typer.Option("--approve/--reject", help="Approve or reject the change")
    ] = True,
) -> None:
    """Approve or reject a pending change."""
    status = ChangeStatus.APPROVED if approve else ChangeStatus.REJECTED
    _run(_changes_review_async(change_id, status, reviewed_by))


async def _changes_review_async(change_id: str, status: ChangeStatus, reviewed_by: str) -> None:
    from ontostate.changes.ledger import PendingChangeRepository

    manager = ConnectionManager(_config())
    await manager.initialize()
    try:
        async with manager.session_scope() as session:
            change = await PendingChangeRepository().update_status(
                session, change_id, status, reviewed_by
            )
        console.print(f"[green]{change.change_id}[/green] {change.status} by {reviewed_by}")
    finally:
        await manager.close()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
