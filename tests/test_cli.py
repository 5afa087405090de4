"""Tests for the ontostate CLI."""

import asyncio

import pytest
from typer.testing import CliRunner

from ontostate.changes.ledger import PendingChangeRepository
from ontostate.cli import app
from ontostate.core.connections import ConnectionConfig, ConnectionManager
from ontostate.core.logging import configure_logging
from ontostate.core.models import (
    ChangeType,
    EntityInput,
    PendingChangeInput,
    ProvenanceContext,
    WorkflowEntityType,
    WorkflowQuestion,
    WorkflowStateInput,
)
from ontostate.ontology.entities import EntityRepository
from ontostate.ontology.ontologies import OntologyRepository
from ontostate.workflow.state import WorkflowStateRepository

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    # The app callback points logging at the runner's captured stderr
    yield
    configure_logging()


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path}/cli.db"


async def _seed(database_url: str) -> dict[str, str]:
    manager = ConnectionManager(ConnectionConfig(database_url=database_url))
    await manager.initialize()
    try:
        async with manager.session_scope() as session:
            ontology = await OntologyRepository().create(session, "proj-1")
            entities = EntityRepository()
            await entities.upsert_by_natural_key(
                session,
                EntityInput(project_id="proj-1", ontology_id=ontology.ontology_id, name="legacy_entity"),
                ProvenanceContext.inference(),
            )
            await entities.mark_inference_stale(session, ontology.ontology_id)

            states = WorkflowStateRepository()
            state = await states.create(
                session,
                WorkflowStateInput(
                    project_id="proj-1",
                    ontology_id=ontology.ontology_id,
                    workflow_id="wf-1",
                    entity_type=WorkflowEntityType.TABLE,
                    entity_key="orders",
                ),
            )
            await states.add_questions_to_entity(
                session,
                state.state_id,
                [WorkflowQuestion(text="What does status 3 mean?", priority=1, is_required=True)],
            )

            change = await PendingChangeRepository().create(
                session,
                PendingChangeInput(
                    project_id="proj-1",
                    change_type=ChangeType.NEW_TABLE,
                    table_name="public.refunds",
                ),
            )
            return {"ontology_id": ontology.ontology_id, "change_id": change.change_id}
    finally:
        await manager.close()


@pytest.fixture
def seeded(database_url) -> dict[str, str]:
    return asyncio.run(_seed(database_url))


def _invoke(database_url: str, *args: str):
    return runner.invoke(app, ["--database-url", database_url, *args])


class TestCli:
    def test_init_db(self, database_url):
        result = _invoke(database_url, "init-db")
        assert result.exit_code == 0
        assert "Database ready" in result.output

    def test_stale(self, database_url, seeded):
        result = _invoke(database_url, "stale", seeded["ontology_id"])
        assert result.exit_code == 0
        assert "legacy_entity" in result.output

    def test_questions(self, database_url, seeded):
        result = _invoke(database_url, "questions", "next", "wf-1")
        assert result.exit_code == 0
        assert "What does status 3 mean?" in result.output

        result = _invoke(database_url, "questions", "count", "wf-1")
        assert "required: 1" in result.output

    def test_changes_review_once(self, database_url, seeded):
        result = _invoke(database_url, "changes", "list", "proj-1", "--status", "pending")
        assert result.exit_code == 0
        assert "new_table" in result.output

        result = _invoke(
            database_url, "changes", "review", seeded["change_id"], "--reject", "--by", "alice"
        )
        assert result.exit_code == 0
        assert "rejected" in result.output

        again = _invoke(
            database_url, "changes", "review", seeded["change_id"], "--approve", "--by", "bob"
        )
        assert again.exit_code == 1
