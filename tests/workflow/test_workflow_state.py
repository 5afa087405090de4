"""Tests for WorkflowStateRepository."""

import pytest

from ontostate.core.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TenantScopeRequiredError,
)
from ontostate.core.models import (
    QuestionStatus,
    WorkflowAnswer,
    WorkflowEntityStatus,
    WorkflowEntityType,
    WorkflowQuestion,
    WorkflowStateData,
    WorkflowStateInput,
    column_entity_key,
    global_entity_key,
    table_entity_key,
)
from ontostate.workflow.state import WorkflowStateRepository

WORKFLOW_ID = "wf-1"


@pytest.fixture
def repo() -> WorkflowStateRepository:
    return WorkflowStateRepository()


@pytest.fixture
def make_state(ontology):
    def _make(entity_type: WorkflowEntityType, entity_key: str, **kwargs) -> WorkflowStateInput:
        return WorkflowStateInput(
            project_id="proj-1",
            ontology_id=ontology.ontology_id,
            workflow_id=kwargs.pop("workflow_id", WORKFLOW_ID),
            entity_type=entity_type,
            entity_key=entity_key,
            **kwargs,
        )

    return _make


class TestCreate:
    async def test_create_defaults(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, table_entity_key("orders")))

        assert row.status == "pending"
        assert row.retry_count == 0
        assert row.state_data == {"gathered": {}, "llm_analysis": {}, "questions": [], "answers": []}

    async def test_duplicate_conflicts(self, repo, session, make_state):
        await repo.create(session, make_state(WorkflowEntityType.GLOBAL, global_entity_key()))
        await session.commit()

        with pytest.raises(ConflictError):
            await repo.create(session, make_state(WorkflowEntityType.GLOBAL, global_entity_key()))

    async def test_batch(self, repo, session, make_state):
        rows = await repo.create_batch(
            session,
            [
                make_state(WorkflowEntityType.GLOBAL, global_entity_key()),
                make_state(WorkflowEntityType.TABLE, "orders"),
                make_state(WorkflowEntityType.COLUMN, column_entity_key("orders", "status")),
            ],
        )

        assert len(rows) == 3
        listed = await repo.list_by_workflow(session, WORKFLOW_ID)
        assert [(r.entity_type, r.entity_key) for r in listed] == [
            ("column", "orders.status"),
            ("global", ""),
            ("table", "orders"),
        ]

    async def test_batch_is_all_or_nothing(self, repo, session, make_state):
        with pytest.raises(ConflictError):
            await repo.create_batch(
                session,
                [
                    make_state(WorkflowEntityType.TABLE, "orders"),
                    make_state(WorkflowEntityType.TABLE, "customers"),
                    make_state(WorkflowEntityType.TABLE, "orders"),
                ],
            )

        assert await repo.list_by_workflow(session, WORKFLOW_ID) == []

    async def test_failed_batch_keeps_earlier_work(self, repo, session, make_state):
        earlier = await repo.create(session, make_state(WorkflowEntityType.GLOBAL, global_entity_key()))

        with pytest.raises(ConflictError):
            await repo.create_batch(
                session,
                [
                    make_state(WorkflowEntityType.TABLE, "orders"),
                    make_state(WorkflowEntityType.TABLE, "orders"),
                ],
            )
        await session.commit()

        rows = await repo.list_by_workflow(session, WORKFLOW_ID)
        assert [r.state_id for r in rows] == [earlier.state_id]

    async def test_empty_batch(self, repo, session):
        assert await repo.create_batch(session, []) == []

    async def test_requires_session(self, repo, make_state):
        with pytest.raises(TenantScopeRequiredError):
            await repo.create(None, make_state(WorkflowEntityType.TABLE, "orders"))


class TestReads:
    async def test_get_by_entity(self, repo, session, make_state):
        created = await repo.create(session, make_state(WorkflowEntityType.COLUMN, "orders.status"))

        found = await repo.get_by_entity(session, WORKFLOW_ID, WorkflowEntityType.COLUMN, "orders.status")
        assert found.state_id == created.state_id
        assert await repo.get_by_entity(session, "wf-2", WorkflowEntityType.COLUMN, "orders.status") is None

    async def test_list_by_status(self, repo, session, make_state):
        a = await repo.create(session, make_state(WorkflowEntityType.TABLE, "a"))
        await repo.create(session, make_state(WorkflowEntityType.TABLE, "b"))
        await repo.update_status(session, a.state_id, WorkflowEntityStatus.SCANNING)

        scanning = await repo.list_by_status(session, WORKFLOW_ID, WorkflowEntityStatus.SCANNING)
        assert [r.entity_key for r in scanning] == ["a"]

    async def test_get_missing(self, repo, session):
        assert await repo.get_by_id(session, "nope") is None


class TestStatus:
    async def test_update_status_sets_and_clears_error(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        await repo.update_status(session, row.state_id, WorkflowEntityStatus.FAILED, "timeout")
        failed = await repo.get_by_id(session, row.state_id)
        assert (failed.status, failed.last_error) == ("failed", "timeout")

        await repo.update_status(session, row.state_id, WorkflowEntityStatus.PENDING)
        reset = await repo.get_by_id(session, row.state_id)
        assert (reset.status, reset.last_error) == ("pending", None)

    async def test_update_status_missing(self, repo, session):
        with pytest.raises(NotFoundError):
            await repo.update_status(session, "nope", WorkflowEntityStatus.SCANNING)

    async def test_transition_follows_lifecycle(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        for target in (
            WorkflowEntityStatus.SCANNING,
            WorkflowEntityStatus.SCANNED,
            WorkflowEntityStatus.ANALYZING,
            WorkflowEntityStatus.NEEDS_INPUT,
            WorkflowEntityStatus.ANALYZING,
            WorkflowEntityStatus.COMPLETE,
        ):
            row = await repo.transition(session, row.state_id, target)

        assert row.status == "complete"

    async def test_transition_out_of_terminal_rejected(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))
        await repo.transition(session, row.state_id, WorkflowEntityStatus.FAILED, "boom")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await repo.transition(session, row.state_id, WorkflowEntityStatus.SCANNING)
        assert exc_info.value.current == "failed"

    async def test_transition_skipping_phase_rejected(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        with pytest.raises(InvalidTransitionError):
            await repo.transition(session, row.state_id, WorkflowEntityStatus.COMPLETE)

    async def test_retry_count_monotonic(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        values = [await repo.increment_retry_count(session, row.state_id) for _ in range(3)]

        assert values == [1, 2, 3]
        assert (await repo.get_by_id(session, row.state_id)).retry_count == 3

    async def test_retry_count_missing(self, repo, session):
        with pytest.raises(NotFoundError):
            await repo.increment_retry_count(session, "nope")


class TestStateData:
    async def test_replace_document(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        await repo.update_state_data(
            session, row.state_id, WorkflowStateData(gathered={"row_count": 1200})
        )

        fetched = await repo.get_by_id(session, row.state_id)
        assert fetched.state_data["gathered"] == {"row_count": 1200}

    async def test_unknown_fields_survive(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))
        data = WorkflowStateData.from_json({"gathered": {}, "sampling": {"rows": 500}})
        await repo.update_state_data(session, row.state_id, data)

        await repo.add_questions_to_entity(session, row.state_id, [WorkflowQuestion(text="Q?")])

        fetched = await repo.get_by_id(session, row.state_id)
        assert fetched.state_data["sampling"] == {"rows": 500}
        assert len(fetched.state_data["questions"]) == 1

    async def test_add_questions_appends(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        await repo.add_questions_to_entity(session, row.state_id, [WorkflowQuestion(id="q1", text="A?")])
        await repo.add_questions_to_entity(
            session, row.state_id, [WorkflowQuestion(id="q2", text="B?"), WorkflowQuestion(id="q1", text="A?")]
        )

        doc = WorkflowStateData.from_json((await repo.get_by_id(session, row.state_id)).state_data)
        assert [q.id for q in doc.questions] == ["q1", "q2", "q1"]

    async def test_add_no_questions_is_noop(self, repo, session):
        # No lookup happens for an empty list
        await repo.add_questions_to_entity(session, "nope", [])

    async def test_update_question(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.COLUMN, "orders.status"))
        await repo.add_questions_to_entity(session, row.state_id, [WorkflowQuestion(id="q1", text="A?")])

        question = await repo.update_question_in_entity(
            session, row.state_id, "q1", QuestionStatus.ANSWERED, answer="Yes", answered_by="alice"
        )

        assert question.status == QuestionStatus.ANSWERED
        doc = WorkflowStateData.from_json((await repo.get_by_id(session, row.state_id)).state_data)
        assert doc.questions[0].answer == "Yes"
        assert doc.questions[0].answered_by == "alice"
        assert doc.questions[0].answered_at is not None

    async def test_update_unknown_question(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.COLUMN, "orders.status"))

        with pytest.raises(NotFoundError) as exc_info:
            await repo.update_question_in_entity(session, row.state_id, "missing", QuestionStatus.SKIPPED)
        assert exc_info.value.kind == "question"

    async def test_record_answer(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        await repo.record_answer_in_entity(
            session,
            row.state_id,
            WorkflowAnswer(question_id="q1", answer="Yes", answered_by="alice", knowledge_facts=["f1"]),
        )

        doc = WorkflowStateData.from_json((await repo.get_by_id(session, row.state_id)).state_data)
        assert doc.answers[0].knowledge_facts == ["f1"]


class TestDelete:
    async def test_delete(self, repo, session, make_state):
        row = await repo.create(session, make_state(WorkflowEntityType.TABLE, "orders"))

        await repo.delete(session, row.state_id)

        assert await repo.get_by_id(session, row.state_id) is None
        with pytest.raises(NotFoundError):
            await repo.delete(session, row.state_id)

    async def test_delete_by_workflow(self, repo, session, make_state):
        await repo.create(session, make_state(WorkflowEntityType.TABLE, "a"))
        await repo.create(session, make_state(WorkflowEntityType.TABLE, "b"))
        await repo.create(session, make_state(WorkflowEntityType.TABLE, "a", workflow_id="wf-2"))

        assert await repo.delete_by_workflow(session, WORKFLOW_ID) == 2
        assert len(await repo.list_by_workflow(session, "wf-2")) == 1

    async def test_delete_by_ontology(self, repo, session, ontology, make_state):
        await repo.create(session, make_state(WorkflowEntityType.TABLE, "a"))
        await repo.create(session, make_state(WorkflowEntityType.TABLE, "a", workflow_id="wf-2"))

        assert await repo.delete_by_ontology(session, ontology.ontology_id) == 2
