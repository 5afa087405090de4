"""Tests for workflow models: status lifecycle, entity keys, state documents."""

import pytest

from ontostate.core.models import (
    PendingQuestionCounts,
    QuestionStatus,
    WorkflowEntityStatus,
    WorkflowQuestion,
    WorkflowStateData,
    column_entity_key,
    global_entity_key,
    parse_column_entity_key,
    table_entity_key,
)


class TestEntityStatus:
    @pytest.mark.parametrize(
        "status,terminal",
        [
            (WorkflowEntityStatus.PENDING, False),
            (WorkflowEntityStatus.SCANNING, False),
            (WorkflowEntityStatus.SCANNED, False),
            (WorkflowEntityStatus.ANALYZING, False),
            (WorkflowEntityStatus.NEEDS_INPUT, False),
            (WorkflowEntityStatus.COMPLETE, True),
            (WorkflowEntityStatus.FAILED, True),
        ],
    )
    def test_terminal(self, status, terminal):
        assert status.is_terminal is terminal

    def test_any_non_terminal_can_fail(self):
        for status in WorkflowEntityStatus:
            if not status.is_terminal:
                assert status.can_transition_to(WorkflowEntityStatus.FAILED)

    def test_terminal_cannot_move(self):
        for target in WorkflowEntityStatus:
            assert not WorkflowEntityStatus.COMPLETE.can_transition_to(target)
            assert not WorkflowEntityStatus.FAILED.can_transition_to(target)

    def test_needs_input_returns_to_analyzing(self):
        assert WorkflowEntityStatus.ANALYZING.can_transition_to(WorkflowEntityStatus.NEEDS_INPUT)
        assert WorkflowEntityStatus.NEEDS_INPUT.can_transition_to(WorkflowEntityStatus.ANALYZING)
        assert not WorkflowEntityStatus.NEEDS_INPUT.can_transition_to(WorkflowEntityStatus.COMPLETE)


class TestEntityKeys:
    def test_keys(self):
        assert global_entity_key() == ""
        assert table_entity_key("orders") == "orders"
        assert column_entity_key("orders", "status") == "orders.status"

    def test_parse_roundtrip(self):
        assert parse_column_entity_key(column_entity_key("orders", "status")) == ("orders", "status")

    def test_parse_malformed(self):
        assert parse_column_entity_key("orders") == ("", "")


class TestStateData:
    def test_null_document(self):
        doc = WorkflowStateData.from_json(None)
        assert doc.questions == []
        assert doc.answers == []

    def test_unknown_fields_preserved(self):
        raw = {
            "gathered": {"row_count": 10},
            "profile_version": 2,
            "questions": [{"id": "q1", "text": "Q?", "source_model": "x"}],
        }

        out = WorkflowStateData.from_json(raw).to_json()

        assert out["profile_version"] == 2
        assert out["questions"][0]["source_model"] == "x"
        assert out["questions"][0]["status"] == "pending"

    def test_none_extra_kept(self):
        out = WorkflowStateData.from_json({"checkpoint": None}).to_json()
        assert "checkpoint" in out


class TestQuestion:
    def test_defaults(self):
        question = WorkflowQuestion(text="Q?")
        assert question.id
        assert question.priority == 3
        assert question.is_pending
        assert not question.is_answered

    def test_answered(self):
        assert WorkflowQuestion(text="Q?", status=QuestionStatus.ANSWERED).is_answered

    def test_counts_total(self):
        assert PendingQuestionCounts(required=2, optional=3).total == 5
