"""Ontology-level clarification question input and content hashing."""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, Field

from ontostate.core.models.workflow import QuestionAffects


def compute_content_hash(category: str | None, text: str) -> str:
    """Hash of category + text used to deduplicate questions.

    Returns the first 16 characters of the hex-encoded SHA-256 digest.
    Not a security primitive.
    """
    digest = hashlib.sha256(f"{category or ''}|{text}".encode()).hexdigest()
    return digest[:16]


class QuestionInput(BaseModel):
    """A question generated by discovery, before it is stored."""

    text: str
    category: str | None = None
    priority: int = Field(default=3, ge=1)  # 1 = highest, 5 = lowest
    is_required: bool = False
    reasoning: str | None = None
    affects: QuestionAffects | None = None
    detected_pattern: str | None = None
    workflow_id: str | None = None
    parent_question_id: str | None = None

    @property
    def content_hash(self) -> str:
        return compute_content_hash(self.category, self.text)
