"""Artifact kinds and the structured payload schemas artifact capabilities generate.

Payloads travel as camelCase JSON (``correctAnswer``, ``hoursPerDay``) so the
content stored and streamed matches what browser clients already render.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ArtifactKind(StrEnum):
    """Known artifact kinds. Clients must tolerate kinds outside this set."""
    TEXT = "text"
    CODE = "code"
    SHEET = "sheet"
    FLASHCARD = "flashcard"
    STUDY_PLAN = "study-plan"


class Payload(BaseModel):
    """Base for JSON artifact payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_content(self) -> str:
        """Serialized content as stored and placed on the channel."""
        return self.model_dump_json(by_alias=True, indent=2)


# ─────────────────────────────────────────────────────────────────────────────
# Flashcard quiz
# ─────────────────────────────────────────────────────────────────────────────


class QuizQuestion(Payload):
    question: str
    options: Annotated[list[str], Field(min_length=4, max_length=4)]
    correct_answer: Annotated[int, Field(ge=0, le=3)]
    explanation: str


class Quiz(Payload):
    """Flashcard quiz: every question has exactly 4 options and one correct index."""

    topic: str
    questions: list[QuizQuestion]


# ─────────────────────────────────────────────────────────────────────────────
# Study plan
# ─────────────────────────────────────────────────────────────────────────────


class StudyTask(Payload):
    task: str
    duration: str
    completed: bool = False


class StudyWeek(Payload):
    week: int
    title: str
    goals: list[str]
    tasks: list[StudyTask]
    resources: list[str]


class StudyPlan(Payload):
    topic: str
    duration: str
    overview: str
    weeks: list[StudyWeek]
    tips: list[str] = Field(default_factory=list)


PAYLOAD_SCHEMAS: dict[str, type[Payload]] = {
    ArtifactKind.FLASHCARD: Quiz,
    ArtifactKind.STUDY_PLAN: StudyPlan,
}

# Kinds whose content must be valid JSON before it reaches the channel
JSON_KINDS: frozenset[str] = frozenset(PAYLOAD_SCHEMAS)


def schema_for_kind(kind: str) -> type[Payload] | None:
    """Payload schema for a kind, None for free-text kinds."""
    return PAYLOAD_SCHEMAS.get(kind)
