"""Quiz master: builds an interactive flashcard quiz artifact."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from studybuddy.core import ArtifactCapability, ArtifactPlan, CapabilityKind, CapabilityMetadata, CapabilityParams, TurnContext
from studybuddy.errors import ErrorTrace, JsonDict
from studybuddy.llm import ARTIFACT_MODEL
from studybuddy.schemas import ArtifactKind, Quiz

Difficulty = Literal["easy", "medium", "hard", "mixed"]


class QuizParams(CapabilityParams):
    topic: str = Field(..., min_length=1, description="The topic to create quiz questions about")
    number_of_questions: int = Field(default=5, ge=1, le=10, description="Number of questions to generate")
    difficulty: Difficulty = Field(default="medium", description="Difficulty level of the questions")
    focus_areas: list[str] | None = Field(default=None, description="Specific areas within the topic to focus on")


def build_quiz_prompt(params: QuizParams) -> str:
    focus = f"\n\nFocus particularly on: {', '.join(params.focus_areas)}" if params.focus_areas else ""
    return f"""Create a quiz with {params.number_of_questions} multiple choice questions about: "{params.topic}"
Difficulty level: {params.difficulty}{focus}

Each question should:
- Test understanding, not just memorization
- Have 4 options (A, B, C, D)
- Have a clear correct answer
- Include a brief explanation of why the answer is correct

Return the quiz as structured JSON."""


class QuizMaster(ArtifactCapability[QuizParams]):
    """Generates a Quiz payload and streams it as a flashcard artifact."""

    metadata = CapabilityMetadata(
        name="quiz_master",
        description=(
            "Create a quiz or practice questions to test knowledge on a topic. Use when the user wants to be "
            "quizzed, test their knowledge, or practice with questions. "
            "Triggers: quiz me, test me, practice questions, assessment, flashcards."
        ),
        kind=CapabilityKind.ARTIFACT,
        display_name="quiz-master",
        category="learning",
    )
    params_schema = QuizParams
    artifact_kind = ArtifactKind.FLASHCARD

    def title_for(self, params: QuizParams) -> str:
        return f"Quiz: {params.topic}"

    async def _generate(self, params: QuizParams, ctx: TurnContext, plan: ArtifactPlan) -> Quiz:
        ctx.log.info("generating quiz", questions=params.number_of_questions, difficulty=params.difficulty)
        quiz = await ctx.model(ARTIFACT_MODEL).generate_object(Quiz, build_quiz_prompt(params))
        ctx.log.debug("quiz generated", questions=len(quiz.questions))
        return quiz

    def _summarize(self, params: QuizParams, plan: ArtifactPlan, payload: Any) -> tuple[str, JsonDict]:
        count = len(payload.questions)
        summary = (
            f'Created an interactive quiz about "{params.topic}" with {count} questions. '
            "The flashcard quiz is now displayed - click through to test your knowledge!"
        )
        return summary, {"topic": params.topic, "numberOfQuestions": count,
                         "difficulty": params.difficulty, "focusAreas": params.focus_areas}

    def failure_summary(self, params: QuizParams | None, error: ErrorTrace) -> str:
        topic = params.topic if params else "this topic"
        return f'Failed to generate quiz about "{topic}": {error.message}. Please try again.'
