"""Planner: builds a study plan artifact with checkable tasks."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from studybuddy.core import ArtifactCapability, ArtifactPlan, CapabilityKind, CapabilityMetadata, CapabilityParams, TurnContext
from studybuddy.errors import ErrorTrace, JsonDict
from studybuddy.llm import ARTIFACT_MODEL
from studybuddy.schemas import ArtifactKind, StudyPlan

Level = Literal["complete beginner", "some basics", "intermediate", "advanced"]


class PlannerParams(CapabilityParams):
    topic: str = Field(..., min_length=1, description="The topic or skill to create a study plan for")
    timeframe: str = Field(
        default="2 weeks", description="How long the user has to learn (e.g., '1 week', '30 days', '3 months')",
    )
    hours_per_day: float = Field(default=1.0, ge=0.5, le=8, description="Hours available for study per day")
    current_level: Level = Field(default="complete beginner", description="User's current knowledge level")
    goals: list[str] | None = Field(default=None, description="Specific goals or outcomes the user wants to achieve")


def build_plan_prompt(params: PlannerParams) -> str:
    goals = ""
    if params.goals:
        goals = "\n\nSpecific goals to achieve:\n" + "\n".join(f"- {g}" for g in params.goals)
    return f"""Create a structured study plan for learning "{params.topic}".

Student profile:
- Current level: {params.current_level}
- Available time: {params.hours_per_day:g} hours per day
- Timeframe: {params.timeframe}{goals}

Create a practical, actionable study plan that includes:
- A clear overview of what will be learned
- Weekly breakdown with specific goals
- Daily tasks with estimated durations
- Recommended resources (types of materials, not specific URLs)
- Tips for staying on track

Make it realistic and achievable."""


class Planner(ArtifactCapability[PlannerParams]):
    metadata = CapabilityMetadata(
        name="planner",
        description=(
            "Create a personalized study plan or learning roadmap for a topic. Use when the user wants to plan "
            "their learning, create a study schedule, or get a structured approach to learning something. "
            "Triggers: study plan, learning roadmap, how to learn, schedule, curriculum."
        ),
        kind=CapabilityKind.ARTIFACT,
        display_name="planner",
        category="learning",
    )
    params_schema = PlannerParams
    artifact_kind = ArtifactKind.STUDY_PLAN

    def title_for(self, params: PlannerParams) -> str:
        return f"Study Plan: {params.topic}"

    async def _generate(self, params: PlannerParams, ctx: TurnContext, plan: ArtifactPlan) -> StudyPlan:
        ctx.log.info("generating study plan", timeframe=params.timeframe,
                     hours_per_day=params.hours_per_day, level=params.current_level)
        return await ctx.model(ARTIFACT_MODEL).generate_object(StudyPlan, build_plan_prompt(params))

    def _summarize(self, params: PlannerParams, plan: ArtifactPlan, payload: Any) -> tuple[str, JsonDict]:
        weeks = len(payload.weeks)
        summary = (
            f'Created a {params.timeframe} study plan for "{params.topic}" with {weeks} weeks. '
            "The interactive study plan is now displayed - you can track your progress "
            "by checking off tasks as you complete them!"
        )
        return summary, {
            "topic": params.topic,
            "timeframe": params.timeframe,
            "hoursPerDay": params.hours_per_day,
            "currentLevel": params.current_level,
            "goals": params.goals,
            "weeksCount": weeks,
        }

    def failure_summary(self, params: PlannerParams | None, error: ErrorTrace) -> str:
        topic = params.topic if params else "this topic"
        return f'Failed to generate study plan for "{topic}": {error.message}. Please try again.'
