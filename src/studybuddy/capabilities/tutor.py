"""Tutor: explains a topic with a chosen teaching approach."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from studybuddy.core import BaseCapability, CapabilityMetadata, CapabilityParams, Success, TurnContext
from studybuddy.llm import CHAT_MODEL

Approach = Literal["eli5", "technical", "analogy", "step-by-step"]

TUTOR_SYSTEM_PROMPT = """You are a patient, encouraging tutor who adapts explanations to the learner.

Your teaching approach:
- Start from what the learner already knows
- Introduce one idea at a time and connect it to the previous one
- Use concrete examples before abstract definitions
- Check understanding with a short question at the end

Be accurate, clear and warm. Prefer plain language over jargon, and define any \
term you cannot avoid."""

APPROACH_GUIDE: dict[str, str] = {
    "eli5": "Explain it like I'm five: simple words, everyday examples, no jargon.",
    "technical": "Give a precise, technical explanation with correct terminology and relevant detail.",
    "analogy": "Build the explanation around one or two vivid analogies, then map them back to the real concept.",
    "step-by-step": "Break the explanation into numbered steps that build on each other.",
}


class TutorParams(CapabilityParams):
    topic: str = Field(..., min_length=1, description="The topic or concept to explain")
    approach: Approach = Field(
        default="step-by-step",
        description="Teaching approach: eli5 (simple), technical (detailed), analogy (comparisons), step-by-step",
    )
    prior_knowledge: str | None = Field(default=None, description="What the user already knows about the topic")


def build_tutor_prompt(params: TutorParams) -> str:
    background = f"\n\nThe learner already knows: {params.prior_knowledge}" if params.prior_knowledge else ""
    return f"""Explain the following topic: "{params.topic}"

Approach: {params.approach}
{APPROACH_GUIDE[params.approach]}{background}"""


class Tutor(BaseCapability[TutorParams]):
    """Direct capability: one completion, returned as the summary."""

    metadata = CapabilityMetadata(
        name="tutor",
        description=(
            "Explain a concept or topic in depth. Use when the user wants to learn or understand something. "
            "Triggers: explain, teach me, how does X work, what is, help me understand."
        ),
        display_name="tutor",
        category="learning",
    )
    params_schema = TutorParams

    async def _execute(self, params: TutorParams, ctx: TurnContext) -> Success:
        ctx.log.debug("explaining topic", topic=params.topic, approach=params.approach)
        text = await ctx.model(CHAT_MODEL).generate_text(build_tutor_prompt(params), system=TUTOR_SYSTEM_PROMPT)
        return self._ok(text, topic=params.topic, approach=params.approach,
                        priorKnowledge=params.prior_knowledge)
