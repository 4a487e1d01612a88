"""Analyst: summarizes content and extracts key insights."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from studybuddy.core import BaseCapability, CapabilityMetadata, CapabilityParams, Success, TurnContext
from studybuddy.llm import CHAT_MODEL

AnalysisType = Literal["summary", "key-points", "deep-analysis", "study-notes"]
OutputLength = Literal["brief", "moderate", "detailed"]

ANALYST_SYSTEM_PROMPT = """You are a document analyst who excels at extracting insights and summarizing content.

Your analysis approach:
- Identify the main themes and key points
- Extract important facts, figures, and arguments
- Note relationships between concepts
- Highlight actionable insights
- Provide clear, structured summaries

For document analysis, provide:
1. Executive summary (2-3 sentences)
2. Key points and main arguments
3. Important details and supporting evidence
4. Connections to broader context
5. Actionable takeaways or study notes

Be thorough but concise. Focus on what would be most valuable for learning and retention."""

LENGTH_GUIDE: dict[str, str] = {
    "brief": "Keep the analysis concise, around 100-200 words.",
    "moderate": "Provide a balanced analysis, around 300-500 words.",
    "detailed": "Provide a comprehensive analysis, around 600-800 words.",
}

ANALYSIS_GUIDE: dict[str, str] = {
    "summary": "Create a clear summary highlighting the main message and supporting points.",
    "key-points": "Extract and list the most important points as bullet points with brief explanations.",
    "deep-analysis": "Provide thorough analysis including themes, arguments, evidence, and implications.",
    "study-notes": "Create study-friendly notes with headings, key terms, and memorable takeaways.",
}


class AnalystParams(CapabilityParams):
    content: str = Field(..., min_length=1, description="The text or content to analyze")
    analysis_type: AnalysisType = Field(default="summary", description="Type of analysis to perform")
    focus_on: str | None = Field(default=None, description="Specific aspect to focus the analysis on")
    output_length: OutputLength = Field(default="moderate", description="Desired length of the analysis output")


def build_analysis_prompt(params: AnalystParams) -> str:
    focus = f"\n\nFocus particularly on: {params.focus_on}" if params.focus_on else ""
    return f"""Analyze the following content:

---
{params.content}
---

Analysis type: {params.analysis_type}
{ANALYSIS_GUIDE[params.analysis_type]}
{focus}

{LENGTH_GUIDE[params.output_length]}"""


class Analyst(BaseCapability[AnalystParams]):
    metadata = CapabilityMetadata(
        name="analyst",
        description=(
            "Analyze content, extract key insights, and create summaries. Use when the user wants to "
            "understand, summarize, or extract key points from text, documents, or concepts. "
            "Triggers: analyze, summarize, key points, main ideas, extract insights, break down."
        ),
        display_name="analyst",
        category="learning",
    )
    params_schema = AnalystParams

    async def _execute(self, params: AnalystParams, ctx: TurnContext) -> Success:
        text = await ctx.model(CHAT_MODEL).generate_text(build_analysis_prompt(params), system=ANALYST_SYSTEM_PROMPT)
        return self._ok(
            text,
            analysisType=params.analysis_type,
            focusOn=params.focus_on,
            outputLength=params.output_length,
            contentLength=len(params.content),
        )
