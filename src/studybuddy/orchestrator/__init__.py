"""Conversation-turn orchestration over the capability registry."""

from .orchestrator import Orchestrator
from .prompts import REASONING_PROMPT, STUDY_BUDDY_PROMPT, budget_notice, build_system_prompt
from .segments import (
    ArtifactEventSegment,
    ErrorSegment,
    FinishReason,
    FinishSegment,
    Invocation,
    OutputSegment,
    TextSegment,
    ToolCallSegment,
    ToolResultSegment,
    TurnResult,
)

__all__ = [
    "Orchestrator", "TurnResult", "Invocation",
    "OutputSegment", "TextSegment", "ToolCallSegment", "ToolResultSegment",
    "ArtifactEventSegment", "ErrorSegment", "FinishSegment", "FinishReason",
    "STUDY_BUDDY_PROMPT", "REASONING_PROMPT", "build_system_prompt", "budget_notice",
]
