"""Output segments streamed by the orchestrator for one conversation turn.

Each segment serializes to one flat JSON object with a ``type`` tag. Artifact
channel events are relayed unchanged, so their tags are the ``data-*`` ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import orjson

from studybuddy.channel import ArtifactEvent
from studybuddy.core import Failure, Success
from studybuddy.llm import Message, ToolCall


class FinishReason(StrEnum):
    STOP = "stop"                # Model answered without requesting capabilities
    STEP_BUDGET = "step-budget"  # Hard cap on invocation rounds reached
    ERROR = "error"              # The orchestrating model call itself failed


class _Segment:
    """Shared serialization for segments."""

    __slots__ = ()

    type: str

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict()).decode()


@dataclass(slots=True)
class TextSegment(_Segment):
    """Model-authored text."""
    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(slots=True)
class ToolCallSegment(_Segment):
    """The model requested a capability invocation."""
    call: ToolCall
    step: int
    type: str = field(default="tool-call", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "toolCallId": self.call.id, "toolName": self.call.name,
                "args": self.call.arguments, "step": self.step}


@dataclass(slots=True)
class ToolResultSegment(_Segment):
    """An invocation completed (any artifact it built has already finished)."""
    call: ToolCall
    result: Success | Failure
    step: int
    type: str = field(default="tool-result", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "toolCallId": self.call.id, "toolName": self.call.name,
                "result": self.result.to_dict(), "step": self.step}


@dataclass(slots=True)
class ArtifactEventSegment(_Segment):
    """An artifact channel event, relayed in arrival order."""
    event: ArtifactEvent

    @property
    def type(self) -> str:  # type: ignore[override]
        return self.event.type.value

    def to_dict(self) -> dict[str, Any]:
        return self.event.to_dict()


@dataclass(slots=True)
class ErrorSegment(_Segment):
    """The turn hit an error outside any capability."""
    message: str
    type: str = field(default="error", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


@dataclass(slots=True)
class FinishSegment(_Segment):
    """Last segment of every turn."""
    reason: FinishReason
    steps: int
    type: str = field(default="finish", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "finishReason": self.reason.value, "steps": self.steps}


OutputSegment = TextSegment | ToolCallSegment | ToolResultSegment | ArtifactEventSegment | ErrorSegment | FinishSegment


@dataclass(slots=True)
class Invocation:
    """One resolved invocation: the request and its result."""
    call: ToolCall
    result: Success | Failure
    step: int


@dataclass(slots=True)
class TurnResult:
    """Everything a completed turn produced.

    Attributes:
        text: Concatenated model text
        steps: Invocation rounds used
        finish_reason: Why the turn ended
        invocations: Every invocation in order
        messages: Conversation including the new assistant and tool messages
        artifact_events: Channel events in arrival order
    """
    text: str
    steps: int
    finish_reason: FinishReason
    invocations: list[Invocation] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    artifact_events: list[ArtifactEvent] = field(default_factory=list)

    @property
    def results(self) -> list[Success | Failure]:
        return [i.result for i in self.invocations]
