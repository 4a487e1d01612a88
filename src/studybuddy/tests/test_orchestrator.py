"""Tests for the turn orchestrator: routing, step budget, streaming and cancellation."""

from __future__ import annotations

import asyncio

import orjson
import pytest

from studybuddy.channel import ArtifactEventType
from studybuddy.core import BaseCapability, CapabilityMetadata, EmptyParams, Failure, Success, TurnContext
from studybuddy.errors import ErrorCode
from studybuddy.llm import REASONING_MODEL, Message, ModelProvider, Role, ToolCall
from studybuddy.orchestrator import (
    REASONING_PROMPT,
    ArtifactEventSegment,
    ErrorSegment,
    FinishReason,
    FinishSegment,
    Orchestrator,
    OutputSegment,
    TextSegment,
    ToolCallSegment,
    ToolResultSegment,
    budget_notice,
)
from studybuddy.registry import CapabilityRegistry
from studybuddy.store import MemoryArtifactStore
from studybuddy.testing import ScriptedModel, says, tool_call, wants

QUIZ_ME = [Message.user("Quiz me on photosynthesis")]


async def collect(orchestrator: Orchestrator, conversation: list[Message] = QUIZ_ME, **kwargs: object) -> list[OutputSegment]:
    return [segment async for segment in orchestrator.run(conversation, **kwargs)]  # type: ignore[arg-type]


def results(segments: list[OutputSegment]) -> list[Success | Failure]:
    return [s.result for s in segments if isinstance(s, ToolResultSegment)]


def finish_of(segments: list[OutputSegment]) -> FinishSegment:
    last = segments[-1]
    assert isinstance(last, FinishSegment)
    return last


# ─────────────────────────────────────────────────────────────────────────────
# Routing
# ─────────────────────────────────────────────────────────────────────────────


class TestRouting:
    @pytest.mark.asyncio
    async def test_text_only_turn(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [says("Hi! What would you like to study?")]
        segments = await collect(orchestrator)

        assert [type(s) for s in segments] == [TextSegment, FinishSegment]
        assert finish_of(segments).reason is FinishReason.STOP
        assert finish_of(segments).steps == 0

    @pytest.mark.asyncio
    async def test_artifact_events_precede_result(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("quiz_master", topic="Photosynthesis", numberOfQuestions=3)),
                       says("Your quiz is ready!")]
        segments = await collect(orchestrator)

        kinds = [s.type for s in segments]
        assert kinds == ["tool-call", "data-id", "data-title", "data-kind", "data-clear", "data-delta",
                         "data-finish", "tool-result", "text", "finish"]
        (result,) = results(segments)
        assert isinstance(result, Success)
        assert finish_of(segments).steps == 1

    @pytest.mark.asyncio
    async def test_system_prompt_lists_capabilities(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        await collect(orchestrator, exclude={"get_weather"})

        call = model.calls_to("complete")[0]
        assert call.system is not None
        assert "Available capabilities:" in call.system
        assert "**quiz_master** (artifact)" in call.system
        assert "get_weather" not in call.system
        assert "get_weather" not in call.tools and "quiz_master" in call.tools

    @pytest.mark.asyncio
    async def test_unknown_capability_does_not_end_turn(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("teleport", destination="Mars")), says("I can't do that, sorry.")]
        segments = await collect(orchestrator)

        (result,) = results(segments)
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.NOT_FOUND
        assert finish_of(segments).reason is FinishReason.STOP

        second_call = model.calls_to("complete")[1]
        tool_message = second_call.messages[-1]
        assert tool_message.role is Role.TOOL
        assert "There is no capability named 'teleport'" in tool_message.content

    @pytest.mark.asyncio
    async def test_invalid_arguments_never_reach_capability(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("quiz_master", topic="Cells", numberOfQuestions=50)), says("Let me fix that.")]
        segments = await collect(orchestrator)

        (result,) = results(segments)
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.INVALID_PARAMS
        assert "numberOfQuestions" in result.summary
        assert not model.calls_to("generate_object")
        assert not any(isinstance(s, ArtifactEventSegment) for s in segments)

    @pytest.mark.asyncio
    async def test_malformed_arguments(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(ToolCall(name="tutor", parse_error="Arguments are not valid JSON")), says("Oops.")]
        (result,) = results(await collect(orchestrator))
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.INVALID_PARAMS
        assert not model.calls_to("generate_text")

    @pytest.mark.asyncio
    async def test_excluded_capability_is_unknown(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("quiz_master", topic="Cells")), says("ok")]
        (result,) = results(await collect(orchestrator, exclude={"quiz_master"}))
        assert result.code == ErrorCode.NOT_FOUND  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_reasoning_mode_has_no_capabilities(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [says("Let me think this through...")]
        await collect(orchestrator, model=REASONING_MODEL)

        call = model.calls_to("complete")[0]
        assert call.tools == ()
        assert call.system == REASONING_PROMPT

    @pytest.mark.asyncio
    async def test_model_failure_ends_turn(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [ConnectionError("provider down")]
        segments = await collect(orchestrator)

        assert isinstance(segments[0], ErrorSegment)
        assert finish_of(segments).reason is FinishReason.ERROR
        assert len(segments) == 2

    @pytest.mark.asyncio
    async def test_artifacts_persisted_for_owner(
        self, orchestrator: Orchestrator, model: ScriptedModel, store: MemoryArtifactStore,
    ) -> None:
        model.turns = [wants(tool_call("quiz_master", topic="Cells")), says("Done")]
        (result,) = results(await collect(orchestrator, owner="user-1"))

        record = await store.get_latest((result.structured_data or {})["documentId"])  # type: ignore[union-attr]
        assert record.owner == "user-1"

    @pytest.mark.asyncio
    async def test_anonymous_turn_not_persisted(
        self, orchestrator: Orchestrator, model: ScriptedModel, store: MemoryArtifactStore,
    ) -> None:
        model.turns = [wants(tool_call("quiz_master", topic="Cells")), says("Done")]
        await collect(orchestrator)
        assert len(store) == 0


# ─────────────────────────────────────────────────────────────────────────────
# Step budget
# ─────────────────────────────────────────────────────────────────────────────


class TestStepBudget:
    @pytest.mark.asyncio
    async def test_budget_caps_invocation_rounds(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("tutor", topic=f"topic {i}")) for i in range(10)]
        segments = await collect(orchestrator, step_budget=5)

        assert len(results(segments)) == 5
        assert len(model.calls_to("complete")) == 5
        finish = finish_of(segments)
        assert finish.reason is FinishReason.STEP_BUDGET
        assert finish.steps == 5
        notice = segments[-2]
        assert isinstance(notice, TextSegment) and notice.text == budget_notice(5)

    @pytest.mark.asyncio
    async def test_default_budget(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("tutor", topic="loops")) for _ in range(10)]
        result = await orchestrator.run_to_completion(QUIZ_ME)
        assert result.steps == orchestrator.step_budget == 5

    @pytest.mark.asyncio
    async def test_budget_must_be_positive(self, orchestrator: Orchestrator) -> None:
        with pytest.raises(ValueError, match="step_budget"):
            await collect(orchestrator, step_budget=0)


# ─────────────────────────────────────────────────────────────────────────────
# Concurrency & cancellation
# ─────────────────────────────────────────────────────────────────────────────


class Blocking(BaseCapability[EmptyParams]):
    metadata = CapabilityMetadata(name="blocking", description="Waits until it is cancelled")
    params_schema = EmptyParams

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def _execute(self, params: EmptyParams, ctx: TurnContext) -> Success:
        self.started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return self._ok("finished")


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_one_step_runs_invocations_concurrently(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.delay = 0.01
        model.turns = [wants(tool_call("quiz_master", topic="Cells"), tool_call("planner", topic="Cells")),
                       says("Both are ready.")]
        segments = await collect(orchestrator)

        events = [s.event for s in segments if isinstance(s, ArtifactEventSegment)]
        ids = list(dict.fromkeys(e.artifact_id for e in events))
        assert len(ids) == 2
        for artifact_id in ids:
            per_id = [e.type for e in events if e.artifact_id == artifact_id]
            assert per_id[0] is ArtifactEventType.SET_ID and per_id[-1] is ArtifactEventType.FINISH

        # The second artifact opened before the first finished
        first_finish = next(i for i, e in enumerate(events) if e.type is ArtifactEventType.FINISH)
        second_open = [i for i, e in enumerate(events) if e.type is ArtifactEventType.SET_ID][1]
        assert second_open < first_finish

        assert [r.agent_name for r in results(segments)] == ["quiz-master", "planner"]
        assert finish_of(segments).steps == 1

    @pytest.mark.asyncio
    async def test_sequential_mode(self, registry: CapabilityRegistry, model: ScriptedModel) -> None:
        orchestrator = Orchestrator(registry=registry, models=ModelProvider.single(model), concurrent=False)
        model.turns = [wants(tool_call("quiz_master", topic="A"), tool_call("quiz_master", topic="B")), says("ok")]
        segments = await collect(orchestrator)

        events = [s.event.type for s in segments if isinstance(s, ArtifactEventSegment)]
        assert events[:6] == [ArtifactEventType.SET_ID, ArtifactEventType.SET_TITLE, ArtifactEventType.SET_KIND,
                              ArtifactEventType.CLEAR, ArtifactEventType.CONTENT_DELTA, ArtifactEventType.FINISH]

    @pytest.mark.asyncio
    async def test_closing_stream_cancels_work(self) -> None:
        blocking = Blocking()
        registry = CapabilityRegistry()
        registry.register(blocking)
        model = ScriptedModel(turns=[wants(tool_call("blocking"))])
        orchestrator = Orchestrator(registry=registry, models=ModelProvider.single(model))

        stream = orchestrator.run(QUIZ_ME)
        first = await stream.__anext__()
        assert isinstance(first, ToolCallSegment)
        await asyncio.wait_for(blocking.started.wait(), timeout=1.0)
        await stream.aclose()  # type: ignore[attr-defined]

        assert blocking.cancelled


# ─────────────────────────────────────────────────────────────────────────────
# Collected turns
# ─────────────────────────────────────────────────────────────────────────────


class TestRunToCompletion:
    @pytest.mark.asyncio
    async def test_turn_result(self, orchestrator: Orchestrator, model: ScriptedModel) -> None:
        model.turns = [wants(tool_call("quiz_master", topic="Cells"), text="Making a quiz."), says("Here it is!")]
        result = await orchestrator.run_to_completion(QUIZ_ME, owner="user-1")

        assert result.text == "Making a quiz.\n\nHere it is!"
        assert result.finish_reason is FinishReason.STOP
        assert result.steps == 1
        assert [r.success for r in result.results] == [True]
        assert [m.role for m in result.messages] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert result.artifact_events[-1].type is ArtifactEventType.FINISH

    def test_segments_serialize(self) -> None:
        assert orjson.loads(FinishSegment(FinishReason.STEP_BUDGET, 5).to_json()) == {
            "type": "finish", "finishReason": "step-budget", "steps": 5,
        }
        call = tool_call("tutor", topic="x")
        assert ToolCallSegment(call, 1).to_dict()["toolName"] == "tutor"
