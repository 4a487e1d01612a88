"""Bounded, model-driven loop that routes a conversation turn to capabilities.

Per step the orchestrating model sees the conversation and the active
capability schemas, then either answers with text (the turn ends) or requests
invocations. Requested invocations run concurrently; each one completes,
including the Finish of any artifact it built, before its summary is folded
back into the conversation as a tool message. The loop stops after
``step_budget`` invocation rounds no matter what the model asks for.

Example:
    >>> orchestrator = Orchestrator(registry, ModelProvider.from_settings(settings.model))
    >>> async for segment in orchestrator.run([Message.user("Quiz me on cell biology")]):
    ...     print(segment.to_json())
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Collection, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from studybuddy.channel import ArtifactChannel, ArtifactEvent
from studybuddy.core import Failure, Success, TurnContext
from studybuddy.errors import ErrorCode, trace
from studybuddy.llm import CHAT_MODEL, REASONING_MODEL, Message, ModelProvider, ToolCall
from studybuddy.observability import BoundLogger, get_logger

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

if TYPE_CHECKING:
    import httpx

    from studybuddy.config import StudyBuddySettings
    from studybuddy.registry import CapabilityRegistry
    from studybuddy.store import ArtifactStore

_MODEL_UNAVAILABLE = "Sorry, I couldn't reach the assistant model just now. Please try again."


@dataclass(slots=True)
class Orchestrator:
    """Runs conversation turns against a capability registry.

    Attributes:
        registry: Capabilities the model may invoke (shared, read-only)
        models: Named language models
        store: Artifact store handed to capabilities (None disables persistence)
        step_budget: Max invocation rounds per turn
        concurrent: Run the invocations of one step concurrently
        system_prompt: Base prompt, the capability list is appended
        http: Shared HTTP client passed to capabilities
        settings: Settings handed to capabilities (None means ``get_settings()``)
    """

    registry: CapabilityRegistry
    models: ModelProvider
    store: ArtifactStore | None = None
    step_budget: int = 5
    concurrent: bool = True
    system_prompt: str = STUDY_BUDDY_PROMPT
    http: httpx.AsyncClient | None = None
    settings: StudyBuddySettings | None = None
    log: BoundLogger = field(default_factory=lambda: get_logger("orchestrator"))

    @classmethod
    def from_settings(
        cls,
        registry: CapabilityRegistry,
        settings: StudyBuddySettings,
        *,
        models: ModelProvider | None = None,
        store: ArtifactStore | None = None,
    ) -> Orchestrator:
        return cls(
            registry=registry,
            models=models or ModelProvider.from_settings(settings.model),
            store=store,
            step_budget=settings.orchestrator.step_budget,
            concurrent=settings.orchestrator.concurrent_invocations,
            settings=settings,
        )

    def _exclusions(self, model: str, exclude: Collection[str]) -> frozenset[str]:
        # Reasoning mode answers without tools
        if model == REASONING_MODEL:
            return frozenset(self.registry.names)
        return frozenset(exclude)

    def _system_for(self, model: str, exclude: frozenset[str]) -> str:
        if model == REASONING_MODEL:
            return REASONING_PROMPT
        return build_system_prompt(self.system_prompt, self.registry.describe(exclude))

    # ─────────────────────────────────────────────────────────────────
    # Streaming Entry Point
    # ─────────────────────────────────────────────────────────────────

    async def run(
        self,
        conversation: Sequence[Message],
        *,
        owner: str | None = None,
        exclude: Collection[str] = (),
        step_budget: int | None = None,
        model: str = CHAT_MODEL,
        transcript: list[Message] | None = None,
    ) -> AsyncIterator[OutputSegment]:
        """Stream one turn's output segments. The last segment is always a FinishSegment.

        Args:
            conversation: Messages so far, ending with the user's message
            owner: Authenticated owner id; artifacts are persisted only when set
            exclude: Capability names hidden from the model for this turn
            step_budget: Override the configured budget
            model: ``chat-model`` or ``chat-model-reasoning`` (no capabilities)
            transcript: List extended with the conversation plus new assistant/tool messages

        Closing the iterator early cancels in-flight model and capability work.
        """
        budget = step_budget if step_budget is not None else self.step_budget
        if budget < 1:
            raise ValueError(f"step_budget must be >= 1, got {budget}")

        queue: asyncio.Queue[OutputSegment | None] = asyncio.Queue()

        def relay(event: ArtifactEvent) -> None:
            queue.put_nowait(ArtifactEventSegment(event))

        channel = ArtifactChannel(relay)
        ctx = TurnContext(channel=channel, models=self.models, store=self.store, owner=owner, http=self.http,
                          settings=self.settings)
        ctx.log = self.log.bind(turn_id=ctx.turn_id)
        messages = transcript if transcript is not None else []
        messages.extend(conversation)
        excluded = self._exclusions(model, exclude)

        task = asyncio.create_task(self._drive(queue, ctx, messages, excluded, budget, model))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while (segment := await queue.get()) is not None:
                yield segment
            await task
        finally:
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
                ctx.log.info("turn cancelled")
            channel.close()

    async def run_to_completion(self, conversation: Sequence[Message], **kwargs: object) -> TurnResult:
        """Run a turn and collect everything it produced."""
        transcript: list[Message] = []
        text: list[str] = []
        invocations: list[Invocation] = []
        events: list[ArtifactEvent] = []
        finish = FinishSegment(FinishReason.STOP, 0)

        async for segment in self.run(conversation, transcript=transcript, **kwargs):  # type: ignore[arg-type]
            match segment:
                case TextSegment(text=t):
                    text.append(t)
                case ToolResultSegment(call=call, result=result, step=step):
                    invocations.append(Invocation(call, result, step))
                case ArtifactEventSegment(event=event):
                    events.append(event)
                case FinishSegment():
                    finish = segment

        return TurnResult(
            text="\n\n".join(text), steps=finish.steps, finish_reason=finish.reason,
            invocations=invocations, messages=transcript, artifact_events=events,
        )

    # ─────────────────────────────────────────────────────────────────
    # Step Loop
    # ─────────────────────────────────────────────────────────────────

    async def _drive(
        self,
        queue: asyncio.Queue[OutputSegment | None],
        ctx: TurnContext,
        messages: list[Message],
        exclude: frozenset[str],
        budget: int,
        model_name: str,
    ) -> None:
        emit = queue.put_nowait
        model = ctx.model(model_name)
        tools = self.registry.tool_schemas(exclude)
        system = self._system_for(model_name, exclude)
        steps = 0

        while True:
            try:
                turn = await model.complete(messages, tools=tools, system=system)
            except Exception:
                ctx.log.exception("model call failed", step=steps)
                emit(ErrorSegment(_MODEL_UNAVAILABLE))
                emit(FinishSegment(FinishReason.ERROR, steps))
                return

            if turn.text:
                emit(TextSegment(turn.text))
            messages.append(Message.assistant(turn.text, turn.tool_calls))

            if not turn.wants_tools:
                emit(FinishSegment(FinishReason.STOP, steps))
                return

            steps += 1
            for call in turn.tool_calls:
                emit(ToolCallSegment(call, steps))

            results = await self._invoke_all(turn.tool_calls, ctx, exclude)
            for call, result in zip(turn.tool_calls, results, strict=True):
                messages.append(Message.tool(call, result.summary))
                emit(ToolResultSegment(call, result, steps))

            if steps >= budget:
                ctx.log.warning("step budget exhausted", budget=budget)
                notice = budget_notice(budget)
                messages.append(Message.assistant(notice))
                emit(TextSegment(notice))
                emit(FinishSegment(FinishReason.STEP_BUDGET, steps))
                return

    async def _invoke_all(
        self, calls: Sequence[ToolCall], ctx: TurnContext, exclude: frozenset[str],
    ) -> list[Success | Failure]:
        if self.concurrent and len(calls) > 1:
            return list(await asyncio.gather(*(self._invoke(c, ctx, exclude) for c in calls)))
        return [await self._invoke(c, ctx, exclude) for c in calls]

    async def _invoke(self, call: ToolCall, ctx: TurnContext, exclude: frozenset[str]) -> Success | Failure:
        if call.parse_error:
            error = trace(call.parse_error, code=ErrorCode.INVALID_PARAMS).with_operation("orchestrator:parse")
            return Failure.from_trace(call.name or "unknown", f"Invalid arguments for {call.name}: {call.parse_error}", error)
        return await self.registry.invoke(call.name, call.arguments, ctx, exclude=exclude)
