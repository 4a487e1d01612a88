"""Test doubles for orchestrator and capability tests.

Provides:
- ScriptedModel: LanguageModel that replays scripted turns and payloads
- MockAsyncRedisClient: in-memory sorted sets for RedisArtifactStore
- make_context: TurnContext wired to a recording channel
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel

from studybuddy.channel import ArtifactChannel, ArtifactEvent
from studybuddy.core import TurnContext
from studybuddy.llm import Message, ModelProvider, ModelTurn, ToolCall
from studybuddy.store import ArtifactStore

M = TypeVar("M", bound=BaseModel)

TurnScript = ModelTurn | Exception | Callable[[Sequence[Message]], ModelTurn]
ObjectScript = BaseModel | Mapping[str, Any] | Exception | Callable[[str], Any]


def tool_call(name: str, /, **arguments: Any) -> ToolCall:
    """ToolCall with keyword arguments as its JSON arguments."""
    return ToolCall(name=name, arguments=arguments)


def wants(*calls: ToolCall, text: str = "") -> ModelTurn:
    """Model turn requesting the given invocations."""
    return ModelTurn(text=text, tool_calls=calls)


def says(text: str) -> ModelTurn:
    """Model turn answering with text only."""
    return ModelTurn(text=text)


@dataclass(slots=True)
class ModelCall:
    """Record of a single model call."""
    method: str
    prompt: str | None = None
    messages: tuple[Message, ...] = ()
    tools: tuple[str, ...] = ()
    system: str | None = None
    schema: type[BaseModel] | None = None


@dataclass
class ScriptedModel:
    """LanguageModel replaying a script.

    ``turns`` feeds ``complete``: each entry is returned in order, raised if it
    is an exception, or called with the conversation if callable. Once the
    script runs out, ``complete`` answers ``default_text`` with no tool calls.
    ``objects`` maps schemas to payloads for ``generate_object``; a callable
    payload gets the prompt. ``texts`` feeds ``generate_text`` the same way.

    Example:
        >>> model = ScriptedModel(turns=[wants(tool_call("tutor", topic="DNA")), says("Done")])
        >>> provider = ModelProvider.single(model)
    """

    turns: list[TurnScript] = field(default_factory=list)
    texts: list[str | Exception] = field(default_factory=list)
    objects: dict[type[BaseModel], ObjectScript] = field(default_factory=dict)
    default_text: str = "All done."
    delay: float = 0.0
    calls: list[ModelCall] = field(default_factory=list)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_to(self, method: str) -> list[ModelCall]:
        return [c for c in self.calls if c.method == method]

    async def _pause(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[Mapping[str, Any]] = (),
        system: str | None = None,
    ) -> ModelTurn:
        self.calls.append(ModelCall(
            "complete", messages=tuple(messages), system=system,
            tools=tuple(t["function"]["name"] for t in tools),
        ))
        await self._pause()
        if not self.turns:
            return ModelTurn(text=self.default_text)
        step = self.turns.pop(0)
        if isinstance(step, Exception):
            raise step
        return step(messages) if callable(step) else step

    async def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        self.calls.append(ModelCall("generate_text", prompt=prompt, system=system))
        await self._pause()
        if not self.texts:
            return f"Generated text for: {prompt[:60]}"
        text = self.texts.pop(0)
        if isinstance(text, Exception):
            raise text
        return text

    async def generate_object(self, schema: type[M], prompt: str, *, system: str | None = None) -> M:
        self.calls.append(ModelCall("generate_object", prompt=prompt, system=system, schema=schema))
        await self._pause()
        if schema not in self.objects:
            raise LookupError(f"No scripted object for {schema.__name__}")
        script = self.objects[schema]
        if isinstance(script, Exception):
            raise script
        value = script(prompt) if callable(script) else script
        return value if isinstance(value, schema) else schema.model_validate(value)


# ─────────────────────────────────────────────────────────────────────────────
# Context Helpers
# ─────────────────────────────────────────────────────────────────────────────


def make_context(
    model: ScriptedModel | None = None,
    *,
    store: ArtifactStore | None = None,
    owner: str | None = None,
    sink: Callable[[ArtifactEvent], None] | None = None,
) -> TurnContext:
    """TurnContext over a fresh channel; inspect ``ctx.channel.events`` afterwards."""
    return TurnContext(
        channel=ArtifactChannel(sink),
        models=ModelProvider.single(model or ScriptedModel()),
        store=store,
        owner=owner,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Redis
# ─────────────────────────────────────────────────────────────────────────────


def _bound(raw: float | str) -> tuple[float, bool]:
    """Parse a redis score bound into (value, exclusive)."""
    if isinstance(raw, str):
        exclusive = raw.startswith("(")
        text = raw[1:] if exclusive else raw
        match text:
            case "+inf": return float("inf"), exclusive
            case "-inf": return float("-inf"), exclusive
            case _: return float(text), exclusive
    return float(raw), False


class MockAsyncRedisClient:
    """In-memory mock of the async Redis sorted-set commands the store uses."""

    def __init__(self) -> None:
        self._sets: dict[str, dict[str, float]] = {}
        self.commands: list[str] = []

    def _sorted(self, name: str) -> list[str]:
        members = self._sets.get(name, {})
        return sorted(members, key=lambda m: (members[m], m))

    async def zadd(self, name: str, mapping: dict[str, float]) -> int:
        self.commands.append("zadd")
        members = self._sets.setdefault(name, {})
        added = sum(1 for m in mapping if m not in members)
        members.update(mapping)
        return added

    async def zrange(self, name: str, start: int, end: int) -> list[bytes]:
        self.commands.append("zrange")
        ordered = self._sorted(name)
        n = len(ordered)
        lo = max(start + n if start < 0 else start, 0)
        hi = end + n if end < 0 else min(end, n - 1)
        return [m.encode() for m in ordered[lo:hi + 1]] if lo <= hi else []

    async def zremrangebyscore(self, name: str, min: float | str, max: float | str) -> int:  # noqa: A002
        self.commands.append("zremrangebyscore")
        lo, lo_open = _bound(min)
        hi, hi_open = _bound(max)
        members = self._sets.get(name, {})
        doomed = [
            m for m, s in members.items()
            if (s > lo if lo_open else s >= lo) and (s < hi if hi_open else s <= hi)
        ]
        for m in doomed:
            del members[m]
        if not members:
            self._sets.pop(name, None)
        return len(doomed)

    async def ping(self) -> bool:
        return True
