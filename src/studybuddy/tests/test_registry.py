"""Tests for capability registration, validation, invocation and middleware."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel, Field

from studybuddy.core import (
    BaseCapability,
    CapabilityKind,
    CapabilityMetadata,
    CapabilityParams,
    Failure,
    Success,
    TurnContext,
    capability,
)
from studybuddy.errors import CapabilityException, ErrorCode
from studybuddy.middleware import LoggingMiddleware, Next, TimeoutMiddleware
from studybuddy.observability import MemoryRenderer
from studybuddy.registry import CapabilityRegistry, get_registry, reset_registry, set_registry
from studybuddy.testing import make_context


# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures: Capabilities
# ─────────────────────────────────────────────────────────────────────────────


class CountParams(CapabilityParams):
    word: str = Field(..., description="Word to count")
    times: int = Field(default=1, ge=1, le=5, description="Repetitions")


class Repeat(BaseCapability[CountParams]):
    metadata = CapabilityMetadata(name="repeat", description="Repeat a word several times")
    params_schema = CountParams

    def __init__(self) -> None:
        self.calls: list[CountParams] = []

    async def _execute(self, params: CountParams, ctx: TurnContext) -> Success:
        self.calls.append(params)
        return self._ok(" ".join([params.word] * params.times), times=params.times)


class Exploding(BaseCapability[CountParams]):
    metadata = CapabilityMetadata(name="exploding", description="Always raises while running")
    params_schema = CountParams

    async def _execute(self, params: CountParams, ctx: TurnContext) -> Success:
        raise RuntimeError("kaboom")


class Sleepy(BaseCapability[CountParams]):
    metadata = CapabilityMetadata(name="sleepy", description="Sleeps longer than allowed")
    params_schema = CountParams

    async def _execute(self, params: CountParams, ctx: TurnContext) -> Success:
        await asyncio.sleep(5)
        return self._ok("woke up")


@capability(description="Shout a phrase back in capitals")
async def shout(phrase: str, excited: bool = False) -> str:
    """Shout a phrase.

    Args:
        phrase: The phrase to shout
        excited: Add an exclamation mark
    """
    return phrase.upper() + ("!" if excited else "")


@capability(name="whoami", description="Report which turn and owner this is")
async def whoami(*, ctx: TurnContext) -> str:
    return f"{ctx.owner}:{ctx.turn_id}"


@pytest.fixture
def repeat() -> Repeat:
    return Repeat()


@pytest.fixture
def reg(repeat: Repeat) -> CapabilityRegistry:
    registry = CapabilityRegistry()
    registry.register_all(repeat, Exploding(), shout, whoami)
    return registry


# ─────────────────────────────────────────────────────────────────────────────
# Registration
# ─────────────────────────────────────────────────────────────────────────────


class TestRegistration:
    def test_duplicate_names_rejected(self, reg: CapabilityRegistry) -> None:
        with pytest.raises(ValueError, match="already registered"):
            reg.register(Repeat())

    def test_blank_padded_description_rejected(self) -> None:
        class Vague(Repeat):
            metadata = CapabilityMetadata(name="vague", description="  do it      ")

        with pytest.raises(ValueError, match="too short"):
            CapabilityRegistry().register(Vague())

    def test_lookup(self, reg: CapabilityRegistry, repeat: Repeat) -> None:
        assert reg.get("repeat") is repeat
        assert reg["repeat"] is repeat
        assert "shout" in reg and len(reg) == 4
        assert reg.get("Repeat") is None
        assert reg.names == ["repeat", "exploding", "shout", "whoami"]

    def test_resolve_unknown(self, reg: CapabilityRegistry) -> None:
        with pytest.raises(CapabilityException) as info:
            reg.resolve("missing")
        assert info.value.error.code == ErrorCode.NOT_FOUND

    def test_unregister(self, reg: CapabilityRegistry) -> None:
        assert reg.unregister("repeat") is True
        assert reg.unregister("repeat") is False

    def test_global_registry(self) -> None:
        custom = CapabilityRegistry()
        set_registry(custom)
        assert get_registry() is custom
        reset_registry()
        assert get_registry() is not custom


class TestDescriptors:
    def test_list_active_excludes(self, reg: CapabilityRegistry) -> None:
        names = [d.name for d in reg.list_active(exclude={"exploding", "whoami"})]
        assert names == ["repeat", "shout"]

    def test_tool_schema_shape(self, reg: CapabilityRegistry) -> None:
        schema = reg.tool_schemas()[0]
        assert schema["type"] == "function"
        fn = schema["function"]
        assert fn["name"] == "repeat"
        assert fn["parameters"]["required"] == ["word"]
        assert fn["parameters"]["additionalProperties"] is False

    def test_decorated_schema_skips_ctx(self, reg: CapabilityRegistry) -> None:
        shout_schema = reg["shout"].descriptor.input_schema
        assert shout_schema["properties"]["phrase"]["description"] == "The phrase to shout"
        assert reg["whoami"].descriptor.input_schema.get("properties", {}) == {}

    def test_describe(self, reg: CapabilityRegistry) -> None:
        text = reg.describe(exclude={"exploding"})
        assert "**repeat** (direct)" in text
        assert "exploding" not in text


# ─────────────────────────────────────────────────────────────────────────────
# Validation & Invocation
# ─────────────────────────────────────────────────────────────────────────────


class TestInvoke:
    @pytest.mark.asyncio
    async def test_success(self, reg: CapabilityRegistry) -> None:
        result = await reg.invoke("repeat", {"word": "hi", "times": 3}, make_context())
        assert isinstance(result, Success)
        assert result.summary == "hi hi hi"
        assert result.structured_data == {"times": 3}

    @pytest.mark.asyncio
    async def test_unknown_capability(self, reg: CapabilityRegistry) -> None:
        result = await reg.invoke("teleport", {}, make_context())
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.NOT_FOUND
        assert "teleport" in result.summary and "repeat" in result.summary

    @pytest.mark.asyncio
    async def test_excluded_capability_is_unknown(self, reg: CapabilityRegistry, repeat: Repeat) -> None:
        result = await reg.invoke("repeat", {"word": "hi"}, make_context(), exclude={"repeat"})
        assert result.code == ErrorCode.NOT_FOUND  # type: ignore[union-attr]
        assert repeat.calls == []

    @pytest.mark.parametrize(("arguments", "field"), [
        ({}, "word"),
        ({"word": "hi", "times": 9}, "times"),
        ({"word": "hi", "times": "2"}, "times"),
        ({"word": "hi", "colour": "red"}, "colour"),
    ])
    @pytest.mark.asyncio
    async def test_invalid_arguments_never_reach_body(
        self, reg: CapabilityRegistry, repeat: Repeat, arguments: dict[str, object], field: str,
    ) -> None:
        result = await reg.invoke("repeat", arguments, make_context())
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.INVALID_PARAMS
        assert field in result.summary
        assert repeat.calls == []

    def test_validate(self, reg: CapabilityRegistry) -> None:
        assert reg.validate("repeat", {"word": "x"}).is_ok()
        assert reg.validate("repeat", {"word": 1}).is_err()

    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self, reg: CapabilityRegistry) -> None:
        result = await reg.invoke("exploding", {"word": "x"}, make_context())
        assert isinstance(result, Failure)
        assert "kaboom" in result.summary
        assert result.diagnostic is not None and "trace" in result.diagnostic

    @pytest.mark.asyncio
    async def test_function_capability(self, reg: CapabilityRegistry) -> None:
        result = await reg.invoke("shout", {"phrase": "hey", "excited": True}, make_context())
        assert result.summary == "HEY!"

    @pytest.mark.asyncio
    async def test_context_injected(self, reg: CapabilityRegistry) -> None:
        ctx = make_context(owner="user-7")
        result = await reg.invoke("whoami", {}, ctx)
        assert result.summary == f"user-7:{ctx.turn_id}"

    def test_decorator_requires_async(self) -> None:
        with pytest.raises(TypeError):
            capability(description="Synchronous functions are rejected")(lambda: "x")  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# Middleware
# ─────────────────────────────────────────────────────────────────────────────


class TestMiddleware:
    @pytest.mark.asyncio
    async def test_order_first_is_outermost(self, reg: CapabilityRegistry) -> None:
        order: list[str] = []

        def tagging(tag: str):  # type: ignore[no-untyped-def]
            async def mw(cap: BaseCapability[BaseModel], params: BaseModel, ctx: TurnContext, next: Next) -> Success | Failure:  # noqa: A002
                order.append(f"{tag}:in")
                result = await next(cap, params, ctx)
                order.append(f"{tag}:out")
                return result
            return mw

        reg.use(tagging("outer"))
        reg.use(tagging("inner"))
        await reg.invoke("repeat", {"word": "x"}, make_context())
        assert order == ["outer:in", "inner:in", "inner:out", "outer:out"]

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        reg = CapabilityRegistry()
        reg.register(Sleepy())
        reg.use(TimeoutMiddleware(timeout=0.05))
        result = await reg.invoke("sleepy", {"word": "zz"}, make_context())
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.TIMEOUT
        assert result.summary == "sleepy took too long to respond. Please try again."

    @pytest.mark.asyncio
    async def test_logging(self, reg: CapabilityRegistry, log_records: MemoryRenderer) -> None:
        reg.use(LoggingMiddleware())
        await reg.invoke("repeat", {"word": "x"}, make_context())
        await reg.invoke("exploding", {"word": "x"}, make_context())
        assert "invocation succeeded" in log_records.events("info")
        assert "invocation failed" in log_records.events("warning")

    @pytest.mark.asyncio
    async def test_middleware_error_becomes_failure(self, reg: CapabilityRegistry) -> None:
        async def broken(cap: BaseCapability[BaseModel], params: BaseModel, ctx: TurnContext, next: Next) -> Success | Failure:  # noqa: A002
            raise RuntimeError("middleware bug")

        reg.use(broken)
        result = await reg.invoke("repeat", {"word": "x"}, make_context())
        assert isinstance(result, Failure)
        assert result.summary == "repeat failed unexpectedly."

    def test_kind_default_is_direct(self, reg: CapabilityRegistry) -> None:
        assert reg["repeat"].kind is CapabilityKind.DIRECT
