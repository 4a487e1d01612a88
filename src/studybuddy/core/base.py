"""Core capability abstractions: BaseCapability, ArtifactCapability and metadata.

A capability is a named unit the orchestrating model can invoke. Each one
declares a typed input schema and either answers with text (direct
capabilities) or builds an artifact on the turn's channel (artifact
capabilities). Invocation never raises: every outcome is a Success or a
Failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from studybuddy.errors import (
    CapabilityException,
    Err,
    ErrorCode,
    ErrorTrace,
    JsonDict,
    Ok,
    Result,
    format_validation_error,
    invalid_fields,
    trace,
    trace_from_exc,
)

from .results import Failure, Success

if TYPE_CHECKING:
    from studybuddy.observability import BoundLogger
    from studybuddy.store import ArtifactRecord

    from .context import TurnContext


class CapabilityKind(StrEnum):
    """How a capability delivers its output."""
    DIRECT = "direct"      # Text result folded back into the conversation
    ARTIFACT = "artifact"  # Side effect on the artifact channel plus a short acknowledgment


class CapabilityMetadata(BaseModel):
    """Metadata describing a capability.

    The description is the only signal the orchestrating model has for
    routing, so it must say plainly when to use the capability.

    Attributes:
        name: Unique identifier (e.g. "quiz_master")
        description: When to use this capability (shown to the model)
        kind: direct or artifact
        display_name: Human-facing agent name used in results (defaults to name)
        category: Grouping category (e.g. "learning", "external")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., pattern=r"^[a-z][a-zA-Z0-9_]*$")
    description: str = Field(..., min_length=10)
    kind: CapabilityKind = CapabilityKind.DIRECT
    display_name: str | None = None
    category: str = Field(default="general")

    @property
    def agent_name(self) -> str:
        return self.display_name or self.name


class CapabilityDescriptor(BaseModel):
    """What the orchestrating model sees of a capability."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    kind: CapabilityKind
    input_schema: JsonDict

    def to_tool_schema(self) -> JsonDict:
        """OpenAI function-calling shape."""
        return {"type": "function",
                "function": {"name": self.name, "description": self.description, "parameters": self.input_schema}}


class CapabilityParams(BaseModel):
    """Base for capability input schemas.

    Arguments arrive with camelCase keys. Unknown keys and mistyped values
    are rejected rather than coerced.
    """

    model_config = ConfigDict(extra="forbid", strict=True, alias_generator=to_camel, populate_by_name=True)


class EmptyParams(CapabilityParams):
    """Schema for capabilities with no inputs."""


TParams = TypeVar("TParams", bound=BaseModel)


def _trace_for(exc: Exception, operation: str) -> ErrorTrace:
    if isinstance(exc, CapabilityException):
        err = exc.error
        return trace(err.message, code=err.code, recoverable=err.recoverable).with_operation(operation)
    return trace_from_exc(exc, operation=operation)


class BaseCapability(ABC, Generic[TParams]):
    """Abstract base class for all capabilities.

    Subclasses must:
    - Define ``metadata`` with CapabilityMetadata
    - Define ``params_schema`` with the pydantic input model
    - Implement ``async _execute(params, ctx)`` returning a Success or Failure

    ``_execute`` may raise; ``execute`` turns any exception into a Failure.

    Example:
        >>> class EchoParams(CapabilityParams):
        ...     text: str
        ...
        >>> class Echo(BaseCapability[EchoParams]):
        ...     metadata = CapabilityMetadata(name="echo", description="Repeat the user's text back")
        ...     params_schema = EchoParams
        ...
        ...     async def _execute(self, params: EchoParams, ctx: TurnContext) -> Success:
        ...         return self._ok(params.text)
    """

    metadata: ClassVar[CapabilityMetadata]
    params_schema: ClassVar[type[BaseModel]]

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def kind(self) -> CapabilityKind:
        return self.metadata.kind

    @property
    def agent_name(self) -> str:
        return self.metadata.agent_name

    @property
    def descriptor(self) -> CapabilityDescriptor:
        return CapabilityDescriptor(
            name=self.metadata.name,
            description=self.metadata.description,
            kind=self.metadata.kind,
            input_schema=self.params_schema.model_json_schema(by_alias=True),
        )

    # ─────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────

    def validate(self, arguments: Mapping[str, Any]) -> Result[TParams, ErrorTrace]:
        """Check raw arguments against the input schema.

        The Err carries a field-level message the model can act on, e.g.
        ``numberOfQuestions: Input should be less than or equal to 10``.
        """
        try:
            return Ok(self.params_schema.model_validate(dict(arguments)))  # type: ignore[arg-type]
        except ValidationError as e:
            return Err(
                trace(f"Invalid arguments for {self.name}: {format_validation_error(e)}",
                      code=ErrorCode.INVALID_PARAMS)
                .with_operation(f"capability:{self.name}", fields=invalid_fields(e))
            )

    # ─────────────────────────────────────────────────────────────────
    # Result Helpers
    # ─────────────────────────────────────────────────────────────────

    def _ok(self, summary: str, **data: Any) -> Success:
        return Success(agent_name=self.agent_name, summary=summary, structured_data=data or None)

    def _failure(self, params: TParams | None, error: ErrorTrace, **extra: Any) -> Failure:
        return Failure.from_trace(self.agent_name, self.failure_summary(params, error), error, **extra)

    def failure_summary(self, params: TParams | None, error: ErrorTrace) -> str:
        """Text shown to the model when the capability fails. Override for friendlier wording."""
        return f"{self.agent_name} could not complete the request: {error.message}"

    # ─────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────

    @abstractmethod
    async def _execute(self, params: TParams, ctx: TurnContext) -> Success | Failure:
        """Do the work. Exceptions are converted to Failure by ``execute``."""
        ...

    async def execute(self, params: TParams, ctx: TurnContext) -> Success | Failure:
        """Run with validated params. Never raises (cancellation still propagates)."""
        try:
            return await self._execute(params, ctx)
        except Exception as e:
            ctx.log.exception("capability failed", capability=self.name)
            return self._failure(params, _trace_for(e, f"capability:{self.name}"))

    async def invoke(self, arguments: Mapping[str, Any], ctx: TurnContext) -> Success | Failure:
        """Validate raw arguments then execute. Invalid arguments never reach ``_execute``."""
        validated = self.validate(arguments)
        if validated.is_err():
            return Failure.from_trace(self.agent_name, validated.unwrap_err().message, validated.unwrap_err())
        return await self.execute(validated.unwrap(), ctx)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, kind={self.kind.value!r})"


# ─────────────────────────────────────────────────────────────────────────────
# Artifact Capabilities
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ArtifactPlan:
    """Identity of the artifact an invocation will write."""
    artifact_id: str
    title: str
    kind: str
    previous: ArtifactRecord | None = None


class ArtifactCapability(BaseCapability[TParams]):
    """Capability whose output is an artifact streamed on the turn's channel.

    The creation sequence is fixed: SetId, SetTitle, SetKind, Clear, one
    full-snapshot ContentDelta, Finish. Finish is emitted even when
    generation fails, before the Failure is returned. The artifact is then
    persisted when the turn has an owner; persistence failures are logged
    and never fail the invocation.

    Subclasses set ``artifact_kind`` and implement ``title_for``,
    ``_generate`` and ``_summarize``. Override ``_prepare`` to write to an
    existing artifact id instead of a fresh one.
    """

    metadata: ClassVar[CapabilityMetadata]
    artifact_kind: ClassVar[str]

    def title_for(self, params: TParams) -> str:
        return self.agent_name

    async def _prepare(self, params: TParams, ctx: TurnContext) -> ArtifactPlan:
        return ArtifactPlan(artifact_id=str(uuid4()), title=self.title_for(params), kind=self.artifact_kind)

    @abstractmethod
    async def _generate(self, params: TParams, ctx: TurnContext, plan: ArtifactPlan) -> BaseModel | str:
        """Produce the complete payload. Called inside an open artifact session."""
        ...

    @abstractmethod
    def _summarize(self, params: TParams, plan: ArtifactPlan, payload: Any) -> tuple[str, JsonDict]:
        """Acknowledgment for the model and cheap metadata (counts, topic)."""
        ...

    async def _execute(self, params: TParams, ctx: TurnContext) -> Success | Failure:
        plan = await self._prepare(params, ctx)
        log = ctx.log.bind(artifact_id=plan.artifact_id)
        try:
            async with ctx.channel.session(plan.kind, plan.title, artifact_id=plan.artifact_id, log=log) as session:
                payload = await self._generate(params, ctx, plan)
                content = session.write(payload)
        except Exception as e:
            log.exception("artifact generation failed")
            error = _trace_for(e, f"capability:{self.name}").with_operation("generate", artifact_id=plan.artifact_id)
            return self._failure(params, error, documentId=plan.artifact_id)

        persisted = await self._persist(ctx, plan, content, log)
        summary, data = self._summarize(params, plan, payload)
        return Success(
            agent_name=self.agent_name,
            summary=summary,
            structured_data={"documentId": plan.artifact_id, "kind": plan.kind, "title": plan.title,
                             "persisted": persisted, **data},
        )

    async def _persist(self, ctx: TurnContext, plan: ArtifactPlan, content: str, log: BoundLogger) -> bool:
        if not ctx.can_persist:
            return False
        try:
            await ctx.store.save(plan.artifact_id, plan.title, plan.kind, content, ctx.owner)  # type: ignore[union-attr]
        except Exception:
            log.exception("artifact persistence failed")
            return False
        return True
