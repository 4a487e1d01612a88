"""Central registry for capability discovery and invocation.

The registry provides:
- Capability registration and lookup by exact name
- Descriptors and function-calling schemas for the orchestrating model
- Argument validation with field-level messages
- Middleware pipeline around execution

It is populated once at startup and only read afterwards, so one instance is
safely shared by every concurrent turn.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from studybuddy.core import BaseCapability, CapabilityDescriptor, Failure, Success
from studybuddy.errors import CapabilityException, ErrorCode, ErrorTrace, JsonDict, Result, trace, trace_from_exc
from studybuddy.middleware import Middleware, Next, compose

if TYPE_CHECKING:
    from studybuddy.core import TurnContext


class CapabilityRegistry:
    """Name to capability mapping plus the invocation pipeline.

    Example:
        >>> registry = CapabilityRegistry()
        >>> registry.register(QuizMaster())
        >>> registry.use(LoggingMiddleware())
        >>> result = await registry.invoke("quiz_master", {"topic": "Cells"}, ctx)
    """

    __slots__ = ("_capabilities", "_middleware", "_chain")

    def __init__(self) -> None:
        self._capabilities: dict[str, BaseCapability[BaseModel]] = {}
        self._middleware: list[Middleware] = []
        self._chain: Next | None = None

    def register(self, capability: BaseCapability[BaseModel]) -> None:
        """Register a capability instance with validation."""
        name = capability.metadata.name
        if name in self._capabilities:
            raise ValueError(f"Capability '{name}' already registered. Use unregister() first.")
        if len(capability.metadata.description.strip()) < 10:
            raise ValueError(f"Capability '{name}' description too short for model routing.")
        self._capabilities[name] = capability

    def register_all(self, *capabilities: BaseCapability[BaseModel]) -> None:
        for capability in capabilities:
            self.register(capability)

    def unregister(self, name: str) -> bool:
        """Remove a capability by name. Returns True if found."""
        return self._capabilities.pop(name, None) is not None

    def get(self, name: str) -> BaseCapability[BaseModel] | None:
        return self._capabilities.get(name)

    def resolve(self, name: str) -> BaseCapability[BaseModel]:
        """Exact-match lookup. Raises CapabilityException(NOT_FOUND)."""
        if (capability := self._capabilities.get(name)) is None:
            raise CapabilityException.create(
                name, f"Capability '{name}' not found in registry", ErrorCode.NOT_FOUND, recoverable=False,
            )
        return capability

    def __getitem__(self, name: str) -> BaseCapability[BaseModel]:
        return self._capabilities[name]

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    def __iter__(self) -> Iterator[BaseCapability[BaseModel]]:
        return iter(self._capabilities.values())

    @property
    def names(self) -> list[str]:
        return list(self._capabilities)

    # ─────────────────────────────────────────────────────────────────
    # Model-facing Views
    # ─────────────────────────────────────────────────────────────────

    def _active(self, exclude: Collection[str]) -> list[BaseCapability[BaseModel]]:
        return [c for n, c in self._capabilities.items() if n not in exclude]

    def list_active(self, exclude: Collection[str] = ()) -> list[CapabilityDescriptor]:
        """Descriptors of every capability not excluded, in registration order."""
        return [c.descriptor for c in self._active(exclude)]

    def tool_schemas(self, exclude: Collection[str] = ()) -> list[JsonDict]:
        """Active capabilities in OpenAI function-calling shape."""
        return [d.to_tool_schema() for d in self.list_active(exclude)]

    def describe(self, exclude: Collection[str] = ()) -> str:
        """Formatted capability list for system prompts."""
        return "\n".join(
            f"- **{c.name}** ({c.kind.value}): {c.metadata.description}" for c in self._active(exclude)
        )

    # ─────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────

    def validate(self, name: str, arguments: Mapping[str, Any]) -> Result[BaseModel, ErrorTrace]:
        """Validate arguments for a registered capability."""
        return self.resolve(name).validate(arguments)

    # ─────────────────────────────────────────────────────────────────
    # Middleware
    # ─────────────────────────────────────────────────────────────────

    def use(self, middleware: Middleware) -> None:
        """Add middleware. First added is outermost."""
        self._middleware.append(middleware)
        self._chain = None

    def _get_chain(self) -> Next:
        if self._chain is None:
            self._chain = compose(self._middleware)
        return self._chain

    # ─────────────────────────────────────────────────────────────────
    # Invocation
    # ─────────────────────────────────────────────────────────────────

    async def invoke(
        self,
        name: str,
        arguments: Mapping[str, Any],
        ctx: TurnContext,
        *,
        exclude: Collection[str] = (),
    ) -> Success | Failure:
        """Resolve, validate and execute through the middleware chain.

        Never raises. Unknown or excluded names and invalid arguments come back
        as Failure without touching the capability body.
        """
        capability = self._capabilities.get(name)
        if capability is None or name in exclude:
            available = ", ".join(c.name for c in self._active(exclude)) or "none"
            error = trace(f"Unknown capability '{name}'", code=ErrorCode.NOT_FOUND).with_operation("registry:resolve")
            ctx.log.warning("unknown capability requested", capability=name)
            return Failure.from_trace(
                name or "unknown",
                f"There is no capability named '{name}'. Available capabilities: {available}.",
                error,
            )

        validated = capability.validate(arguments)
        if validated.is_err():
            error = validated.unwrap_err()
            ctx.log.info("capability arguments rejected", capability=name, reason=error.message)
            return Failure.from_trace(capability.agent_name, error.message, error)

        scoped = ctx.for_capability(name, capability.kind.value)
        try:
            return await self._get_chain()(capability, validated.unwrap(), scoped)
        except CapabilityException as e:
            error = trace(e.error.message, code=e.error.code, recoverable=e.error.recoverable)
            return Failure.from_trace(capability.agent_name, e.error.render(), error)
        except Exception as e:
            scoped.log.exception("middleware chain failed")
            error = trace_from_exc(e, operation=f"capability:{name}")
            return Failure.from_trace(capability.agent_name, f"{capability.agent_name} failed unexpectedly.", error)

    def clear(self) -> None:
        """Remove all capabilities and middleware."""
        self._capabilities.clear()
        self._middleware.clear()
        self._chain = None


# ─────────────────────────────────────────────────────────────────────────────
_registry: CapabilityRegistry | None = None


def get_registry() -> CapabilityRegistry:
    """Get the global capability registry instance."""
    global _registry
    if _registry is None:
        _registry = CapabilityRegistry()
    return _registry


def set_registry(registry: CapabilityRegistry) -> None:
    """Replace the global registry."""
    global _registry
    _registry = registry


def reset_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
