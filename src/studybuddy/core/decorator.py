"""Decorator-based capability definition for async functions.

Example:
    >>> @capability(description="Convert a temperature between Celsius and Fahrenheit")
    ... async def convert_temperature(value: float, to: str = "fahrenheit") -> str:
    ...     '''Convert a temperature.
    ...
    ...     Args:
    ...         value: Temperature to convert
    ...         to: Target unit
    ...     '''
    ...     return f"{value * 9 / 5 + 32:.1f}°F"
    ...
    >>> registry.register(convert_temperature)  # It's a BaseCapability

Functions may declare a ``ctx`` parameter to receive the TurnContext; it is
injected and never part of the input schema. They return a string (wrapped
as Success) or a Success/Failure directly.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Awaitable, Callable
from typing import Any, get_type_hints

from pydantic import BaseModel, Field, create_model

from .base import BaseCapability, CapabilityKind, CapabilityMetadata, CapabilityParams
from .context import TurnContext
from .results import Failure, Success

CapabilityFunc = Callable[..., Awaitable[str | Success | Failure]]

_CTX_PARAM = "ctx"


# ─────────────────────────────────────────────────────────────────────────────
# Docstring Parsing
# ─────────────────────────────────────────────────────────────────────────────

_PARAM_PATTERN = re.compile(
    r"^\s*(?P<name>\w+)\s*(?:\([^)]*\))?\s*:\s*(?P<desc>.+?)(?=\n\s*\w+\s*:|$)",
    re.MULTILINE | re.DOTALL,
)


def _parse_docstring_params(docstring: str | None) -> dict[str, str]:
    """Extract parameter descriptions from a Google style Args section."""
    if not docstring:
        return {}
    sections = re.split(r"\n\s*(?:Args|Arguments|Parameters)\s*:\s*\n", docstring, flags=re.IGNORECASE)
    if len(sections) < 2:
        return {}
    args_section = re.split(r"\n\s*(?:Returns|Raises|Examples?|Notes?)\s*:", sections[1], flags=re.IGNORECASE)[0]
    return {m.group("name"): " ".join(m.group("desc").split()) for m in _PARAM_PATTERN.finditer(args_section)}


def _first_line(docstring: str | None) -> str:
    return (docstring or "").strip().split("\n", 1)[0].strip()


# ─────────────────────────────────────────────────────────────────────────────
# Schema Generation
# ─────────────────────────────────────────────────────────────────────────────

def _generate_schema(func: Callable[..., Any], model_name: str) -> type[BaseModel]:
    """Build a CapabilityParams model from the function signature, skipping ``ctx``."""
    sig = inspect.signature(func)
    hints = get_type_hints(func, localns={"TurnContext": TurnContext})
    docs = _parse_docstring_params(func.__doc__)

    fields: dict[str, Any] = {}
    for name, param in sig.parameters.items():
        if name == _CTX_PARAM:
            continue
        field_type = hints.get(name, str)
        description = docs.get(name, f"Parameter: {name}")
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[name] = (field_type, Field(default, description=description))

    return create_model(model_name, __base__=CapabilityParams, **fields)  # type: ignore[call-overload, no-any-return]


# ─────────────────────────────────────────────────────────────────────────────
# FunctionCapability
# ─────────────────────────────────────────────────────────────────────────────

class FunctionCapability(BaseCapability[BaseModel]):
    """BaseCapability wrapping a decorated async function."""

    __slots__ = ("_func", "_wants_ctx")

    def __init__(self, func: CapabilityFunc, metadata: CapabilityMetadata, params_schema: type[BaseModel]) -> None:
        self._func = func
        self._wants_ctx = _CTX_PARAM in inspect.signature(func).parameters
        # Per-function subclass so metadata/params_schema stay class-level like hand-written capabilities
        self.__class__ = type(
            f"FunctionCapability_{metadata.name}",
            (FunctionCapability,),
            {"metadata": metadata, "params_schema": params_schema},
        )

    async def _execute(self, params: BaseModel, ctx: TurnContext) -> Success | Failure:
        kwargs = params.model_dump()
        if self._wants_ctx:
            kwargs[_CTX_PARAM] = ctx
        result = await self._func(**kwargs)
        if isinstance(result, Success | Failure):
            return result
        return self._ok(str(result))

    @property
    def func(self) -> CapabilityFunc:
        return self._func


def capability(
    func: CapabilityFunc | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    display_name: str | None = None,
    category: str = "general",
    params: type[BaseModel] | None = None,
) -> FunctionCapability | Callable[[CapabilityFunc], FunctionCapability]:
    """Decorator turning an async function into a direct capability.

    Args:
        func: The function (when used without parentheses)
        name: Capability name (defaults to the function name)
        description: Routing description (defaults to the first docstring line)
        display_name: Agent name used in results
        category: Grouping category
        params: Explicit input schema; generated from the signature when omitted
    """
    def decorator(fn: CapabilityFunc) -> FunctionCapability:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"@capability requires an async function, got {fn!r}")
        cap_name = name or fn.__name__
        desc = description or _first_line(fn.__doc__)
        metadata = CapabilityMetadata(
            name=cap_name, description=desc, kind=CapabilityKind.DIRECT,
            display_name=display_name, category=category,
        )
        schema = params or _generate_schema(fn, f"{cap_name[0].upper()}{cap_name[1:]}Params")
        return FunctionCapability(fn, metadata, schema)

    return decorator(func) if func is not None else decorator
