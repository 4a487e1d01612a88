"""Core middleware types and chain composition.

Middleware follows continuation-passing style: each middleware receives
the capability, validated params, the turn context, and a ``next`` function
to call downstream. The innermost step is ``capability.execute``, which
never raises, so middleware always gets a Success or Failure back.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel

if TYPE_CHECKING:
    from studybuddy.core import BaseCapability, Failure, Success, TurnContext


# Continuation: (capability, params, ctx) -> result
Next = Callable[["BaseCapability[BaseModel]", BaseModel, "TurnContext"], Awaitable["Success | Failure"]]


@runtime_checkable
class Middleware(Protocol):
    """Protocol for capability middleware.

    Example:
        >>> class AuditMiddleware:
        ...     async def __call__(self, capability, params, ctx, next):
        ...         result = await next(capability, params, ctx)
        ...         audit.record(capability.name, result.success)
        ...         return result
    """

    async def __call__(
        self,
        capability: BaseCapability[BaseModel],
        params: BaseModel,
        ctx: TurnContext,
        next: Next,  # noqa: A002
    ) -> Success | Failure:
        ...


def compose(middleware: Sequence[Middleware]) -> Next:
    """Compose middleware into a single execution function.

    Args:
        middleware: Ordered list of middleware (first = outermost)

    Returns:
        Composed async function: (capability, params, ctx) -> result
    """
    async def base(capability: BaseCapability[BaseModel], params: BaseModel, ctx: TurnContext) -> Success | Failure:
        return await capability.execute(params, ctx)

    chain: Next = base
    for mw in reversed(middleware):
        def make_wrapper(m: Middleware, nxt: Next) -> Next:
            async def wrapped(capability: BaseCapability[BaseModel], params: BaseModel, ctx: TurnContext) -> Success | Failure:
                return await m(capability, params, ctx, nxt)
            return wrapped
        chain = make_wrapper(mw, chain)

    return chain
