"""Built-in middleware: structured logging and per-invocation timeouts."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel

from studybuddy.core import Failure, Success
from studybuddy.errors import ErrorCode, trace

from .middleware import Next

if TYPE_CHECKING:
    from studybuddy.core import BaseCapability, TurnContext


# ─────────────────────────────────────────────────────────────────────────────
# Logging Middleware
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(slots=True)
class LoggingMiddleware:
    """Log capability execution with timing and result status.

    Logs at INFO for successes and WARNING for failures, through the turn's
    bound logger so entries carry the turn id.

    Args:
        log_params: Include validated params in the start entry (off by default for privacy)

    Example:
        >>> registry.use(LoggingMiddleware(log_params=True))
    """

    log_params: bool = False

    async def __call__(
        self,
        capability: BaseCapability[BaseModel],
        params: BaseModel,
        ctx: TurnContext,
        next: Next,  # noqa: A002
    ) -> Success | Failure:
        log = ctx.log.bind_capability(capability.name, capability.kind.value)
        if self.log_params:
            log.info("invocation started", params=params.model_dump(by_alias=True))
        else:
            log.info("invocation started")

        start = time.perf_counter()
        result = await next(capability, params, ctx)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        if result.success:
            log.info("invocation succeeded", duration_ms=duration_ms)
        else:
            log.warning("invocation failed", duration_ms=duration_ms, code=result.code)  # type: ignore[union-attr]
        return result


# ─────────────────────────────────────────────────────────────────────────────
# Timeout Middleware
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(slots=True)
class TimeoutMiddleware:
    """Bound each invocation's wall-clock time.

    On timeout the capability task is cancelled (an open artifact session
    still emits Finish on the way out) and a TIMEOUT Failure is returned.

    Args:
        timeout: Seconds allowed per invocation

    Example:
        >>> registry.use(TimeoutMiddleware(timeout=60))
    """

    timeout: float = 120.0

    async def __call__(
        self,
        capability: BaseCapability[BaseModel],
        params: BaseModel,
        ctx: TurnContext,
        next: Next,  # noqa: A002
    ) -> Success | Failure:
        try:
            return await asyncio.wait_for(next(capability, params, ctx), timeout=self.timeout)
        except TimeoutError:
            error = trace(f"Timed out after {self.timeout:g}s", code=ErrorCode.TIMEOUT) \
                .with_operation(f"capability:{capability.name}")
            return Failure.from_trace(
                capability.agent_name,
                f"{capability.agent_name} took too long to respond. Please try again.",
                error,
            )
