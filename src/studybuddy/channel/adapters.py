"""Transport adapters for streamed turn output.

Anything with a ``type`` tag and a ``to_json()`` method can be framed:
orchestrator segments and raw artifact channel events alike.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class Framable(Protocol):
    """Item a transport adapter can frame."""

    @property
    def type(self) -> str: ...

    def to_json(self) -> str: ...


@runtime_checkable
class StreamAdapter(Protocol):
    """Protocol for stream transport adapters."""

    media_type: str

    def format(self, item: Framable) -> str:
        """Frame one item for transport."""
        ...


# ─────────────────────────────────────────────────────────────────────────────
# SSE (Server-Sent Events) Adapter
# ─────────────────────────────────────────────────────────────────────────────

class SSEAdapter:
    """Format output as Server-Sent Events.

    SSE format:
        event: <type>
        data: <json_payload>

    The event name is the item's type tag, so browser EventSource clients
    can listen for ``data-delta`` or ``tool-result`` directly.
    """

    __slots__ = ()

    media_type = "text/event-stream"

    def format(self, item: Framable) -> str:
        return f"event: {item.type}\ndata: {item.to_json()}\n\n"


# ─────────────────────────────────────────────────────────────────────────────
# JSON Lines Adapter
# ─────────────────────────────────────────────────────────────────────────────

class JSONLinesAdapter:
    """Format output as newline-delimited JSON (NDJSON)."""

    __slots__ = ()

    media_type = "application/x-ndjson"

    def format(self, item: Framable) -> str:
        return item.to_json() + "\n"


sse_adapter = SSEAdapter()
json_lines_adapter = JSONLinesAdapter()


async def adapt_stream(stream: AsyncIterator[Framable], adapter: StreamAdapter) -> AsyncIterator[str]:
    """Frame every item of an async stream with the given adapter.

    Example:
        >>> async for frame in adapt_stream(orchestrator.run(messages), sse_adapter):
        ...     await send(frame)
    """
    async for item in stream:
        yield adapter.format(item)
