"""Per-turn artifact channel and the scoped session that writes to it.

An ArtifactChannel is created for one conversation turn and handed to each
capability through the turn context. Artifact capabilities never emit raw
events; they open an ArtifactSession, which enforces the creation order
(id, title, kind, clear, content, finish) and always emits Finish when the
scope exits, including on exceptions and cancellation.

Example:
    >>> channel = ArtifactChannel()
    >>> async with channel.session("flashcard", "Quiz: Cells") as session:
    ...     session.write(quiz)
    >>> [e.type for e in channel.events]
    ['data-id', 'data-title', 'data-kind', 'data-clear', 'data-delta', 'data-finish']
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import orjson
from pydantic import BaseModel

from studybuddy.errors import ChannelProtocolError
from studybuddy.schemas import JSON_KINDS

from .events import ArtifactEvent, clear, content_delta, finish, set_id, set_kind, set_title

if TYPE_CHECKING:
    from types import TracebackType

    from studybuddy.observability import BoundLogger

EventSink = Callable[[ArtifactEvent], None]


class ArtifactChannel:
    """Ordered, append-only event stream for one turn.

    Events are delivered synchronously to every subscribed sink in emission
    order and kept in ``events`` for inspection. The orchestrator subscribes a
    sink that relays events into its output stream.
    """

    __slots__ = ("_sinks", "_history", "_closed")

    def __init__(self, sink: EventSink | None = None) -> None:
        self._sinks: list[EventSink] = [sink] if sink else []
        self._history: list[ArtifactEvent] = []
        self._closed = False

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: ArtifactEvent) -> None:
        if self._closed:
            raise ChannelProtocolError(f"Channel closed, dropped '{event.type}' for {event.artifact_id}")
        self._history.append(event)
        for sink in self._sinks:
            sink(event)

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> tuple[ArtifactEvent, ...]:
        return tuple(self._history)

    def events_for(self, artifact_id: str) -> list[ArtifactEvent]:
        """Events belonging to one artifact, in emission order."""
        return [e for e in self._history if e.artifact_id == artifact_id]

    def session(
        self,
        kind: str,
        title: str,
        *,
        artifact_id: str | None = None,
        log: BoundLogger | None = None,
    ) -> ArtifactSession:
        """Open a scoped artifact session. A fresh id is generated when none is given."""
        return ArtifactSession(self, kind, title, artifact_id=artifact_id, log=log)

    def __len__(self) -> int:
        return len(self._history)


class SessionState(StrEnum):
    PENDING = "pending"
    OPEN = "open"
    FINISHED = "finished"


def serialize_payload(payload: Any, kind: str) -> str:
    """Serialize a payload snapshot for a ContentDelta.

    Pydantic models dump by alias, dicts and lists go through orjson, and
    strings for JSON kinds must already parse. Raises ChannelProtocolError
    rather than letting partial or invalid JSON reach the channel.
    """
    match payload:
        case BaseModel():
            return payload.model_dump_json(by_alias=True, indent=2)
        case dict() | list():
            try:
                return orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode()
            except TypeError as e:
                raise ChannelProtocolError(f"Payload for '{kind}' is not JSON serializable: {e}") from e
        case str():
            if kind in JSON_KINDS:
                try:
                    orjson.loads(payload)
                except orjson.JSONDecodeError as e:
                    raise ChannelProtocolError(f"Refusing invalid JSON content for kind '{kind}'") from e
            return payload
        case _:
            raise ChannelProtocolError(f"Unsupported payload type {type(payload).__name__}")


class ArtifactSession:
    """Scoped writer for one artifact creation sequence.

    Entering emits SetId, SetTitle, SetKind and Clear. ``write()`` emits a
    full-snapshot ContentDelta. Exiting emits Finish exactly once, whatever
    happened inside the scope. Exceptions are never swallowed.
    """

    __slots__ = ("_channel", "kind", "title", "artifact_id", "_state", "_content", "_log")

    def __init__(
        self,
        channel: ArtifactChannel,
        kind: str,
        title: str,
        *,
        artifact_id: str | None = None,
        log: BoundLogger | None = None,
    ) -> None:
        self._channel = channel
        self.kind = kind
        self.title = title
        self.artifact_id = artifact_id or str(uuid4())
        self._state = SessionState.PENDING
        self._content: str | None = None
        self._log = log

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def content(self) -> str | None:
        """Last snapshot written, None before the first write."""
        return self._content

    def open(self) -> None:
        if self._state is not SessionState.PENDING:
            raise ChannelProtocolError(f"Session for {self.artifact_id} already {self._state}")
        for event in (set_id(self.artifact_id), set_title(self.artifact_id, self.title),
                      set_kind(self.artifact_id, self.kind), clear(self.artifact_id)):
            self._channel.emit(event)
        self._state = SessionState.OPEN

    def write(self, payload: Any, *, transient: bool = True) -> str:
        """Emit one ContentDelta carrying the whole payload. Returns the serialized content."""
        if self._state is not SessionState.OPEN:
            raise ChannelProtocolError(f"Cannot write to {self._state} session {self.artifact_id}")
        content = serialize_payload(payload, self.kind)
        self._channel.emit(content_delta(self.artifact_id, content, transient=transient))
        self._content = content
        return content

    def finish(self) -> None:
        """Emit Finish. Idempotent: later calls are no-ops."""
        if self._state is SessionState.FINISHED:
            return
        self._state = SessionState.FINISHED
        self._channel.emit(finish(self.artifact_id))

    async def __aenter__(self) -> ArtifactSession:
        self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_val is not None and self._log is not None:
            self._log.warning("artifact session aborted", artifact_id=self.artifact_id,
                              error=f"{type(exc_val).__name__}: {exc_val}")
        self.finish()
