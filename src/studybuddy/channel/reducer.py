"""Client-side reducer that materializes artifacts from channel events.

State per artifact id::

    empty --(SetId/SetTitle/SetKind/Clear/ContentDelta)--> streaming --(Finish)--> idle

Events are applied strictly in arrival order, never reordered or coalesced.
An artifact that never sees Finish is marked ``error`` by ``watch()`` once its own
timeout elapses, so one stuck producer never holds up the others.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from studybuddy.config import get_settings
from studybuddy.observability import BoundLogger, get_logger

from .events import ArtifactEvent, ArtifactEventType
from .renderers import ArtifactRenderer, RendererRegistry, default_renderers


class ArtifactStatus(StrEnum):
    EMPTY = "empty"
    STREAMING = "streaming"
    IDLE = "idle"
    ERROR = "error"


@dataclass(slots=True)
class ArtifactState:
    """Materialized view of one artifact."""
    document_id: str
    title: str = ""
    kind: str = "text"
    content: str = ""
    status: ArtifactStatus = ArtifactStatus.EMPTY
    is_visible: bool = False
    error: str | None = None
    updated_at: float = field(default_factory=time.monotonic)

    @property
    def finished(self) -> bool:
        return self.status is ArtifactStatus.IDLE


class ArtifactReducer:
    """Folds artifact events into per-id ArtifactState.

    Example:
        >>> reducer = ArtifactReducer()
        >>> reducer.apply_all(channel.events)
        >>> reducer.get(artifact_id).status
        <ArtifactStatus.IDLE: 'idle'>
        >>> reducer.materialize(artifact_id)
        Quiz(topic='Cells', questions=[...])
    """

    __slots__ = ("_states", "_renderers", "_warned", "_log", "_last")

    def __init__(self, renderers: RendererRegistry | None = None, *, log: BoundLogger | None = None) -> None:
        self._states: dict[str, ArtifactState] = {}
        self._renderers = renderers or default_renderers()
        self._warned: set[str] = set()
        self._log = log or get_logger("artifact.reducer")
        self._last: str | None = None

    # ─────────────────────────────────────────────────────────────────
    # Event Application
    # ─────────────────────────────────────────────────────────────────

    def apply(self, event: ArtifactEvent) -> ArtifactState:
        """Apply one event and return the updated state of its artifact."""
        state = self._states.get(event.artifact_id)
        if state is None:
            state = self._states[event.artifact_id] = ArtifactState(document_id=event.artifact_id)
        self._last = event.artifact_id

        match event.type:
            case ArtifactEventType.SET_ID:
                state.document_id = event.data or event.artifact_id
                state.status = ArtifactStatus.STREAMING
            case ArtifactEventType.SET_TITLE:
                state.title = event.data or ""
                state.status = ArtifactStatus.STREAMING
            case ArtifactEventType.SET_KIND:
                state.kind = event.data or "text"
                state.status = ArtifactStatus.STREAMING
                self._check_renderer(state)
            case ArtifactEventType.CLEAR:
                state.content = ""
                state.status = ArtifactStatus.STREAMING
            case ArtifactEventType.CONTENT_DELTA:
                state.content = event.data or ""
                state.status = ArtifactStatus.STREAMING
                state.is_visible = True
            case ArtifactEventType.FINISH:
                state.status = ArtifactStatus.IDLE

        state.updated_at = time.monotonic()
        return state

    def apply_all(self, events: Iterable[ArtifactEvent]) -> None:
        for event in events:
            self.apply(event)

    def _check_renderer(self, state: ArtifactState) -> None:
        if state.kind not in self._renderers and state.document_id not in self._warned:
            self._warned.add(state.document_id)
            self._log.warning("no renderer for artifact kind, using generic view",
                              artifact_id=state.document_id, kind=state.kind)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    def get(self, artifact_id: str) -> ArtifactState | None:
        return self._states.get(artifact_id)

    @property
    def current(self) -> ArtifactState | None:
        """Artifact touched by the most recent event."""
        return self._states.get(self._last) if self._last else None

    @property
    def states(self) -> dict[str, ArtifactState]:
        return dict(self._states)

    def pending(self) -> list[ArtifactState]:
        """Artifacts that started streaming but have not finished."""
        return [s for s in self._states.values() if s.status is ArtifactStatus.STREAMING]

    def renderer_for(self, artifact_id: str) -> ArtifactRenderer:
        state = self._require(artifact_id)
        return self._renderers.get(state.kind)

    def materialize(self, artifact_id: str) -> object:
        """Decode the artifact's content through its renderer."""
        state = self._require(artifact_id)
        return self._renderers.get(state.kind).parse(state.content)

    def render(self, artifact_id: str) -> str:
        """Plain-text view of the artifact."""
        state = self._require(artifact_id)
        return self._renderers.get(state.kind).render(state)

    def _require(self, artifact_id: str) -> ArtifactState:
        if (state := self._states.get(artifact_id)) is None:
            raise KeyError(f"Unknown artifact: {artifact_id}")
        return state

    # ─────────────────────────────────────────────────────────────────
    # Stuck Artifacts
    # ─────────────────────────────────────────────────────────────────

    def _fail(self, states: list[ArtifactState], reason: str) -> list[ArtifactState]:
        for state in states:
            state.status = ArtifactStatus.ERROR
            state.error = reason
            self._log.warning("artifact never finished", artifact_id=state.document_id, reason=reason)
        return states

    def mark_stuck(self, reason: str) -> list[ArtifactState]:
        """Move every still-streaming artifact to ``error``."""
        return self._fail(self.pending(), reason)

    def expire(self, finish_timeout: float, now: float | None = None) -> list[ArtifactState]:
        """Move artifacts with no event for ``finish_timeout`` seconds to ``error``."""
        now = time.monotonic() if now is None else now
        overdue = [s for s in self.pending() if now - s.updated_at >= finish_timeout]
        return self._fail(overdue, f"no finish within {finish_timeout}s")

    def _until_next_deadline(self, finish_timeout: float) -> float | None:
        deadlines = [s.updated_at + finish_timeout for s in self.pending()]
        return max(0.0, min(deadlines) - time.monotonic()) if deadlines else None

    async def watch(
        self, events: AsyncIterator[ArtifactEvent], finish_timeout: float | None = None,
    ) -> dict[str, ArtifactState]:
        """Consume a live event stream until it ends.

        Each streaming artifact has its own deadline, ``finish_timeout``
        seconds after its latest event. An artifact past its deadline is
        marked ``error`` even while other artifacts keep streaming, and
        watching continues. Artifacts still streaming when the stream ends
        are marked ``error`` as well. The timeout defaults to
        ``settings.server.finish_timeout``.
        """
        if finish_timeout is None:
            finish_timeout = get_settings().server.finish_timeout
        iterator = aiter(events)
        waiting: asyncio.Task[ArtifactEvent | None] | None = None
        try:
            while True:
                self.expire(finish_timeout)
                if waiting is None:
                    waiting = asyncio.create_task(_next_event(iterator))
                done, _ = await asyncio.wait({waiting}, timeout=self._until_next_deadline(finish_timeout))
                if not done:
                    continue
                event, waiting = waiting.result(), None
                if event is None:
                    self.mark_stuck("stream ended before finish")
                    break
                self.apply(event)
        finally:
            if waiting is not None:
                waiting.cancel()
        return self.states


async def _next_event(iterator: AsyncIterator[ArtifactEvent]) -> ArtifactEvent | None:
    # None marks the end of the stream
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None
