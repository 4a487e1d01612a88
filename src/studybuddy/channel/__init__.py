"""Artifact channel: ordered events, scoped sessions and the client reducer."""

from .adapters import Framable, JSONLinesAdapter, SSEAdapter, StreamAdapter, adapt_stream, json_lines_adapter, sse_adapter
from .channel import ArtifactChannel, ArtifactSession, EventSink, SessionState, serialize_payload
from .events import (
    ArtifactEvent,
    ArtifactEventType,
    clear,
    content_delta,
    finish,
    set_id,
    set_kind,
    set_title,
)
from .reducer import ArtifactReducer, ArtifactState, ArtifactStatus
from .renderers import (
    ArtifactRenderer,
    FlashcardRenderer,
    GenericRenderer,
    RendererRegistry,
    StudyPlanRenderer,
    TextRenderer,
    default_renderers,
)

__all__ = [
    # Events
    "ArtifactEvent", "ArtifactEventType",
    "set_id", "set_title", "set_kind", "clear", "content_delta", "finish",
    # Producer side
    "ArtifactChannel", "ArtifactSession", "EventSink", "SessionState", "serialize_payload",
    # Consumer side
    "ArtifactReducer", "ArtifactState", "ArtifactStatus",
    "ArtifactRenderer", "RendererRegistry", "default_renderers",
    "TextRenderer", "FlashcardRenderer", "StudyPlanRenderer", "GenericRenderer",
    # Transport
    "StreamAdapter", "Framable", "SSEAdapter", "JSONLinesAdapter", "sse_adapter", "json_lines_adapter", "adapt_stream",
]
