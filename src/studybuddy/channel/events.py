"""Artifact channel events.

Every event names the artifact it belongs to. The wire form is a flat JSON
object whose ``type`` is one of the ``data-*`` tags below, matching what chat
clients already consume:

    {"type": "data-kind", "id": "9f1c...", "data": "flashcard", "transient": true}
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import orjson

from studybuddy.errors import ChannelProtocolError


class ArtifactEventType(StrEnum):
    """Wire tags for artifact events."""
    SET_ID = "data-id"
    SET_TITLE = "data-title"
    SET_KIND = "data-kind"
    CLEAR = "data-clear"
    CONTENT_DELTA = "data-delta"
    FINISH = "data-finish"


# Events that carry a string payload in ``data``
_DATA_EVENTS = frozenset({
    ArtifactEventType.SET_ID,
    ArtifactEventType.SET_TITLE,
    ArtifactEventType.SET_KIND,
    ArtifactEventType.CONTENT_DELTA,
})


@dataclass(slots=True, frozen=True)
class ArtifactEvent:
    """A single event on the artifact channel.

    Attributes:
        type: Wire tag
        artifact_id: Artifact this event belongs to
        data: Id, title, kind or serialized content, None for Clear/Finish
        transient: Event is for the live view only and is not part of history
        timestamp: Emission time (epoch ms)
    """
    type: ArtifactEventType
    artifact_id: str
    data: str | None = None
    transient: bool = True
    timestamp: float = field(default_factory=lambda: time.time() * 1000, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON transport."""
        result: dict[str, Any] = {"type": self.type.value, "id": self.artifact_id}
        if self.data is not None:
            result["data"] = self.data
        if self.transient:
            result["transient"] = True
        return result

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict()).decode()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ArtifactEvent:
        """Parse a wire object. Raises ChannelProtocolError on unknown tags or missing fields."""
        try:
            kind = ArtifactEventType(raw["type"])
            artifact_id = str(raw["id"])
        except (KeyError, ValueError) as e:
            raise ChannelProtocolError(f"Malformed artifact event: {raw!r}") from e
        data = raw.get("data")
        if kind in _DATA_EVENTS and not isinstance(data, str):
            raise ChannelProtocolError(f"Event '{kind}' requires string data")
        return cls(type=kind, artifact_id=artifact_id, data=data, transient=bool(raw.get("transient", False)))

    @classmethod
    def from_json(cls, raw: str | bytes) -> ArtifactEvent:
        return cls.from_dict(orjson.loads(raw))


# ─────────────────────────────────────────────────────────────────────────────
# Factory Functions
# ─────────────────────────────────────────────────────────────────────────────

def set_id(artifact_id: str) -> ArtifactEvent:
    return ArtifactEvent(ArtifactEventType.SET_ID, artifact_id, artifact_id)


def set_title(artifact_id: str, title: str) -> ArtifactEvent:
    return ArtifactEvent(ArtifactEventType.SET_TITLE, artifact_id, title)


def set_kind(artifact_id: str, kind: str) -> ArtifactEvent:
    return ArtifactEvent(ArtifactEventType.SET_KIND, artifact_id, kind)


def clear(artifact_id: str) -> ArtifactEvent:
    return ArtifactEvent(ArtifactEventType.CLEAR, artifact_id, None)


def content_delta(artifact_id: str, content: str, *, transient: bool = True) -> ArtifactEvent:
    return ArtifactEvent(ArtifactEventType.CONTENT_DELTA, artifact_id, content, transient)


def finish(artifact_id: str) -> ArtifactEvent:
    return ArtifactEvent(ArtifactEventType.FINISH, artifact_id, None)
