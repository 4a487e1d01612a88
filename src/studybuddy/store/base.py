"""Artifact version records and the store protocol.

Stores are append-only: every save inserts a new version and the current
version of an artifact is the one with the greatest ``created_at``. Writes to
the same id are serialized and ``created_at`` is strictly increasing per id,
so two saves in the same clock tick still order deterministically.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from studybuddy.errors import ArtifactKindMismatch

Clock = Callable[[], datetime]

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(UTC)


class ArtifactRecord(BaseModel):
    """One stored version of an artifact."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    kind: str
    content: str | None = None
    owner: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_wire(self) -> dict[str, object]:
        """JSON shape served to clients (camelCase timestamps)."""
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind,
            "content": self.content,
            "userId": self.owner,
            "createdAt": self.created_at.isoformat(),
        }


@runtime_checkable
class ArtifactStore(Protocol):
    """Protocol for append-only artifact stores."""

    async def save(self, id: str, title: str, kind: str, content: str | None, owner: str | None) -> ArtifactRecord: ...  # noqa: A002

    async def get_latest(self, id: str) -> ArtifactRecord: ...  # noqa: A002

    async def get_all_versions(self, id: str) -> list[ArtifactRecord]: ...  # noqa: A002

    async def delete_after(self, id: str, timestamp: datetime) -> int: ...  # noqa: A002


def next_created_at(clock: Clock, previous: ArtifactRecord | None) -> datetime:
    """Clock reading forced strictly past the previous version's timestamp."""
    now = clock()
    if previous is not None and now <= previous.created_at:
        return previous.created_at + _TICK
    return now


def check_kind(artifact_id: str, previous: ArtifactRecord | None, kind: str) -> None:
    """Kind is fixed by the first version of an artifact."""
    if previous is not None and previous.kind != kind:
        raise ArtifactKindMismatch(artifact_id, previous.kind, kind)
