"""In-process artifact store."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime

from studybuddy.errors import ArtifactNotFound

from .base import ArtifactRecord, Clock, check_kind, next_created_at, utc_now


class MemoryArtifactStore:
    """Dict-of-lists store with a per-id append lock.

    Versions of one id are kept sorted by ``created_at``. Writes to different
    ids never wait on each other.

    Example:
        >>> store = MemoryArtifactStore()
        >>> v1 = await store.save("doc-1", "Notes", "text", "draft", "user-1")
        >>> v2 = await store.save("doc-1", "Notes", "text", "final", "user-1")
        >>> (await store.get_latest("doc-1")).content
        'final'
    """

    __slots__ = ("_versions", "_locks", "_clock")

    def __init__(self, clock: Clock = utc_now) -> None:
        self._versions: dict[str, list[ArtifactRecord]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._clock = clock

    async def save(self, id: str, title: str, kind: str, content: str | None, owner: str | None) -> ArtifactRecord:  # noqa: A002
        async with self._locks[id]:
            versions = self._versions.setdefault(id, [])
            previous = versions[-1] if versions else None
            check_kind(id, previous, kind)
            record = ArtifactRecord(
                id=id, title=title, kind=kind, content=content, owner=owner,
                created_at=next_created_at(self._clock, previous),
            )
            versions.append(record)
            return record

    async def get_latest(self, id: str) -> ArtifactRecord:  # noqa: A002
        if not (versions := self._versions.get(id)):
            raise ArtifactNotFound(id)
        return versions[-1]

    async def get_all_versions(self, id: str) -> list[ArtifactRecord]:  # noqa: A002
        return list(self._versions.get(id, ()))

    async def delete_after(self, id: str, timestamp: datetime) -> int:  # noqa: A002
        """Drop versions created strictly after ``timestamp``. Returns the number removed."""
        async with self._locks[id]:
            versions = self._versions.get(id, [])
            kept = [v for v in versions if v.created_at <= timestamp]
            removed = len(versions) - len(kept)
            if kept:
                self._versions[id] = kept
            else:
                self._versions.pop(id, None)
            return removed

    def __len__(self) -> int:
        return len(self._versions)

    def __contains__(self, id: object) -> bool:  # noqa: A002
        return id in self._versions
