"""Redis artifact store.

Each artifact id maps to one sorted set scored by ``created_at`` (epoch
seconds) whose members are the JSON-encoded version records.

Requires: pip install studybuddy[redis]
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Protocol, runtime_checkable

from studybuddy.errors import ArtifactNotFound

from .base import ArtifactRecord, Clock, check_kind, next_created_at, utc_now


@runtime_checkable
class AsyncRedisClient(Protocol):
    """Protocol for the subset of redis.asyncio used here (duck typing)."""
    async def zadd(self, name: str, mapping: dict[str, float]) -> int: ...
    async def zrange(self, name: str, start: int, end: int) -> list[bytes | str]: ...
    async def zremrangebyscore(self, name: str, min: float | str, max: float | str) -> int: ...  # noqa: A002
    async def ping(self) -> bool: ...


def _decode(raw: bytes | str) -> ArtifactRecord:
    return ArtifactRecord.model_validate_json(raw)


class RedisArtifactStore:
    """Redis-backed append-only artifact store.

    Writes to one id are serialized by an in-process lock; ZADD itself is
    atomic, so concurrent processes never lose a version.

    Example:
        >>> store = RedisArtifactStore.from_url("redis://localhost:6379/0")
        >>> await store.save(doc_id, "Quiz: Cells", "flashcard", content, "user-1")
    """

    __slots__ = ("_client", "_prefix", "_locks", "_clock")

    def __init__(self, client: AsyncRedisClient, prefix: str = "studybuddy:artifact:", clock: Clock = utc_now) -> None:
        self._client = client
        self._prefix = prefix
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, prefix: str = "studybuddy:artifact:", **redis_kwargs: object) -> RedisArtifactStore:
        """Create store from a Redis URL."""
        try:
            import redis.asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "Redis artifact store requires redis package. "
                "Install with: pip install studybuddy[redis]"
            ) from e
        return cls(aioredis.from_url(url, **redis_kwargs), prefix)  # type: ignore[arg-type]

    def _key(self, id: str) -> str:  # noqa: A002
        return f"{self._prefix}{id}"

    async def _latest(self, id: str) -> ArtifactRecord | None:  # noqa: A002
        raw = await self._client.zrange(self._key(id), -1, -1)
        return _decode(raw[0]) if raw else None

    async def save(self, id: str, title: str, kind: str, content: str | None, owner: str | None) -> ArtifactRecord:  # noqa: A002
        async with self._locks[id]:
            previous = await self._latest(id)
            check_kind(id, previous, kind)
            record = ArtifactRecord(
                id=id, title=title, kind=kind, content=content, owner=owner,
                created_at=next_created_at(self._clock, previous),
            )
            await self._client.zadd(self._key(id), {record.model_dump_json(): record.created_at.timestamp()})
            return record

    async def get_latest(self, id: str) -> ArtifactRecord:  # noqa: A002
        if (record := await self._latest(id)) is None:
            raise ArtifactNotFound(id)
        return record

    async def get_all_versions(self, id: str) -> list[ArtifactRecord]:  # noqa: A002
        return [_decode(raw) for raw in await self._client.zrange(self._key(id), 0, -1)]

    async def delete_after(self, id: str, timestamp: datetime) -> int:  # noqa: A002
        async with self._locks[id]:
            return await self._client.zremrangebyscore(self._key(id), f"({timestamp.timestamp()}", "+inf")

    async def ping(self) -> bool:
        """Check Redis connection health."""
        try:
            return bool(await self._client.ping())
        except Exception:
            return False
