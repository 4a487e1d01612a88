"""Append-only, versioned artifact storage."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ArtifactRecord, ArtifactStore, Clock, utc_now
from .memory import MemoryArtifactStore
from .redis import AsyncRedisClient, RedisArtifactStore

if TYPE_CHECKING:
    from studybuddy.config import StoreSettings


def create_store(settings: StoreSettings) -> ArtifactStore:
    """Store for the configured backend."""
    if settings.redis_url is not None:
        return RedisArtifactStore.from_url(settings.redis_url.get_secret_value(), settings.prefix)
    return MemoryArtifactStore()


__all__ = [
    "ArtifactRecord", "ArtifactStore", "Clock", "utc_now",
    "MemoryArtifactStore", "RedisArtifactStore", "AsyncRedisClient",
    "create_store",
]
