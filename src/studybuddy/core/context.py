"""Per-turn context handed to every capability invocation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING
from uuid import uuid4

from studybuddy.observability import BoundLogger, get_logger

if TYPE_CHECKING:
    import httpx

    from studybuddy.channel import ArtifactChannel
    from studybuddy.config import StudyBuddySettings
    from studybuddy.llm import LanguageModel, ModelProvider
    from studybuddy.store import ArtifactStore


@dataclass(slots=True)
class TurnContext:
    """Everything a capability may touch during one conversation turn.

    Capabilities get the channel for this turn only, never a process-wide
    one, so concurrent turns cannot write into each other's artifacts.

    Attributes:
        channel: Artifact channel for this turn
        models: Named language models
        store: Artifact store, None disables persistence
        owner: Authenticated owner id, None disables persistence
        turn_id: Correlation id for logs
        log: Logger bound to the turn
        http: Shared HTTP client for downstream APIs (optional)
        settings: Settings the app was built with, None means ``get_settings()``
    """

    channel: ArtifactChannel
    models: ModelProvider
    store: ArtifactStore | None = None
    owner: str | None = None
    turn_id: str = field(default_factory=lambda: uuid4().hex[:12])
    log: BoundLogger = field(default_factory=lambda: get_logger("turn"))
    http: httpx.AsyncClient | None = None
    settings: StudyBuddySettings | None = None

    def model(self, name: str | None = None) -> LanguageModel:
        return self.models.get(name)

    @property
    def can_persist(self) -> bool:
        return self.store is not None and self.owner is not None

    def for_capability(self, name: str, kind: str) -> TurnContext:
        """Copy whose logger carries the capability name and kind."""
        return replace(self, log=self.log.bind_capability(name, kind))
