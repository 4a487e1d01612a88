"""Study Buddy - capability dispatch and artifact streaming for a learning assistant.

An orchestrating model routes each conversation turn to registered
capabilities. Direct capabilities answer with text; artifact capabilities
stream a structured document (a flashcard quiz, a study plan) on a per-turn
channel that clients reduce into live state. Artifacts are stored as
append-only versions.

Quick Start:
    >>> from studybuddy import Orchestrator, Message, create_registry, get_settings
    >>> from studybuddy.store import MemoryArtifactStore
    >>>
    >>> settings = get_settings()
    >>> orchestrator = Orchestrator.from_settings(create_registry(settings), settings, store=MemoryArtifactStore())
    >>> async for segment in orchestrator.run([Message.user("Quiz me on photosynthesis")], owner="user-1"):
    ...     print(segment.to_json())

Custom Capabilities:
    >>> from studybuddy import capability
    >>>
    >>> @capability(description="Look up a word in the course glossary")
    ... async def glossary(term: str) -> str:
    ...     '''Define a glossary term.
    ...
    ...     Args:
    ...         term: Word to define
    ...     '''
    ...     return GLOSSARY.get(term, f"No entry for {term}")
    >>>
    >>> registry.register(glossary)

Client Side:
    >>> from studybuddy.channel import ArtifactReducer
    >>> reducer = ArtifactReducer()
    >>> reducer.apply_all(events)
    >>> reducer.materialize(artifact_id)
"""

from studybuddy.capabilities import create_registry, default_capabilities
from studybuddy.channel import ArtifactChannel, ArtifactEvent, ArtifactEventType, ArtifactReducer, ArtifactSession
from studybuddy.config import StudyBuddySettings, get_settings
from studybuddy.core import (
    ArtifactCapability,
    BaseCapability,
    CapabilityKind,
    CapabilityMetadata,
    CapabilityParams,
    Failure,
    Success,
    TurnContext,
    capability,
)
from studybuddy.errors import CapabilityException, ErrorCode
from studybuddy.llm import Message, ModelProvider, ToolCall
from studybuddy.orchestrator import FinishReason, Orchestrator, TurnResult
from studybuddy.registry import CapabilityRegistry, get_registry
from studybuddy.schemas import ArtifactKind, Quiz, StudyPlan
from studybuddy.store import ArtifactRecord, MemoryArtifactStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Capabilities
    "BaseCapability", "ArtifactCapability", "CapabilityMetadata", "CapabilityKind", "CapabilityParams",
    "capability", "Success", "Failure", "TurnContext",
    "CapabilityRegistry", "get_registry", "create_registry", "default_capabilities",
    # Orchestration
    "Orchestrator", "TurnResult", "FinishReason", "Message", "ToolCall", "ModelProvider",
    # Artifacts
    "ArtifactChannel", "ArtifactSession", "ArtifactEvent", "ArtifactEventType", "ArtifactReducer",
    "ArtifactKind", "Quiz", "StudyPlan", "ArtifactRecord", "MemoryArtifactStore",
    # Config & errors
    "StudyBuddySettings", "get_settings", "CapabilityException", "ErrorCode",
]
