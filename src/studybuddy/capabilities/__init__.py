"""Built-in study capabilities and the default registry.

Direct capabilities answer with text (tutor, analyst, get_weather). Artifact
capabilities stream a structured document to the turn's channel
(quiz_master, planner, update_document).
"""

from __future__ import annotations

from studybuddy.config import StudyBuddySettings, get_settings
from studybuddy.core import BaseCapability
from studybuddy.middleware import LoggingMiddleware, TimeoutMiddleware
from studybuddy.registry import CapabilityRegistry

from .analyst import Analyst, AnalystParams
from .documents import UpdateDocument, UpdateDocumentParams
from .planner import Planner, PlannerParams
from .quiz_master import QuizMaster, QuizParams
from .tutor import Tutor, TutorParams
from .weather import WMO_CONDITIONS, WeatherParams, get_weather


def default_capabilities() -> list[BaseCapability]:  # type: ignore[type-arg]
    """Fresh instances of every built-in capability."""
    return [Tutor(), Analyst(), QuizMaster(), Planner(), UpdateDocument(), get_weather]


def create_registry(settings: StudyBuddySettings | None = None) -> CapabilityRegistry:
    """Registry with the built-in capabilities plus logging and timeout middleware."""
    settings = settings or get_settings()
    registry = CapabilityRegistry()
    registry.register_all(*default_capabilities())
    registry.use(LoggingMiddleware())
    registry.use(TimeoutMiddleware(timeout=settings.orchestrator.invocation_timeout))
    return registry


__all__ = [
    "default_capabilities", "create_registry",
    "Tutor", "TutorParams",
    "Analyst", "AnalystParams",
    "QuizMaster", "QuizParams",
    "Planner", "PlannerParams",
    "UpdateDocument", "UpdateDocumentParams",
    "get_weather", "WeatherParams", "WMO_CONDITIONS",
]
