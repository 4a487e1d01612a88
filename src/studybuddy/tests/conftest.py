"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from studybuddy.capabilities import create_registry
from studybuddy.config import StudyBuddySettings, clear_settings_cache
from studybuddy.llm import ModelProvider
from studybuddy.observability import MemoryRenderer, NoOpRenderer, configure_logging
from studybuddy.orchestrator import Orchestrator
from studybuddy.registry import CapabilityRegistry, reset_registry
from studybuddy.schemas import Quiz, StudyPlan
from studybuddy.store import MemoryArtifactStore
from studybuddy.testing import ScriptedModel


def quiz_payload(topic: str = "Photosynthesis", count: int = 3) -> dict[str, object]:
    return {
        "topic": topic,
        "questions": [
            {
                "question": f"Question {i + 1} about {topic}?",
                "options": ["A", "B", "C", "D"],
                "correctAnswer": i % 4,
                "explanation": f"Because of reason {i + 1}.",
            }
            for i in range(count)
        ],
    }


def plan_payload(topic: str = "Linear algebra", weeks: int = 2) -> dict[str, object]:
    return {
        "topic": topic,
        "duration": f"{weeks} weeks",
        "overview": f"Learn the basics of {topic}.",
        "weeks": [
            {
                "week": w + 1,
                "title": f"Week {w + 1}",
                "goals": ["Understand the core ideas"],
                "tasks": [{"task": "Read chapter", "duration": "1 hour"}],
                "resources": ["Textbook"],
            }
            for w in range(weeks)
        ],
        "tips": ["Practice daily"],
    }


@pytest.fixture(autouse=True)
def quiet_logs() -> Iterator[None]:
    """Silence logging and reset globals around each test."""
    configure_logging(renderer=NoOpRenderer())
    clear_settings_cache()
    reset_registry()
    yield
    clear_settings_cache()
    reset_registry()


@pytest.fixture
def log_records() -> MemoryRenderer:
    renderer = MemoryRenderer()
    configure_logging(renderer=renderer, level="DEBUG")
    return renderer


@pytest.fixture
def settings() -> StudyBuddySettings:
    return StudyBuddySettings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel(objects={Quiz: quiz_payload(), StudyPlan: plan_payload()})


@pytest.fixture
def store() -> MemoryArtifactStore:
    return MemoryArtifactStore()


@pytest.fixture
def registry(settings: StudyBuddySettings) -> CapabilityRegistry:
    return create_registry(settings)


@pytest.fixture
def orchestrator(registry: CapabilityRegistry, model: ScriptedModel, store: MemoryArtifactStore) -> Orchestrator:
    return Orchestrator(registry=registry, models=ModelProvider.single(model), store=store)
