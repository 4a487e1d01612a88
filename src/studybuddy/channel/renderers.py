"""Kind-specific artifact renderers used by the reducer.

A renderer decodes content (``parse``) and produces a plain-text view
(``render``). Unknown kinds resolve to GenericRenderer, which never fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import orjson
from pydantic import ValidationError

from studybuddy.schemas import ArtifactKind, Quiz, StudyPlan

if TYPE_CHECKING:
    from .reducer import ArtifactState


@runtime_checkable
class ArtifactRenderer(Protocol):
    """Protocol for artifact renderers."""

    def parse(self, content: str) -> object: ...

    def render(self, state: ArtifactState) -> str: ...


class TextRenderer:
    """Text and code: content is shown as-is."""

    __slots__ = ()

    def parse(self, content: str) -> str:
        return content

    def render(self, state: ArtifactState) -> str:
        return f"# {state.title}\n\n{state.content}" if state.title else state.content


class FlashcardRenderer:
    """Quiz flashcards."""

    __slots__ = ()

    def parse(self, content: str) -> Quiz | None:
        if not content:
            return None
        return Quiz.model_validate_json(content)

    def render(self, state: ArtifactState) -> str:
        try:
            quiz = self.parse(state.content)
        except ValidationError:
            return GenericRenderer().render(state)
        if quiz is None:
            return f"{state.title} (loading...)"
        lines = [state.title or f"Quiz: {quiz.topic}", ""]
        for n, q in enumerate(quiz.questions, 1):
            lines.append(f"{n}. {q.question}")
            lines += [f"   {'ABCD'[i]}) {opt}" for i, opt in enumerate(q.options)]
        return "\n".join(lines)


class StudyPlanRenderer:
    """Week-by-week study plans."""

    __slots__ = ()

    def parse(self, content: str) -> StudyPlan | None:
        if not content:
            return None
        return StudyPlan.model_validate_json(content)

    def render(self, state: ArtifactState) -> str:
        try:
            plan = self.parse(state.content)
        except ValidationError:
            return GenericRenderer().render(state)
        if plan is None:
            return f"{state.title} (loading...)"
        lines = [state.title or f"Study Plan: {plan.topic}", plan.overview, ""]
        for week in plan.weeks:
            lines.append(f"Week {week.week}: {week.title}")
            lines += [f"  [{'x' if t.completed else ' '}] {t.task} ({t.duration})" for t in week.tasks]
        return "\n".join(lines)


class GenericRenderer:
    """Inert fallback for kinds without a renderer."""

    __slots__ = ()

    def parse(self, content: str) -> object:
        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError:
            return content

    def render(self, state: ArtifactState) -> str:
        return f"[{state.kind}] {state.title}\n{state.content}"


class RendererRegistry:
    """Kind to renderer mapping with a generic fallback."""

    __slots__ = ("_renderers", "fallback")

    def __init__(self, fallback: ArtifactRenderer | None = None) -> None:
        self._renderers: dict[str, ArtifactRenderer] = {}
        self.fallback: ArtifactRenderer = fallback or GenericRenderer()

    def register(self, kind: str, renderer: ArtifactRenderer) -> None:
        self._renderers[kind] = renderer

    def get(self, kind: str) -> ArtifactRenderer:
        return self._renderers.get(kind, self.fallback)

    def __contains__(self, kind: object) -> bool:
        return kind in self._renderers

    def kinds(self) -> list[str]:
        return list(self._renderers)


def default_renderers() -> RendererRegistry:
    registry = RendererRegistry()
    text = TextRenderer()
    registry.register(ArtifactKind.TEXT, text)
    registry.register(ArtifactKind.CODE, text)
    registry.register(ArtifactKind.FLASHCARD, FlashcardRenderer())
    registry.register(ArtifactKind.STUDY_PLAN, StudyPlanRenderer())
    return registry
