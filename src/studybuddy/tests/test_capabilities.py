"""Tests for the built-in study capabilities."""

from __future__ import annotations

import orjson
import pytest

from studybuddy.capabilities import Analyst, Planner, QuizMaster, Tutor, UpdateDocument, create_registry, default_capabilities
from studybuddy.channel import ArtifactEventType, ArtifactReducer, ArtifactStatus
from studybuddy.core import CapabilityKind, Failure, Success
from studybuddy.errors import ErrorCode
from studybuddy.llm import ARTIFACT_MODEL, CHAT_MODEL, ModelProvider
from studybuddy.schemas import Quiz, StudyPlan
from studybuddy.store import MemoryArtifactStore
from studybuddy.testing import ScriptedModel, make_context

from .conftest import plan_payload, quiz_payload

CREATION_ORDER = [
    ArtifactEventType.SET_ID,
    ArtifactEventType.SET_TITLE,
    ArtifactEventType.SET_KIND,
    ArtifactEventType.CLEAR,
    ArtifactEventType.CONTENT_DELTA,
    ArtifactEventType.FINISH,
]


class FailingStore(MemoryArtifactStore):
    async def save(self, *args: object, **kwargs: object):  # type: ignore[no-untyped-def, override]
        raise ConnectionError("database unreachable")


# ─────────────────────────────────────────────────────────────────────────────
# Quiz master
# ─────────────────────────────────────────────────────────────────────────────


class TestQuizMaster:
    @pytest.mark.asyncio
    async def test_builds_flashcard_artifact(self, model: ScriptedModel) -> None:
        ctx = make_context(model)
        result = await QuizMaster().invoke({"topic": "Photosynthesis", "numberOfQuestions": 3}, ctx)

        assert isinstance(result, Success)
        assert result.agent_name == "quiz-master"
        assert result.summary.startswith('Created an interactive quiz about "Photosynthesis" with 3 questions.')
        data = result.structured_data or {}
        assert data["numberOfQuestions"] == 3
        assert data["difficulty"] == "medium"
        assert data["kind"] == "flashcard"
        assert data["title"] == "Quiz: Photosynthesis"
        assert data["persisted"] is False

        events = ctx.channel.events
        assert [e.type for e in events] == CREATION_ORDER
        assert {e.artifact_id for e in events} == {data["documentId"]}
        assert events[1].data == "Quiz: Photosynthesis"
        assert events[2].data == "flashcard"

    @pytest.mark.asyncio
    async def test_payload_matches_quiz_schema(self, model: ScriptedModel) -> None:
        ctx = make_context(model)
        await QuizMaster().invoke({"topic": "Photosynthesis"}, ctx)

        content = orjson.loads(ctx.channel.events[4].data or "")
        for question in content["questions"]:
            assert len(question["options"]) == 4
            assert 0 <= question["correctAnswer"] <= 3
            assert question["explanation"]

    @pytest.mark.asyncio
    async def test_prompt_and_model(self, model: ScriptedModel) -> None:
        await QuizMaster().invoke(
            {"topic": "Cells", "numberOfQuestions": 4, "difficulty": "hard", "focusAreas": ["mitosis", "meiosis"]},
            make_context(model),
        )
        call = model.calls_to("generate_object")[0]
        assert call.schema is Quiz
        assert call.prompt is not None
        assert 'Create a quiz with 4 multiple choice questions about: "Cells"' in call.prompt
        assert "Difficulty level: hard" in call.prompt
        assert "Focus particularly on: mitosis, meiosis" in call.prompt

    @pytest.mark.asyncio
    async def test_generation_failure_still_finishes(self) -> None:
        model = ScriptedModel(objects={Quiz: RuntimeError("provider overloaded")})
        ctx = make_context(model)
        result = await QuizMaster().invoke({"topic": "Cells"}, ctx)

        assert isinstance(result, Failure)
        assert result.summary == 'Failed to generate quiz about "Cells": provider overloaded. Please try again.'
        assert result.diagnostic is not None and "documentId" in result.diagnostic
        types = [e.type for e in ctx.channel.events]
        assert types == CREATION_ORDER[:4] + [ArtifactEventType.FINISH]

        reducer = ArtifactReducer()
        reducer.apply_all(ctx.channel.events)
        assert reducer.get(result.diagnostic["documentId"]).status is ArtifactStatus.IDLE  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_invalid_model_output_is_failure(self) -> None:
        bad = quiz_payload()
        bad["questions"][0]["options"] = ["only", "three", "options"]  # type: ignore[index]
        ctx = make_context(ScriptedModel(objects={Quiz: bad}))
        result = await QuizMaster().invoke({"topic": "Cells"}, ctx)

        assert isinstance(result, Failure)
        assert ctx.channel.events[-1].type is ArtifactEventType.FINISH
        assert ArtifactEventType.CONTENT_DELTA not in [e.type for e in ctx.channel.events]

    @pytest.mark.parametrize("arguments", [
        {"topic": "Cells", "numberOfQuestions": 11},
        {"topic": "Cells", "numberOfQuestions": 0},
        {"topic": "Cells", "difficulty": "impossible"},
        {"numberOfQuestions": 3},
    ])
    @pytest.mark.asyncio
    async def test_invalid_arguments_emit_nothing(self, model: ScriptedModel, arguments: dict[str, object]) -> None:
        ctx = make_context(model)
        result = await QuizMaster().invoke(arguments, ctx)
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.INVALID_PARAMS
        assert ctx.channel.events == ()
        assert model.call_count == 0

    @pytest.mark.asyncio
    async def test_persists_for_owner(self, model: ScriptedModel) -> None:
        store = MemoryArtifactStore()
        result = await QuizMaster().invoke({"topic": "Cells"}, make_context(model, store=store, owner="user-1"))

        data = result.structured_data or {}
        assert data["persisted"] is True
        record = await store.get_latest(data["documentId"])
        assert record.kind == "flashcard" and record.owner == "user-1"
        assert Quiz.model_validate_json(record.content or "") == Quiz.model_validate(quiz_payload())

    @pytest.mark.asyncio
    async def test_anonymous_turn_not_persisted(self, model: ScriptedModel) -> None:
        store = MemoryArtifactStore()
        await QuizMaster().invoke({"topic": "Cells"}, make_context(model, store=store))
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self, model: ScriptedModel) -> None:
        ctx = make_context(model, store=FailingStore(), owner="user-1")
        result = await QuizMaster().invoke({"topic": "Cells"}, ctx)

        assert isinstance(result, Success)
        assert (result.structured_data or {})["persisted"] is False
        assert [e.type for e in ctx.channel.events] == CREATION_ORDER


# ─────────────────────────────────────────────────────────────────────────────
# Planner
# ─────────────────────────────────────────────────────────────────────────────


class TestPlanner:
    @pytest.mark.asyncio
    async def test_builds_study_plan(self, model: ScriptedModel) -> None:
        ctx = make_context(model)
        result = await Planner().invoke({"topic": "Linear algebra", "hoursPerDay": 2, "goals": ["pass exam"]}, ctx)

        assert isinstance(result, Success)
        assert result.agent_name == "planner"
        assert result.summary.startswith('Created a 2 weeks study plan for "Linear algebra" with 2 weeks.')
        data = result.structured_data or {}
        assert data["weeksCount"] == 2
        assert data["currentLevel"] == "complete beginner"
        assert data["hoursPerDay"] == 2
        assert [e.type for e in ctx.channel.events] == CREATION_ORDER
        assert ctx.channel.events[2].data == "study-plan"

        prompt = model.calls_to("generate_object")[0].prompt or ""
        assert "- Available time: 2 hours per day" in prompt
        assert "Specific goals to achieve:\n- pass exam" in prompt

    @pytest.mark.asyncio
    async def test_tasks_default_to_incomplete(self, model: ScriptedModel) -> None:
        ctx = make_context(model)
        await Planner().invoke({"topic": "Linear algebra"}, ctx)
        plan = StudyPlan.model_validate_json(ctx.channel.events[4].data or "")
        assert all(not t.completed for week in plan.weeks for t in week.tasks)

    @pytest.mark.parametrize("hours", [0.25, 9])
    @pytest.mark.asyncio
    async def test_hours_bounds(self, model: ScriptedModel, hours: float) -> None:
        result = await Planner().invoke({"topic": "Chess", "hoursPerDay": hours}, make_context(model))
        assert result.code == ErrorCode.INVALID_PARAMS  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_failure_summary(self) -> None:
        ctx = make_context(ScriptedModel(objects={StudyPlan: TimeoutError("slow")}))
        result = await Planner().invoke({"topic": "Chess"}, ctx)
        assert result.summary == 'Failed to generate study plan for "Chess": slow. Please try again.'
        assert ctx.channel.events[-1].type is ArtifactEventType.FINISH


# ─────────────────────────────────────────────────────────────────────────────
# Update document
# ─────────────────────────────────────────────────────────────────────────────


class TestUpdateDocument:
    @pytest.mark.asyncio
    async def test_new_version_shares_id(self) -> None:
        store = MemoryArtifactStore()
        original = await store.save("doc-1", "Quiz: Cells", "flashcard",
                                    Quiz.model_validate(quiz_payload("Cells", 2)).to_content(), "user-1")
        model = ScriptedModel(objects={Quiz: quiz_payload("Cells", 4)})
        ctx = make_context(model, store=store, owner="user-1")

        result = await UpdateDocument().invoke({"id": "doc-1", "description": "Add two harder questions"}, ctx)

        assert isinstance(result, Success)
        versions = await store.get_all_versions("doc-1")
        assert len(versions) == 2
        assert versions[-1].created_at > original.created_at
        assert versions[-1].kind == "flashcard" and versions[-1].title == "Quiz: Cells"
        assert len(Quiz.model_validate_json(versions[-1].content or "").questions) == 4

        assert {e.artifact_id for e in ctx.channel.events} == {"doc-1"}
        assert [e.type for e in ctx.channel.events] == CREATION_ORDER
        prompt = model.calls_to("generate_object")[0].prompt or ""
        assert "Add two harder questions" in prompt and "Question 1 about Cells" in prompt

    @pytest.mark.asyncio
    async def test_repeated_updates_append_versions(self) -> None:
        store = MemoryArtifactStore()
        await store.save("doc-1", "Quiz: Cells", "flashcard",
                         Quiz.model_validate(quiz_payload("Cells", 2)).to_content(), "user-1")
        model = ScriptedModel(objects={Quiz: quiz_payload("Cells", 3)})

        for _ in range(2):
            ctx = make_context(model, store=store, owner="user-1")
            result = await UpdateDocument().invoke({"id": "doc-1", "description": "Add a question"}, ctx)
            assert isinstance(result, Success)

        versions = await store.get_all_versions("doc-1")
        assert len(versions) == 3
        assert {v.id for v in versions} == {"doc-1"}
        assert await store.get_latest("doc-1") == max(versions, key=lambda v: v.created_at)

    @pytest.mark.asyncio
    async def test_text_documents_use_text_generation(self) -> None:
        store = MemoryArtifactStore()
        await store.save("notes", "Notes", "text", "Draft notes", "user-1")
        model = ScriptedModel(texts=["Polished notes"])
        ctx = make_context(model, store=store, owner="user-1")

        await UpdateDocument().invoke({"id": "notes", "description": "Polish it"}, ctx)

        assert (await store.get_latest("notes")).content == "Polished notes"
        assert model.calls_to("generate_text")

    @pytest.mark.asyncio
    async def test_missing_document(self) -> None:
        ctx = make_context(ScriptedModel(), store=MemoryArtifactStore(), owner="user-1")
        result = await UpdateDocument().invoke({"id": "ghost", "description": "anything"}, ctx)
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.NOT_FOUND
        assert ctx.channel.events == ()

    @pytest.mark.asyncio
    async def test_other_owner_rejected(self) -> None:
        store = MemoryArtifactStore()
        await store.save("doc-1", "Notes", "text", "mine", "user-1")
        ctx = make_context(ScriptedModel(), store=store, owner="intruder")
        result = await UpdateDocument().invoke({"id": "doc-1", "description": "steal"}, ctx)
        assert result.code == ErrorCode.PERMISSION_DENIED  # type: ignore[union-attr]
        assert len(await store.get_all_versions("doc-1")) == 1

    @pytest.mark.asyncio
    async def test_anonymous_update_rejected(self) -> None:
        store = MemoryArtifactStore()
        await store.save("doc-1", "Secret notes", "text", "private content", "user-1")
        model = ScriptedModel(texts=["rewritten"])
        ctx = make_context(model, store=store)

        result = await UpdateDocument().invoke({"id": "doc-1", "description": "summarize"}, ctx)

        assert result.code == ErrorCode.PERMISSION_DENIED  # type: ignore[union-attr]
        assert model.calls == []
        assert ctx.channel.events == ()
        assert len(await store.get_all_versions("doc-1")) == 1

    @pytest.mark.asyncio
    async def test_requires_store(self) -> None:
        result = await UpdateDocument().invoke({"id": "doc-1", "description": "x"}, make_context(ScriptedModel()))
        assert result.code == ErrorCode.CONFIG_ERROR  # type: ignore[union-attr]


# ─────────────────────────────────────────────────────────────────────────────
# Direct capabilities
# ─────────────────────────────────────────────────────────────────────────────


class TestDirect:
    @pytest.mark.asyncio
    async def test_tutor(self) -> None:
        model = ScriptedModel(texts=["Photosynthesis turns light into sugar."])
        ctx = make_context(model)
        result = await Tutor().invoke({"topic": "Photosynthesis", "approach": "eli5", "priorKnowledge": "plants"}, ctx)

        assert isinstance(result, Success)
        assert result.agent_name == "tutor"
        assert result.summary == "Photosynthesis turns light into sugar."
        prompt = model.calls_to("generate_text")[0].prompt or ""
        assert "Approach: eli5" in prompt and "plants" in prompt
        assert ctx.channel.events == ()

    @pytest.mark.asyncio
    async def test_tutor_default_approach(self, model: ScriptedModel) -> None:
        result = await Tutor().invoke({"topic": "Gravity"}, make_context(model))
        assert (result.structured_data or {})["approach"] == "step-by-step"

    @pytest.mark.asyncio
    async def test_analyst(self) -> None:
        model = ScriptedModel(texts=["Key points: ..."])
        content = "The mitochondria is the powerhouse of the cell."
        result = await Analyst().invoke(
            {"content": content, "analysisType": "key-points", "focusOn": "energy"}, make_context(model),
        )

        assert result.summary == "Key points: ..."
        assert result.structured_data == {
            "analysisType": "key-points", "focusOn": "energy", "outputLength": "moderate", "contentLength": len(content),
        }
        call = model.calls_to("generate_text")[0]
        assert "Focus particularly on: energy" in (call.prompt or "")
        assert "around 300-500 words" in (call.prompt or "")
        assert call.system is not None and call.system.startswith("You are a document analyst")

    @pytest.mark.asyncio
    async def test_model_error_is_failure(self) -> None:
        result = await Tutor().invoke({"topic": "x"}, make_context(ScriptedModel(texts=[ConnectionError("offline")])))
        assert isinstance(result, Failure)
        assert result.code == ErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_named_models_used(self) -> None:
        chat, artifacts = ScriptedModel(), ScriptedModel(objects={Quiz: quiz_payload()})
        ctx = make_context()
        ctx.models = ModelProvider({CHAT_MODEL: chat, ARTIFACT_MODEL: artifacts})
        await Tutor().invoke({"topic": "x"}, ctx)
        await QuizMaster().invoke({"topic": "x"}, ctx)
        assert chat.calls_to("generate_text") and not chat.calls_to("generate_object")
        assert artifacts.calls_to("generate_object")


# ─────────────────────────────────────────────────────────────────────────────
# Default registry
# ─────────────────────────────────────────────────────────────────────────────


def test_default_registry(registry) -> None:  # type: ignore[no-untyped-def]
    assert registry.names == ["tutor", "analyst", "quiz_master", "planner", "update_document", "get_weather"]
    kinds = {d.name: d.kind for d in registry.list_active()}
    assert kinds["quiz_master"] is CapabilityKind.ARTIFACT
    assert kinds["tutor"] is CapabilityKind.DIRECT
    assert len(default_capabilities()) == len(create_registry())
