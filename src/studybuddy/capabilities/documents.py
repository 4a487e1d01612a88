"""Document editing: rewrites an existing artifact as a new version under the same id."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from studybuddy.core import ArtifactCapability, ArtifactPlan, CapabilityKind, CapabilityMetadata, CapabilityParams, TurnContext
from studybuddy.errors import CapabilityException, ErrorCode, JsonDict
from studybuddy.llm import ARTIFACT_MODEL
from studybuddy.schemas import schema_for_kind

UPDATE_SYSTEM_PROMPT = """You revise study documents. Apply the requested change and keep \
everything else as it is. Return the complete revised document, never a diff or a fragment."""


class UpdateDocumentParams(CapabilityParams):
    id: str = Field(..., min_length=1, description="The id of the document to update")
    description: str = Field(..., min_length=1, description="The changes to make to the document")


def build_update_prompt(content: str | None, description: str, structured: bool) -> str:
    shape = "Return the revised document as structured JSON with the same fields." if structured else \
        "Return only the revised document text."
    return f"""Current document:

---
{content or ""}
---

Requested change: {description}

{shape}"""


class UpdateDocument(ArtifactCapability[UpdateDocumentParams]):
    """Edits the latest version of an artifact and streams the result.

    Structured kinds (flashcard, study-plan) are regenerated against their
    payload schema so the new version stays renderable. The kind and title of
    the artifact never change.
    """

    metadata = CapabilityMetadata(
        name="update_document",
        description=(
            "Update an existing document, quiz or study plan with the given description of changes. "
            "Use when the user asks to change, extend or fix something that is already displayed."
        ),
        kind=CapabilityKind.ARTIFACT,
        display_name="document-editor",
        category="documents",
    )
    params_schema = UpdateDocumentParams
    artifact_kind = "text"

    async def _prepare(self, params: UpdateDocumentParams, ctx: TurnContext) -> ArtifactPlan:
        if ctx.store is None:
            raise CapabilityException.create(self.name, "Document storage is not configured", ErrorCode.CONFIG_ERROR)
        previous = await ctx.store.get_latest(params.id)
        if previous.owner is not None and previous.owner != ctx.owner:
            raise CapabilityException.create(
                self.name, f"Document '{params.id}' belongs to another user", ErrorCode.PERMISSION_DENIED,
            )
        return ArtifactPlan(artifact_id=previous.id, title=previous.title, kind=previous.kind, previous=previous)

    async def _generate(self, params: UpdateDocumentParams, ctx: TurnContext, plan: ArtifactPlan) -> BaseModel | str:
        content = plan.previous.content if plan.previous else None
        model = ctx.model(ARTIFACT_MODEL)
        if (schema := schema_for_kind(plan.kind)) is not None:
            return await model.generate_object(
                schema, build_update_prompt(content, params.description, structured=True), system=UPDATE_SYSTEM_PROMPT,
            )
        return await model.generate_text(
            build_update_prompt(content, params.description, structured=False), system=UPDATE_SYSTEM_PROMPT,
        )

    def _summarize(self, params: UpdateDocumentParams, plan: ArtifactPlan, payload: Any) -> tuple[str, JsonDict]:
        return (
            f'Updated "{plan.title}". The revised version is now displayed.',
            {"description": params.description},
        )
