"""HTTP surface: chat streaming, artifact versions and capability listing.

Endpoints:
- POST   /api/chat                         → Stream one turn (SSE, or NDJSON with ?format=ndjson)
- GET    /api/document?id=                 → All versions of an artifact, oldest first
- POST   /api/document?id=                 → Save a user-edited version
- DELETE /api/document?id=&timestamp=      → Drop versions newer than timestamp
- GET    /api/capabilities                 → Capability descriptors

Callers identify themselves with the ``X-User-Id`` header. Without it chat
still works but artifacts are not persisted and document endpoints answer 401.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from studybuddy.channel import StreamAdapter, adapt_stream, json_lines_adapter, sse_adapter
from studybuddy.errors import ArtifactKindMismatch, ArtifactNotFound, format_validation_error
from studybuddy.llm import CHAT_MODEL, REASONING_MODEL, Message, Role
from studybuddy.observability import get_logger
from studybuddy.orchestrator import Orchestrator
from studybuddy.store import ArtifactStore

log = get_logger("server")

OWNER_HEADER = "x-user-id"


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    messages: list[ChatMessage] = Field(..., min_length=1)
    selected_chat_model: Literal["chat-model", "chat-model-reasoning"] = CHAT_MODEL
    exclude: list[str] = Field(default_factory=list)

    def conversation(self) -> list[Message]:
        return [Message(role=Role(m.role), content=m.content) for m in self.messages]


class DocumentBody(BaseModel):
    """Body of POST /api/document."""

    title: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    content: str


def _error(message: str, status: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


async def _json_body(request: Request) -> object:
    try:
        return await request.json()
    except ValueError:
        return None


def create_app(
    orchestrator: Orchestrator,
    store: ArtifactStore | None = None,
    *,
    http: httpx.AsyncClient | None = None,
    debug: bool = False,
) -> Starlette:
    """Starlette app serving one orchestrator.

    An httpx client (``http``, or a fresh one) is handed to capabilities
    through the orchestrator for the app's lifetime and closed on shutdown,
    unless the orchestrator already has one.
    """
    store = store if store is not None else orchestrator.store

    # ─────────────────────────────────────────────────────────────────
    # Chat
    # ─────────────────────────────────────────────────────────────────

    async def chat(request: Request) -> Response:
        try:
            body = ChatRequest.model_validate(await _json_body(request))
        except ValidationError as e:
            return _error(f"Invalid request: {format_validation_error(e)}", 400)
        if body.messages[-1].role != "user":
            return _error("The last message must come from the user", 400)

        adapter: StreamAdapter = json_lines_adapter if request.query_params.get("format") == "ndjson" else sse_adapter
        owner = request.headers.get(OWNER_HEADER)
        log.info("chat turn", model=body.selected_chat_model, messages=len(body.messages), owner=owner)

        segments = orchestrator.run(body.conversation(), owner=owner, exclude=body.exclude,
                                    model=body.selected_chat_model)
        return StreamingResponse(adapt_stream(segments, adapter), media_type=adapter.media_type,
                                 headers={"Cache-Control": "no-cache"})

    # ─────────────────────────────────────────────────────────────────
    # Documents
    # ─────────────────────────────────────────────────────────────────

    async def document(request: Request) -> Response:
        if store is None:
            return _error("Document storage is not configured", 503)
        if not (owner := request.headers.get(OWNER_HEADER)):
            return _error("Unauthorized", 401)
        if not (doc_id := request.query_params.get("id")):
            return _error("Parameter id is missing", 400)

        versions = await store.get_all_versions(doc_id)
        if versions and versions[0].owner not in (None, owner):
            return _error("Forbidden", 403)

        match request.method:
            case "GET":
                if not versions:
                    return _error("Not found", 404)
                return JSONResponse([v.to_wire() for v in versions])
            case "POST":
                try:
                    body = DocumentBody.model_validate(await _json_body(request))
                except ValidationError as e:
                    return _error(f"Invalid request: {format_validation_error(e)}", 400)
                try:
                    record = await store.save(doc_id, body.title, body.kind, body.content, owner)
                except ArtifactKindMismatch as e:
                    return _error(str(e), 409)
                return JSONResponse(record.to_wire())
            case _:
                raw = request.query_params.get("timestamp")
                if not raw:
                    return _error("Parameter timestamp is missing", 400)
                try:
                    timestamp = datetime.fromisoformat(raw.replace(" ", "+"))
                except ValueError:
                    return _error(f"Invalid timestamp '{raw}'", 400)
                if timestamp.tzinfo is None:
                    timestamp = timestamp.replace(tzinfo=UTC)
                if not versions:
                    return _error(str(ArtifactNotFound(doc_id)), 404)
                removed = await store.delete_after(doc_id, timestamp)
                log.info("document reverted", artifact_id=doc_id, removed=removed)
                return JSONResponse({"id": doc_id, "deleted": removed})

    # ─────────────────────────────────────────────────────────────────
    # Capabilities
    # ─────────────────────────────────────────────────────────────────

    async def capabilities(request: Request) -> Response:
        exclude = orchestrator.registry.names if request.query_params.get("model") == REASONING_MODEL else ()
        return JSONResponse({
            "capabilities": [d.model_dump(mode="json") for d in orchestrator.registry.list_active(exclude)],
        })

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if orchestrator.http is not None:
            yield
            return
        async with (http or httpx.AsyncClient()) as client:
            orchestrator.http = client
            try:
                yield
            finally:
                orchestrator.http = None

    routes = [
        Route("/api/chat", chat, methods=["POST"]),
        Route("/api/document", document, methods=["GET", "POST", "DELETE"]),
        Route("/api/capabilities", capabilities, methods=["GET"]),
    ]
    app = Starlette(debug=debug, routes=routes, lifespan=lifespan)
    app.state.orchestrator = orchestrator
    return app
