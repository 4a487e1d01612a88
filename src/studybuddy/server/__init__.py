"""HTTP server wiring."""

from __future__ import annotations

import httpx
from starlette.applications import Starlette

from studybuddy.capabilities import create_registry
from studybuddy.config import StudyBuddySettings, get_settings
from studybuddy.llm import ModelProvider
from studybuddy.orchestrator import Orchestrator
from studybuddy.store import create_store

from .app import ChatRequest, DocumentBody, create_app


def build_app(settings: StudyBuddySettings | None = None) -> Starlette:
    """App with the default registry, the configured store and models.

    Models and capabilities share one httpx client, closed on shutdown.
    """
    settings = settings or get_settings()
    http = httpx.AsyncClient()
    store = create_store(settings.store)
    models = ModelProvider.from_settings(settings.model, client=http)
    orchestrator = Orchestrator.from_settings(create_registry(settings), settings, models=models, store=store)
    return create_app(orchestrator, store, http=http, debug=settings.debug)


__all__ = ["create_app", "build_app", "ChatRequest", "DocumentBody"]
