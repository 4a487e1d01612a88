"""Language model protocol and the named-model provider."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from studybuddy.errors import CapabilityException, ErrorCode

from .types import Message, ModelTurn

if TYPE_CHECKING:
    import httpx

    from studybuddy.config import ModelSettings

M = TypeVar("M", bound=BaseModel)

# Names capabilities and the orchestrator use to look up models
CHAT_MODEL = "chat-model"
REASONING_MODEL = "chat-model-reasoning"
ARTIFACT_MODEL = "artifact-model"


@runtime_checkable
class LanguageModel(Protocol):
    """What the orchestrator and capabilities need from a model."""

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[Mapping[str, Any]] = (),
        system: str | None = None,
    ) -> ModelTurn:
        """One inference call that may request tool invocations."""
        ...

    async def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        """Plain completion without tools."""
        ...

    async def generate_object(self, schema: type[M], prompt: str, *, system: str | None = None) -> M:
        """Completion constrained to ``schema``, returned validated."""
        ...


class ModelProvider:
    """Maps model names (``chat-model``, ``artifact-model``...) to LanguageModel instances.

    Example:
        >>> provider = ModelProvider({CHAT_MODEL: chat, ARTIFACT_MODEL: artifacts})
        >>> provider.get(ARTIFACT_MODEL)
    """

    __slots__ = ("_models", "_default")

    def __init__(self, models: Mapping[str, LanguageModel], default: str = CHAT_MODEL) -> None:
        self._models = dict(models)
        self._default = default

    @classmethod
    def single(cls, model: LanguageModel) -> ModelProvider:
        """Provider that answers every name with the same model."""
        return cls({CHAT_MODEL: model, REASONING_MODEL: model, ARTIFACT_MODEL: model})

    @classmethod
    def from_settings(cls, settings: ModelSettings, *, client: httpx.AsyncClient | None = None) -> ModelProvider:
        """OpenAI-compatible models for each configured name, sharing ``client`` when given."""
        from .openai import OpenAICompatibleModel

        def build(name: str) -> OpenAICompatibleModel:
            return OpenAICompatibleModel(
                base_url=settings.base_url,
                api_key=settings.api_key.get_secret_value() if settings.api_key else None,
                model=name,
                timeout=settings.timeout,
                temperature=settings.temperature,
                client=client,
            )

        return cls({
            CHAT_MODEL: build(settings.chat_model),
            REASONING_MODEL: build(settings.reasoning_model),
            ARTIFACT_MODEL: build(settings.artifact_model),
        })

    def get(self, name: str | None = None) -> LanguageModel:
        key = name or self._default
        if (model := self._models.get(key)) is None:
            raise CapabilityException.create(
                "model_provider", f"Unknown model '{key}'. Available: {', '.join(self._models)}",
                ErrorCode.CONFIG_ERROR, recoverable=False,
            )
        return model

    def __contains__(self, name: object) -> bool:
        return name in self._models

    @property
    def names(self) -> list[str]:
        return list(self._models)
