"""Language model access: conversation types, protocol, provider and HTTP client."""

from .model import ARTIFACT_MODEL, CHAT_MODEL, REASONING_MODEL, LanguageModel, ModelProvider
from .openai import OpenAICompatibleModel
from .types import Message, ModelTurn, Role, ToolCall

__all__ = [
    "Message", "ModelTurn", "Role", "ToolCall",
    "LanguageModel", "ModelProvider", "OpenAICompatibleModel",
    "CHAT_MODEL", "REASONING_MODEL", "ARTIFACT_MODEL",
]
