"""OpenAI-compatible chat completions client over httpx.

Many providers (OpenAI, OpenRouter, vLLM, Ollama...) expose the same
``/chat/completions`` API, so a single small client covers all of them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

import httpx
import orjson
from pydantic import BaseModel

from studybuddy.observability import get_logger

from .types import Message, ModelTurn, Role, ToolCall

M = TypeVar("M", bound=BaseModel)

log = get_logger("llm.openai")


def _message_to_wire(message: Message) -> dict[str, Any]:
    wire: dict[str, Any] = {"role": message.role.value, "content": message.content}
    if message.tool_calls:
        wire["tool_calls"] = [
            {"id": c.id, "type": "function",
             "function": {"name": c.name, "arguments": orjson.dumps(c.arguments).decode()}}
            for c in message.tool_calls
        ]
    if message.role is Role.TOOL:
        wire["tool_call_id"] = message.tool_call_id
        if message.name:
            wire["name"] = message.name
    return wire


def _parse_tool_call(raw: Mapping[str, Any]) -> ToolCall:
    fn = raw.get("function") or {}
    base: dict[str, Any] = {"name": str(fn.get("name", ""))}
    if raw.get("id"):
        base["id"] = raw["id"]
    arguments = fn.get("arguments") or "{}"
    if isinstance(arguments, dict):
        return ToolCall(**base, arguments=arguments)
    try:
        parsed = orjson.loads(arguments)
    except orjson.JSONDecodeError as e:
        return ToolCall(**base, parse_error=f"Arguments are not valid JSON: {e}")
    if not isinstance(parsed, dict):
        return ToolCall(**base, parse_error="Arguments must be a JSON object")
    return ToolCall(**base, arguments=parsed)


class OpenAICompatibleModel:
    """LanguageModel backed by an OpenAI-compatible HTTP endpoint.

    Args:
        base_url: API root, e.g. ``https://api.openai.com/v1``
        api_key: Bearer token (optional for local servers)
        model: Provider model identifier
        timeout: Request timeout in seconds
        temperature: Sampling temperature
        client: Shared httpx.AsyncClient (one is created per request otherwise)
    """

    __slots__ = ("base_url", "api_key", "model", "timeout", "temperature", "_client")

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        api_key: str | None = None,
        timeout: float = 60.0,
        temperature: float = 0.7,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient | None:
        return self._client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        body = {"model": self.model, "temperature": self.temperature, **payload}
        if self._client is not None:
            response = await self._client.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=self._headers(), json=body)
        response.raise_for_status()
        data: dict[str, Any] = response.json()
        return data

    @staticmethod
    def _first_message(data: Mapping[str, Any]) -> Mapping[str, Any]:
        choices = data.get("choices") or []
        return (choices[0].get("message") or {}) if choices else {}

    async def complete(
        self,
        messages: Sequence[Message],
        *,
        tools: Sequence[Mapping[str, Any]] = (),
        system: str | None = None,
    ) -> ModelTurn:
        wire = [_message_to_wire(m) for m in messages]
        if system:
            wire.insert(0, {"role": "system", "content": system})
        payload: dict[str, Any] = {"messages": wire}
        if tools:
            payload["tools"] = list(tools)
        msg = self._first_message(await self._post(payload))
        calls = tuple(_parse_tool_call(c) for c in msg.get("tool_calls") or ())
        log.debug("completion", model=self.model, tool_calls=len(calls))
        return ModelTurn(text=str(msg.get("content") or ""), tool_calls=calls)

    async def generate_text(self, prompt: str, *, system: str | None = None) -> str:
        turn = await self.complete([Message.user(prompt)], system=system)
        return turn.text

    async def generate_object(self, schema: type[M], prompt: str, *, system: str | None = None) -> M:
        messages = ([{"role": "system", "content": system}] if system else []) + [{"role": "user", "content": prompt}]
        payload = {
            "messages": messages,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema.__name__, "schema": schema.model_json_schema(by_alias=True)},
            },
        }
        content = str(self._first_message(await self._post(payload)).get("content") or "")
        return schema.model_validate_json(content)

    def __repr__(self) -> str:
        return f"OpenAICompatibleModel(model={self.model!r}, base_url={self.base_url!r})"
