"""Invocation results returned by every capability.

Exactly one of Success or Failure comes back from every invocation, even
when the capability raised internally. Only ``summary`` is shown to the
orchestrating model; ``structured_data`` and ``diagnostic`` are metadata for
callers and logs.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from studybuddy.errors import ErrorTrace, JsonDict


class Success(BaseModel):
    """Capability completed."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    agent_name: str
    summary: str
    structured_data: JsonDict | None = None

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"agentName": self.agent_name, "success": True, "summary": self.summary,
                "data": self.structured_data}


class Failure(BaseModel):
    """Capability failed. ``summary`` is safe to show the model and the user."""

    model_config = ConfigDict(frozen=True)

    status: Literal["failure"] = "failure"
    agent_name: str
    summary: str
    diagnostic: JsonDict | None = None

    @property
    def success(self) -> bool:
        return False

    @property
    def code(self) -> str | None:
        return (self.diagnostic or {}).get("code")

    def to_dict(self) -> dict[str, Any]:
        return {"agentName": self.agent_name, "success": False, "summary": self.summary,
                "data": self.diagnostic}

    @classmethod
    def from_trace(cls, agent_name: str, summary: str, trace: ErrorTrace, **extra: Any) -> Failure:
        return cls(agent_name=agent_name, summary=summary, diagnostic={**trace.to_diagnostic(), **extra})


InvocationResult = Annotated[Success | Failure, Field(discriminator="status")]

_result_adapter: TypeAdapter[Success | Failure] = TypeAdapter(InvocationResult)


def parse_result(raw: dict[str, Any]) -> Success | Failure:
    """Rebuild a result from its model_dump() form."""
    return _result_adapter.validate_python(raw)
