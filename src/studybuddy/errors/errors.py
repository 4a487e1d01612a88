"""Standardized error handling for capabilities.

Provides error codes, structured error responses for the orchestrating model,
and field-level rendering of argument validation failures.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import TYPE_CHECKING, Self

from pydantic import BaseModel

if TYPE_CHECKING:
    from pydantic import ValidationError


class ErrorCode(StrEnum):
    """Standard error codes for capability failures."""
    INVALID_PARAMS = "INVALID_PARAMS"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    NO_RESULTS = "NO_RESULTS"
    PARSE_ERROR = "PARSE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    STORE_ERROR = "STORE_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    UNKNOWN = "UNKNOWN"


# Ordered pattern -> code mapping, first match wins
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "connect": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "ratelimit": ErrorCode.RATE_LIMITED,
    "rate limit": ErrorCode.RATE_LIMITED,
    "429": ErrorCode.RATE_LIMITED,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "validation": ErrorCode.INVALID_PARAMS,
    "json": ErrorCode.PARSE_ERROR,
    "decode": ErrorCode.PARSE_ERROR,
    "parse": ErrorCode.PARSE_ERROR,
    "notfound": ErrorCode.NOT_FOUND,
    "not found": ErrorCode.NOT_FOUND,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES)


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.EXTERNAL_SERVICE_ERROR


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code via pattern matching on name/message."""
    return _classify_cached(f"{type(exc).__name__} {exc}")


def format_validation_error(exc: ValidationError) -> str:
    """Render a pydantic ValidationError as one line per offending field.

    Example:
        >>> format_validation_error(err)
        "topic: Field required; numberOfQuestions: Input should be a valid integer"
    """
    parts = []
    for item in exc.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


def invalid_fields(exc: ValidationError) -> list[str]:
    """Dotted locations of every field named in a ValidationError."""
    return [".".join(str(p) for p in item.get("loc", ())) for item in exc.errors()]


class CapabilityError(BaseModel):
    """Structured error response for capability failures."""

    model_config = {"frozen": True}

    capability: str
    message: str
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = True
    details: str | None = None

    @classmethod
    def create(
        cls,
        capability: str,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        recoverable: bool = True,
        details: str | None = None,
    ) -> Self:
        """Factory method for construction."""
        return cls(capability=capability, message=message, code=code, recoverable=recoverable, details=details)

    def render(self) -> str:
        """Format error for model consumption. Details are never included."""
        text = f"**Capability Error ({self.capability}):** {self.message}"
        if self.recoverable:
            text += "\n_This error may be recoverable - consider retrying or trying an alternative approach._"
        return text

    __str__ = render

    @property
    def is_retryable(self) -> bool:
        """Whether this error is typically retryable (rate limits, timeouts, network)."""
        return self.code in _RETRYABLE_CODES


_RETRYABLE_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
})


class CapabilityException(Exception):
    """Exception wrapping a CapabilityError for raising."""

    __slots__ = ("error",)

    def __init__(self, error: CapabilityError) -> None:
        self.error = error
        super().__init__(error.message)

    @classmethod
    def create(
        cls,
        capability: str,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        recoverable: bool = True,
    ) -> Self:
        """Create capability exception."""
        return cls(CapabilityError(capability=capability, message=message, code=code, recoverable=recoverable))


class ChannelProtocolError(RuntimeError):
    """Raised when an artifact session emits events out of the allowed order."""


class ArtifactNotFound(LookupError):
    """No version exists for the requested artifact id."""

    def __init__(self, artifact_id: str) -> None:
        self.artifact_id = artifact_id
        super().__init__(f"Artifact '{artifact_id}' not found")


class ArtifactKindMismatch(ValueError):
    """A new version tried to change the kind of an existing artifact."""

    def __init__(self, artifact_id: str, expected: str, got: str) -> None:
        self.artifact_id, self.expected, self.got = artifact_id, expected, got
        super().__init__(f"Artifact '{artifact_id}' has kind '{expected}', cannot save version of kind '{got}'")
