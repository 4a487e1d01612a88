"""Type aliases and error context tracking for capability failures."""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import ErrorCode, classify_exception

JsonValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]
JsonDict = dict[str, Any]


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """One step a failure passed through, e.g. ``capability:quiz_master`` or ``generate (artifact_id=...)``."""

    operation: str
    location: str = ""
    metadata: JsonDict = field(default_factory=dict)

    def __str__(self) -> str:
        loc = f" at {self.location}" if self.location else ""
        meta = f" ({', '.join(f'{k}={v}' for k, v in self.metadata.items())})" if self.metadata else ""
        return f"{self.operation}{loc}{meta}"


@dataclass(frozen=True, slots=True)
class ErrorTrace:
    """A failure message plus the steps it passed through on the way out of a capability."""

    message: str
    contexts: tuple[ErrorContext, ...] = ()
    error_code: str | None = None
    recoverable: bool = True
    details: str | None = None

    def with_operation(self, operation: str, location: str = "", **metadata: Any) -> ErrorTrace:
        """Add context with operation info (returns new trace)."""
        return ErrorTrace(
            self.message,
            (*self.contexts, ErrorContext(operation, location, metadata)),
            self.error_code,
            self.recoverable,
            self.details,
        )

    @property
    def code(self) -> ErrorCode:
        """Error code as enum, UNKNOWN when absent or unrecognized."""
        try:
            return ErrorCode(self.error_code) if self.error_code else ErrorCode.UNKNOWN
        except ValueError:
            return ErrorCode.UNKNOWN

    def to_diagnostic(self) -> JsonDict:
        """Metadata form attached to Failure results. Never shown to the model."""
        diag: JsonDict = {"code": self.code.value, "recoverable": self.recoverable}
        if self.contexts:
            diag["trace"] = [str(c) for c in self.contexts]
        if self.details:
            diag["details"] = self.details
        return diag

    def format(self) -> str:
        parts = [self.message]
        if self.error_code:
            parts.append(f" [{self.error_code}]")
        if self.contexts:
            parts.append("\nContext trace:\n" + "\n".join(f"  - {ctx}" for ctx in self.contexts))
        return "".join(parts)

    __str__ = format


def trace(message: str, *, code: ErrorCode | str | None = None, recoverable: bool = True, details: str | None = None) -> ErrorTrace:
    """Create ErrorTrace concisely."""
    return ErrorTrace(message, (), str(code) if code else None, recoverable, details)


def trace_from_exc(exc: BaseException, *, operation: str = "") -> ErrorTrace:
    """Create ErrorTrace from exception, classifying its code."""
    t = ErrorTrace(str(exc) or type(exc).__name__, (), classify_exception(exc).value, True, traceback.format_exc())
    return t.with_operation(operation) if operation else t
