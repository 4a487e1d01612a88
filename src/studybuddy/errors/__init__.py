"""Unified error handling for studybuddy.

- ErrorCode: Standard error codes for capability failures
- CapabilityError/CapabilityException: Structured errors and exceptions
- Result/Ok/Err: Railway-oriented error handling inside capabilities
- ErrorTrace/ErrorContext: Error context stacking and provenance tracking
"""

from .errors import (
    ArtifactKindMismatch,
    ArtifactNotFound,
    CapabilityError,
    CapabilityException,
    ChannelProtocolError,
    ErrorCode,
    classify_exception,
    format_validation_error,
    invalid_fields,
)
from .result import Err, Ok, Result, sequence
from .types import ErrorContext, ErrorTrace, JsonDict, JsonValue, trace, trace_from_exc

__all__ = [
    # Core errors
    "ErrorCode", "CapabilityError", "CapabilityException", "classify_exception",
    "format_validation_error", "invalid_fields",
    "ChannelProtocolError", "ArtifactNotFound", "ArtifactKindMismatch",
    # Result
    "Result", "Ok", "Err", "sequence",
    # Error context
    "ErrorContext", "ErrorTrace", "trace", "trace_from_exc",
    # JSON aliases
    "JsonDict", "JsonValue",
]
