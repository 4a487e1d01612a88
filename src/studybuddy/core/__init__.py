"""Capability abstractions: metadata, results, base classes, decorator and turn context."""

from .base import (
    ArtifactCapability,
    ArtifactPlan,
    BaseCapability,
    CapabilityDescriptor,
    CapabilityKind,
    CapabilityMetadata,
    CapabilityParams,
    EmptyParams,
    TParams,
)
from .context import TurnContext
from .decorator import FunctionCapability, capability
from .results import Failure, InvocationResult, Success, parse_result

__all__ = [
    "BaseCapability", "ArtifactCapability", "ArtifactPlan",
    "CapabilityMetadata", "CapabilityDescriptor", "CapabilityKind", "CapabilityParams", "EmptyParams", "TParams",
    "Success", "Failure", "InvocationResult", "parse_result",
    "TurnContext",
    "capability", "FunctionCapability",
]
