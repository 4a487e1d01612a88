"""Capability registry."""

from .registry import CapabilityRegistry, get_registry, reset_registry, set_registry

__all__ = ["CapabilityRegistry", "get_registry", "set_registry", "reset_registry"]
