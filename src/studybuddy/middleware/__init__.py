"""Middleware around capability execution."""

from .builtins import LoggingMiddleware, TimeoutMiddleware
from .middleware import Middleware, Next, compose

__all__ = ["Middleware", "Next", "compose", "LoggingMiddleware", "TimeoutMiddleware"]
