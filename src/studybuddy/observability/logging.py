"""Structured logging for conversation turns and capability invocations.

- Bound key-value context (turn id, capability, artifact id)
- Human-readable console output for development, JSON lines for production
- Renderer and level resolved at call time, so loggers created at import
  time follow a later ``configure_logging``

Quick Start:
    >>> from studybuddy.observability import configure_logging, get_logger
    >>> configure_logging(format="console", level="DEBUG")
    >>> log = get_logger("orchestrator").bind(turn_id="3f2a9c01d4e5")
    >>> log.bind_capability("quiz_master", "artifact").info("generating quiz", questions=5)
    # => 10:30:45.120 [info] 3f2a9c01d4e5 quiz_master: generating quiz kind=artifact logger=orchestrator questions=5
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TextIO, runtime_checkable

import orjson

from studybuddy.errors import JsonDict, JsonValue

_LEVEL_NAMES = {logging.DEBUG: "debug", logging.INFO: "info", logging.WARNING: "warning",
                logging.ERROR: "error", logging.CRITICAL: "critical"}

# Keys rendered as a prefix on console lines instead of key=value pairs
_PREFIX_KEYS = ("turn_id", "capability")


# ─────────────────────────────────────────────────────────────────────────────
# Log Entries & Renderers
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class LogEntry:
    timestamp: float
    level: str
    event: str
    context: JsonDict

    def time(self, fmt: str | None = None) -> str:
        moment = datetime.fromtimestamp(self.timestamp, tz=UTC)
        return moment.strftime(fmt)[:-3] if fmt else moment.isoformat()


@runtime_checkable
class LogRenderer(Protocol):
    """Anything that can write a LogEntry somewhere."""

    def render(self, entry: LogEntry) -> None: ...


_LEVEL_COLORS = {"debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m",
                 "critical": "\033[41m"}
_RESET, _DIM, _BOLD = "\033[0m", "\033[2m", "\033[1m"


def _pair(key: str, value: object) -> str:
    return f"{key}={value!r}" if isinstance(value, str) and " " in value else f"{key}={value}"


@dataclass(slots=True)
class ConsoleRenderer:
    """Console lines: ``time [level] turn capability: event key=value ...``.

    Tracebacks from ``exception()`` are printed below the line.
    """

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = bool(getattr(self.output, "isatty", lambda: False)())

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{_RESET}" if self.colors else text

    def render(self, entry: LogEntry) -> None:
        ctx = dict(entry.context)
        tb = ctx.pop("exc_info", None)
        prefix = [str(ctx.pop(k)) for k in _PREFIX_KEYS if k in ctx]
        head = " ".join(prefix)
        line = [
            self._paint(entry.time("%H:%M:%S.%f"), _DIM),
            self._paint(f"[{entry.level}]", _LEVEL_COLORS.get(entry.level, _DIM)),
            self._paint(f"{head}: {entry.event}" if head else entry.event, _BOLD),
            *(_pair(k, v) for k, v in sorted(ctx.items())),
        ]
        print(" ".join(line), file=self.output)
        if tb:
            print(self._paint(str(tb), _LEVEL_COLORS["error"]), file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """One JSON object per line for log aggregation."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        record = {"timestamp": entry.time(), "level": entry.level, "event": entry.event, **entry.context}
        self.output.write(orjson.dumps(record, default=str, option=orjson.OPT_APPEND_NEWLINE).decode())


@dataclass(slots=True)
class NoOpRenderer:
    def render(self, entry: LogEntry) -> None:
        pass


@dataclass(slots=True)
class MemoryRenderer:
    """Keeps entries in memory. Used by tests to assert on warnings."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self, level: str | None = None) -> list[str]:
        return [e.event for e in self.entries if level is None or e.level == level]


# ─────────────────────────────────────────────────────────────────────────────
# Bound Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying key-value context. ``bind`` returns a copy with more context.

    Example:
        >>> log = get_logger("orchestrator").bind(turn_id="t-1")
        >>> log.warning("step budget exhausted", budget=5)
    """

    context: JsonDict = field(default_factory=dict)

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return BoundLogger({**self.context, **kw})

    def bind_capability(self, name: str, kind: str, **kw: JsonValue) -> BoundLogger:
        return self.bind(capability=name, kind=kind, **kw)

    def _log(self, level: int, event: str, **kw: JsonValue) -> None:
        if level < _config.level:
            return
        entry = LogEntry(time.time(), _LEVEL_NAMES.get(level, "info"), event, {**self.context, **kw})
        _config.renderer.render(entry)

    def debug(self, event: str, **kw: JsonValue) -> None: self._log(logging.DEBUG, event, **kw)
    def info(self, event: str, **kw: JsonValue) -> None: self._log(logging.INFO, event, **kw)
    def warning(self, event: str, **kw: JsonValue) -> None: self._log(logging.WARNING, event, **kw)
    def error(self, event: str, **kw: JsonValue) -> None: self._log(logging.ERROR, event, **kw)

    def exception(self, event: str, **kw: JsonValue) -> None:
        """Error entry with the active exception's traceback."""
        self._log(logging.ERROR, event, exc_info=traceback.format_exc(), **kw)


# ─────────────────────────────────────────────────────────────────────────────
# Global Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class _LogConfig:
    renderer: LogRenderer = field(default_factory=ConsoleRenderer)
    level: int = logging.INFO


_config = _LogConfig()


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    renderer: LogRenderer | None = None,
) -> LogRenderer:
    """Set the process-wide renderer and level.

    Args:
        format: "console", "json" or "none"; ignored when ``renderer`` is given
        level: Minimum level name, e.g. "DEBUG"
        output: Stream for console/json output
        renderer: Explicit renderer (tests pass a MemoryRenderer)
    """
    _config.level = getattr(logging, level.upper(), logging.INFO)
    if renderer is None:
        match format:
            case "console": renderer = ConsoleRenderer(output=output or sys.stderr)
            case "json": renderer = JsonRenderer(output=output or sys.stdout)
            case "none": renderer = NoOpRenderer()
            case _: raise ValueError(f"Unknown log format {format!r}, expected console, json or none")
    _config.renderer = renderer
    return renderer


def get_logger(name: str | None = None, **initial_context: JsonValue) -> BoundLogger:
    """Logger whose context starts with ``logger=name``."""
    return BoundLogger({**initial_context, **({"logger": name} if name else {})})
