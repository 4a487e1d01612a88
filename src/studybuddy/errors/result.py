"""Ok/Err results for argument validation and other fallible steps.

Used where a failure is an expected outcome rather than an exception, e.g.
``BaseCapability.validate`` returns ``Err(ErrorTrace)`` for bad arguments so
the registry can turn it into a Failure without try/except.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


class Result(Generic[T, E]):
    """Base of Ok and Err. Branch with ``match`` or ``is_ok()``.

    Example:
        >>> match registry.validate("tutor", {"topic": "DNA"}):
        ...     case Ok(params): ...
        ...     case Err(trace): log.info("rejected", reason=trace.message)
    """

    __slots__ = ()

    def is_ok(self) -> bool:
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        return isinstance(self, Err)

    def unwrap(self) -> T:
        match self:
            case Ok(value):
                return value  # type: ignore[no-any-return]
            case Err(error):
                raise RuntimeError(f"unwrap() called on Err({error!r})")
        raise TypeError(type(self).__name__)

    def unwrap_err(self) -> E:
        match self:
            case Err(error):
                return error  # type: ignore[no-any-return]
            case Ok(value):
                raise RuntimeError(f"unwrap_err() called on Ok({value!r})")
        raise TypeError(type(self).__name__)

    def unwrap_or(self, default: T) -> T:
        return self.unwrap() if self.is_ok() else default

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        return Ok(f(self.unwrap())) if self.is_ok() else self  # type: ignore[return-value]

    def flat_map(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return f(self.unwrap()) if self.is_ok() else self  # type: ignore[return-value]

    def match(self, *, ok: Callable[[T], U], err: Callable[[E], U]) -> U:
        return ok(self.unwrap()) if self.is_ok() else err(self.unwrap_err())


@dataclass(frozen=True, slots=True)
class Ok(Result[T, Any]):
    value: T


@dataclass(frozen=True, slots=True)
class Err(Result[Any, E]):
    error: E


def sequence(results: Iterable[Result[T, E]]) -> Result[list[T], E]:
    """Collect Ok values in order, or return the first Err."""
    values: list[T] = []
    for result in results:
        if result.is_err():
            return result  # type: ignore[return-value]
        values.append(result.unwrap())
    return Ok(values)
