"""Result type for explicit error handling.

Fallible pipeline steps return ``Ok(value)`` or ``Err(error)`` instead of
raising, so callers decide at each step whether a failure is fatal for the
run or only for one artifact.

Usage:
    match await load_trust_material(path):
        case Ok(trust):
            ...
        case Err(error):
            console.error(error.message)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeGuard, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """A successful result carrying ``value``."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """A failed result carrying ``error``."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> None:
        """Raises ValueError, since there is no value to return."""
        raise ValueError(f"called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]


def is_ok[T, E](result: Result[T, E]) -> TypeGuard[Ok[T]]:
    """Type guard that narrows a Result to Ok."""
    return isinstance(result, Ok)


def is_err[T, E](result: Result[T, E]) -> TypeGuard[Err[E]]:
    """Type guard that narrows a Result to Err."""
    return isinstance(result, Err)


def collect[T, E](results: Iterable[Result[T, E]]) -> Result[list[T], E]:
    """Combine results into one, keeping input order.

    Every result is inspected; the first Err in input order wins. Callers that
    ran the producers concurrently therefore get a failure that does not
    depend on completion order.
    """
    values: list[T] = []
    first_error: Err[E] | None = None
    for result in results:
        if isinstance(result, Err):
            if first_error is None:
                first_error = result
            continue
        values.append(result.value)
    if first_error is not None:
        return first_error
    return Ok(values)
