"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from pilet.core.errors import ErrorCode
from pilet.core.result import Err, Result
from pilet.output.console import Style

if TYPE_CHECKING:
    from pilet.output.console import ConsoleProtocol


def exit_on_error[T, E](
    result: Result[T, E],
    console: ConsoleProtocol,
    error_code: ErrorCode = ErrorCode.USER_ERROR,
) -> T:
    """Return the Ok value, or print the error and exit.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        console.error(message)
        if hint:
            console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)
