from __future__ import annotations

from dataclasses import dataclass

from pilet.output.console import ConsoleProtocol, LogLevel, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    console: ConsoleProtocol


def build_context(log_level: int = LogLevel.INFO) -> CLIContext:
    return CLIContext(console=RichConsole(level=log_level))
