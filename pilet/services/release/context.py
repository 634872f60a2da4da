"""Run-scoped state of one publish run.

Everything a run needs is reached through ``ReleaseContext``; nothing is
cached at module level, so consecutive runs (and tests) never share state.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from pilet.core.config import ReleaseConfig
from pilet.output.console import ConsoleProtocol
from pilet.services.release.build import BuildBackend, BuildHooks
from pilet.tools.http import HttpClient

# Asked for a credential; receives the prompt text, returns the secret
# (empty string when the user gives none).
type CredentialPrompt = Callable[[str], str | Awaitable[str]]


@dataclass(frozen=True, slots=True)
class ReleaseContext:
    config: ReleaseConfig
    console: ConsoleProtocol
    http: HttpClient
    backend: BuildBackend
    staging_dir: Path
    hooks: BuildHooks = field(default_factory=BuildHooks)
    prompt: CredentialPrompt | None = None
