"""Build orchestration for fresh publishes.

The bundler itself is an external program reached through ``BuildBackend``.
This module owns what happens around it: locating the package, running the
lifecycle hooks at their checkpoints, and turning failures into errors that
belong to a single entry module.

Checkpoint order for one entry:

    beforeBuild -> bundle -> afterBuild
        -> beforeDeclaration -> declaration -> afterDeclaration

The declaration steps run only when ``BuildOptions.declaration`` is set.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from pilet.core.result import Err, Ok, Result
from pilet.core.structured import get_str, read_json_object
from pilet.platform.process import run as run_process
from pilet.services.release.entries import find_package_root
from pilet.services.release.errors import BuildFailed, HookFailed
from pilet.services.release.model import BuildOutcome

__all__ = [
    "BuildBackend",
    "BuildHooks",
    "BuildOptions",
    "CommandBuildBackend",
    "HookEvent",
    "HookPoint",
    "build_pilet",
]


class HookPoint(Enum):
    BEFORE_BUILD = "beforeBuild"
    AFTER_BUILD = "afterBuild"
    BEFORE_DECLARATION = "beforeDeclaration"
    AFTER_DECLARATION = "afterDeclaration"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class HookEvent:
    """What a hook callback receives."""

    point: HookPoint
    entry: Path
    root: Path
    package_name: str
    package_version: str


type Hook = Callable[[HookEvent], Awaitable[None] | None]


class BuildHooks:
    """Ordered callback registrations per checkpoint.

    Callbacks may be plain functions or coroutine functions. They run one
    after another in registration order; the first one that raises stops the
    entry's build.
    """

    def __init__(self) -> None:
        self._hooks: dict[HookPoint, list[Hook]] = {point: [] for point in HookPoint}

    def register(self, point: HookPoint, hook: Hook) -> None:
        self._hooks[point].append(hook)

    def callbacks(self, point: HookPoint) -> tuple[Hook, ...]:
        return tuple(self._hooks[point])

    async def fire(self, event: HookEvent) -> Result[None, HookFailed]:
        for hook in self._hooks[event.point]:
            try:
                outcome = hook(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                return Err(
                    HookFailed(
                        entry=event.entry,
                        hook=str(event.point),
                        reason=str(e) or type(e).__name__,
                    )
                )
        return Ok(None)


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """Flags handed to the build backend.

    Publishing always builds for production, so every flag defaults on.
    """

    minify: bool = True
    source_maps: bool = True
    declaration: bool = True
    content_hash: bool = True
    schema_version: str | None = None
    bundler: str | None = None
    bundler_args: tuple[str, ...] = ()
    hooks: BuildHooks = field(default_factory=BuildHooks, compare=False)


class BuildBackend(Protocol):
    """Narrow contract of the external bundler.

    Both steps run with the package root as working directory and report a
    human-readable reason on failure.
    """

    async def bundle(self, entry: Path, root: Path, options: BuildOptions) -> Result[None, str]: ...

    async def declare(self, entry: Path, root: Path, options: BuildOptions) -> Result[None, str]: ...


class CommandBuildBackend:
    """Build backend driving an external pilet CLI.

    By default this runs ``npx pilet build`` and ``npx pilet declaration``
    inside the package root.
    """

    def __init__(
        self,
        *,
        build_command: Sequence[str] = ("npx", "--no-install", "pilet", "build"),
        declaration_command: Sequence[str] = ("npx", "--no-install", "pilet", "declaration"),
        timeout: float | None = None,
    ) -> None:
        self._build_command = tuple(build_command)
        self._declaration_command = tuple(declaration_command)
        self._timeout = timeout

    def build_args(self, entry: Path, root: Path, options: BuildOptions) -> list[str]:
        args = [*self._build_command, _relative(entry, root)]
        args.append("--minify" if options.minify else "--no-minify")
        args.append("--source-maps" if options.source_maps else "--no-source-maps")
        args.append("--content-hash" if options.content_hash else "--no-content-hash")
        # Declarations are emitted by the separate declaration step.
        args.append("--no-declaration")
        if options.schema_version:
            args += ["--schema", options.schema_version]
        if options.bundler:
            args += ["--bundler", options.bundler]
        args += options.bundler_args
        return args

    def declaration_args(self, entry: Path, root: Path) -> list[str]:
        return [*self._declaration_command, _relative(entry, root)]

    async def bundle(self, entry: Path, root: Path, options: BuildOptions) -> Result[None, str]:
        result = await run_process(self.build_args(entry, root, options), root, timeout=self._timeout)
        if isinstance(result, Err):
            return Err(_process_reason(result.error.stderr, str(result.error)))
        return Ok(None)

    async def declare(self, entry: Path, root: Path, options: BuildOptions) -> Result[None, str]:
        result = await run_process(self.declaration_args(entry, root), root, timeout=self._timeout)
        if isinstance(result, Err):
            return Err(_process_reason(result.error.stderr, str(result.error)))
        return Ok(None)


def _relative(entry: Path, root: Path) -> str:
    try:
        return entry.relative_to(root).as_posix()
    except ValueError:
        return str(entry)


def _process_reason(stderr: str, fallback: str) -> str:
    lines = [line for line in stderr.strip().splitlines() if line.strip()]
    return lines[-1] if lines else fallback


async def build_pilet(
    entry: Path,
    options: BuildOptions,
    backend: BuildBackend,
) -> Result[BuildOutcome, BuildFailed | HookFailed]:
    """Build one entry module and describe the package it belongs to."""
    root = find_package_root(entry)
    if root is None:
        return Err(BuildFailed(entry=entry, reason="no package.json found above the entry module"))

    manifest = read_json_object(root / "package.json")
    if manifest is None:
        return Err(BuildFailed(entry=entry, reason=f"invalid package.json in {root}"))

    name = get_str(manifest, "name")
    version = get_str(manifest, "version")
    if name is None or version is None:
        return Err(BuildFailed(entry=entry, reason="package.json needs a name and a version"))

    def event(point: HookPoint) -> HookEvent:
        return HookEvent(
            point=point,
            entry=entry,
            root=root,
            package_name=name,
            package_version=version,
        )

    fired = await options.hooks.fire(event(HookPoint.BEFORE_BUILD))
    if isinstance(fired, Err):
        return fired

    bundled = await backend.bundle(entry, root, options)
    if isinstance(bundled, Err):
        return Err(BuildFailed(entry=entry, reason=bundled.error))

    fired = await options.hooks.fire(event(HookPoint.AFTER_BUILD))
    if isinstance(fired, Err):
        return fired

    if options.declaration:
        fired = await options.hooks.fire(event(HookPoint.BEFORE_DECLARATION))
        if isinstance(fired, Err):
            return fired

        declared = await backend.declare(entry, root, options)
        if isinstance(declared, Err):
            return Err(BuildFailed(entry=entry, reason=f"declaration: {declared.error}"))

        fired = await options.hooks.fire(event(HookPoint.AFTER_DECLARATION))
        if isinstance(fired, Err):
            return fired

    return Ok(BuildOutcome(root=root, package_name=name, package_version=version))
