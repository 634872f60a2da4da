from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from pilet.core.config import AcquisitionMode, AuthScheme, ReleaseConfig
from pilet.core.result import Err, Ok, Result
from pilet.output.console import MockConsole
from pilet.services.release.build import BuildHooks, BuildOptions
from pilet.services.release.context import ReleaseContext
from pilet.tools.http import MockHttpClient

FEED_URL = "https://feed.example.com/api/v1/pilet"


class FakeBackend:
    """Build backend that writes a bundle instead of running a bundler."""

    def __init__(self, fail_bundle: set[str] | None = None) -> None:
        self.fail_bundle = fail_bundle or set()
        self.calls: list[tuple[str, str]] = []

    async def bundle(self, entry: Path, root: Path, options: BuildOptions) -> Result[None, str]:
        self.calls.append(("bundle", root.name))
        if root.name in self.fail_bundle:
            return Err("bundler exploded")
        dist = root / "dist"
        dist.mkdir(exist_ok=True)
        (dist / "index.js").write_text(f"// bundle of {entry.name}\n", encoding="utf-8")
        return Ok(None)

    async def declare(self, entry: Path, root: Path, options: BuildOptions) -> Result[None, str]:
        self.calls.append(("declare", root.name))
        (root / "dist" / "index.d.ts").write_text("export {};\n", encoding="utf-8")
        return Ok(None)


def write_pilet(base: Path, name: str, version: str = "1.0.0", **manifest: Any) -> Path:
    """Create a minimal pilet package with src/index.tsx; returns its root."""
    root = base / name
    (root / "src").mkdir(parents=True)
    (root / "src" / "index.tsx").write_text("export function setup() {}\n", encoding="utf-8")
    data = {"name": name, "version": version, **manifest}
    (root / "package.json").write_text(json.dumps(data), encoding="utf-8")
    return root


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def http() -> MockHttpClient:
    return MockHttpClient()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., ReleaseConfig]:
    def _make(**overrides: Any) -> ReleaseConfig:
        values: dict[str, Any] = {
            "sources": ("*.tgz",),
            "mode": AcquisitionMode.LOCAL,
            "feed_url": FEED_URL,
            "api_key": "secret",
            "auth_scheme": AuthScheme.BASIC,
            "base_dir": tmp_path,
        }
        values.update(overrides)
        return ReleaseConfig(**values)

    return _make


@pytest.fixture
def make_ctx(
    tmp_path: Path,
    console: MockConsole,
    http: MockHttpClient,
    backend: FakeBackend,
) -> Callable[..., ReleaseContext]:
    def _make(config: ReleaseConfig, **overrides: Any) -> ReleaseContext:
        values: dict[str, Any] = {
            "config": config,
            "console": console,
            "http": http,
            "backend": backend,
            "staging_dir": tmp_path / ".staging",
            "hooks": BuildHooks(),
        }
        values.update(overrides)
        return ReleaseContext(**values)

    return _make


@pytest.fixture
def make_pilet() -> Callable[..., Path]:
    return write_pilet


@pytest.fixture
def make_backend() -> type[FakeBackend]:
    return FakeBackend


@pytest.fixture
def feed_url() -> str:
    return FEED_URL
