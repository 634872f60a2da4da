from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from pilet.cli.commands._helpers import exit_on_error, exit_with_code
from pilet.cli.context import build_context
from pilet.core.config import ReleaseConfig
from pilet.core.errors import ErrorCode
from pilet.core.result import Err
from pilet.output.errors import print_release_error, release_error_exit_code
from pilet.services.release.service import run_publish


def _prompt_secret(text: str) -> str:
    return typer.prompt(text, default="", hide_input=True, show_default=False)


def publish(
    sources: list[str] | None = typer.Argument(
        None,
        help="Archives (glob), URLs, package specifiers, or entry modules with --fresh",
    ),
    url: str | None = typer.Option(None, "--url", help="Feed service URL"),
    api_key: str | None = typer.Option(None, "--api-key", help="API key for the feed service"),
    fresh: bool = typer.Option(False, "--fresh", help="Build and pack the pilet(s) first"),
    from_: str = typer.Option("local", "--from", help="Source of archives: local|remote|npm"),
    cert: Path | None = typer.Option(None, "--cert", help="Custom CA certificate file"),
    field: list[str] | None = typer.Option(None, "--field", help="Extra form field key=value"),
    header: list[str] | None = typer.Option(None, "--header", help="Extra header key=value"),
    mode: str = typer.Option("basic", "--mode", help="Auth scheme: basic|bearer|digest|none"),
    interactive: bool = typer.Option(
        False, "--interactive", help="Ask for a credential when none is configured"
    ),
    schema_version: str | None = typer.Option(None, "--schema-version", help="Pilet schema"),
    bundler: str | None = typer.Option(None, "--bundler", help="Bundler used by --fresh"),
    bundler_arg: list[str] | None = typer.Option(
        None, "--bundler-arg", help="Extra argument passed to the bundler"
    ),
    registry: str | None = typer.Option(None, "--registry", help="npm registry for --from npm"),
    base_dir: Path | None = typer.Option(None, "--base-dir", help="Base directory for sources"),
    log_level: int = typer.Option(3, "--log-level", min=1, max=5, help="1 errors .. 5 debug"),
    timeout: float = typer.Option(60.0, "--timeout", help="Network timeout in seconds"),
) -> None:
    """Publish pilet archives to a feed service."""
    ctx = build_context(log_level)

    config = exit_on_error(
        ReleaseConfig.from_options(
            sources=sources or (),
            fresh=fresh,
            from_=from_,
            url=url,
            api_key=api_key,
            mode=mode,
            cert=cert,
            fields=field or (),
            headers=header or (),
            interactive=interactive,
            base_dir=base_dir,
            schema_version=schema_version,
            bundler=bundler,
            bundler_args=bundler_arg or (),
            registry=registry,
            log_level=log_level,
            timeout=timeout,
        ),
        ctx.console,
        ErrorCode.USER_ERROR,
    )

    result = asyncio.run(
        run_publish(
            config,
            console=ctx.console,
            prompt=_prompt_secret if interactive else None,
        )
    )
    if isinstance(result, Err):
        print_release_error(result.error, ctx.console)
        exit_with_code(release_error_exit_code(result.error))
