"""The publish pipeline.

    preconditions -> trust material -> resolve archives -> upload batch

Preconditions (feed URL, certificate, credential) are checked before any
archive is read or any request is made. Resolution failures abort the run.
Upload failures are collected and reported once, as the batch verdict.
"""

from __future__ import annotations

import tempfile
from contextlib import AsyncExitStack
from pathlib import Path

from pilet.core.config import ReleaseConfig
from pilet.core.result import Err, Ok, Result
from pilet.output.console import ConsoleProtocol
from pilet.services.release.batch import print_summary, run_batch
from pilet.services.release.build import BuildBackend, BuildHooks, CommandBuildBackend
from pilet.services.release.certs import load_trust_material
from pilet.services.release.context import CredentialPrompt, ReleaseContext
from pilet.services.release.errors import (
    CertificateUnreadable,
    MissingFeedUrl,
    ReleaseError,
    UploadBatchFailed,
)
from pilet.services.release.model import BatchReport
from pilet.services.release.resolver import resolve
from pilet.services.release.upload import UploadDispatcher, resolve_credential
from pilet.tools.http import HttpClient, HttpxClient

__all__ = ["publish", "run_publish"]


async def publish(ctx: ReleaseContext) -> Result[BatchReport, ReleaseError]:
    """Run the pipeline with an already assembled context."""
    config = ctx.config
    console = ctx.console

    if not config.feed_url:
        return Err(MissingFeedUrl())

    console.debug("Checking if certificate exists.")
    loaded = await load_trust_material(config.cert_path)
    if isinstance(loaded, Err):
        return loaded
    trust = loaded.value
    if config.cert_path is not None and trust is None:
        return Err(CertificateUnreadable(path=config.cert_path, reason="file not found"))
    if trust is not None:
        console.debug(f"Using certificate {trust.source}.")

    credential = await resolve_credential(config, ctx.prompt)
    if isinstance(credential, Err):
        return credential

    resolved = await resolve(ctx, trust)
    if isinstance(resolved, Err):
        return resolved
    artifacts = resolved.value
    console.debug(f"Received {len(artifacts)} archive(s).")

    console.info(f'Using feed service "{config.feed_url}".')
    dispatcher = UploadDispatcher(
        ctx.http,
        console,
        credential=credential.value,
        scheme=config.auth_scheme,
        prompt=ctx.prompt,
    )
    report = await run_batch(artifacts, config, trust, dispatcher)
    print_summary(report, console)

    if not report.success:
        return Err(UploadBatchFailed(report=report))
    console.success("Pilet(s) published successfully!")
    return Ok(report)


async def run_publish(
    config: ReleaseConfig,
    *,
    console: ConsoleProtocol,
    prompt: CredentialPrompt | None = None,
    hooks: BuildHooks | None = None,
    backend: BuildBackend | None = None,
    http: HttpClient | None = None,
) -> Result[BatchReport, ReleaseError]:
    """Assemble a run-scoped context and publish.

    Downloads are staged in a temporary directory removed when the run ends;
    archives found on disk or packed into a pilet's root are left in place.
    """
    async with AsyncExitStack() as stack:
        staging = stack.enter_context(tempfile.TemporaryDirectory(prefix="pilet-publish-"))
        if http is None:
            http = await stack.enter_async_context(HttpxClient(timeout=config.timeout))

        ctx = ReleaseContext(
            config=config,
            console=console,
            http=http,
            backend=backend or CommandBuildBackend(),
            staging_dir=Path(staging),
            hooks=hooks or BuildHooks(),
            prompt=prompt,
        )
        return await publish(ctx)
