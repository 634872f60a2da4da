"""Batch aggregation over resolved archives."""

from __future__ import annotations

from collections.abc import Sequence

from pilet.core.config import ReleaseConfig
from pilet.output.console import ConsoleProtocol, Style
from pilet.services.release.model import Artifact, BatchReport, UploadOutcome
from pilet.services.release.upload import UploadDispatcher
from pilet.tools.tls import TrustMaterial

__all__ = ["print_summary", "run_batch"]


async def run_batch(
    artifacts: Sequence[Artifact],
    config: ReleaseConfig,
    trust: TrustMaterial | None,
    dispatcher: UploadDispatcher,
) -> BatchReport:
    """Upload every archive, one at a time, in order.

    Uploads are deliberately sequential so the feed service sees a steady
    load and progress is reported in archive order. A failed archive never
    stops the batch and is not retried.
    """
    outcomes: list[UploadOutcome] = []
    for artifact in artifacts:
        outcomes.append(await dispatcher.upload(artifact, config, trust))
    return BatchReport(outcomes=tuple(outcomes))


def print_summary(report: BatchReport, console: ConsoleProtocol) -> None:
    console.header("Summary")
    for outcome in report.outcomes:
        code = f" (HTTP {outcome.http_status})" if outcome.http_status is not None else ""
        if outcome.success:
            console.print(f"  published  {outcome.artifact}{code}", Style.SUCCESS)
        else:
            console.print(f"  failed     {outcome.artifact}: {outcome.status}{code}", Style.ERROR)
    console.print(
        f"{len(report.succeeded)}/{report.total} pilet(s) published",
        Style.BOLD,
    )
