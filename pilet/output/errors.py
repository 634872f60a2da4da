"""Error presentation utilities.

Centralized error formatting and exit code mapping for ``pilet publish``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pilet.core.errors import ErrorCode
from pilet.output.console import Style
from pilet.services.release.errors import (
    BuildFailed,
    CertificateUnreadable,
    DownloadFailed,
    EntryFileMissing,
    HookFailed,
    MissingApiKey,
    MissingFeedUrl,
    NoArtifactsFound,
    PackagingFailed,
    RegistryLookupFailed,
    ReleaseError,
    UploadBatchFailed,
)

if TYPE_CHECKING:
    from pilet.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a fatal release error with its hint."""
    console.error(error.message)
    match error:
        case UploadBatchFailed(report=report):
            published = [str(o.artifact) for o in report.succeeded]
            if published:
                console.print(f"Published: {', '.join(published)}", Style.DIM)
            console.print(
                f"Not published: {', '.join(str(o.artifact) for o in report.failed)}",
                Style.DIM,
            )
        case HookFailed(hook=hook):
            console.print(f"The {hook} hook raised; sibling pilets were still built.", Style.DIM)
        case _:
            pass
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def release_error_exit_code(error: ReleaseError) -> int:
    """Get the process exit code for a release error."""
    match error:
        case MissingFeedUrl() | MissingApiKey():
            return int(ErrorCode.USER_ERROR)
        case NoArtifactsFound() | EntryFileMissing():
            return int(ErrorCode.USER_ERROR)
        case CertificateUnreadable() | PackagingFailed():
            return int(ErrorCode.IO_ERROR)
        case BuildFailed() | HookFailed():
            return int(ErrorCode.BUILD_ERROR)
        case DownloadFailed() | RegistryLookupFailed():
            return int(ErrorCode.NETWORK_ERROR)
        case UploadBatchFailed():
            return int(ErrorCode.UPLOAD_ERROR)
