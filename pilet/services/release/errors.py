"""Fatal errors of a publish run.

Precondition and resolution errors abort the run before (or instead of) any
upload. Per-artifact upload failures are not errors: they are recorded as
``UploadOutcome`` values and only surface as ``UploadBatchFailed`` once the
whole batch has been attempted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pilet.services.release.model import BatchReport


@dataclass(frozen=True, slots=True)
class MissingFeedUrl:
    hint: str = "Pass --url or set PILET_FEED_URL"

    @property
    def message(self) -> str:
        return "No feed service URL configured"


@dataclass(frozen=True, slots=True)
class CertificateUnreadable:
    path: Path
    reason: str
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"Cannot read certificate {self.path}: {self.reason}"


@dataclass(frozen=True, slots=True)
class MissingApiKey:
    hint: str = "Pass --api-key, set PILET_API_KEY, or use --interactive"

    @property
    def message(self) -> str:
        return "No API key configured for the feed service"


@dataclass(frozen=True, slots=True)
class NoArtifactsFound:
    sources: tuple[str, ...]
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"No pilet archives found for: {', '.join(self.sources)}"


@dataclass(frozen=True, slots=True)
class EntryFileMissing:
    sources: tuple[str, ...]
    hint: str = "Point the sources at the pilet's entry module (e.g. ./src/index)"

    @property
    def message(self) -> str:
        return f"No entry module matches: {', '.join(self.sources)}"


@dataclass(frozen=True, slots=True)
class PackagingFailed:
    root: Path
    reason: str
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"Packing {self.root} failed: {self.reason}"


@dataclass(frozen=True, slots=True)
class BuildFailed:
    entry: Path
    reason: str
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"Build of {self.entry} failed: {self.reason}"


@dataclass(frozen=True, slots=True)
class HookFailed:
    entry: Path
    hook: str
    reason: str
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"Hook {self.hook} failed for {self.entry}: {self.reason}"


@dataclass(frozen=True, slots=True)
class DownloadFailed:
    url: str
    reason: str
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"Download of {self.url} failed: {self.reason}"


@dataclass(frozen=True, slots=True)
class RegistryLookupFailed:
    specifier: str
    reason: str
    hint: str | None = None

    @property
    def message(self) -> str:
        return f"Registry lookup for {self.specifier} failed: {self.reason}"


@dataclass(frozen=True, slots=True)
class UploadBatchFailed:
    report: BatchReport
    hint: str = "Re-run publish for the failed archives only"

    @property
    def message(self) -> str:
        failed = len(self.report.failed)
        return f"{failed} of {self.report.total} pilet(s) failed to publish"


PreconditionError = MissingFeedUrl | CertificateUnreadable | MissingApiKey

ResolutionError = (
    NoArtifactsFound
    | EntryFileMissing
    | PackagingFailed
    | BuildFailed
    | HookFailed
    | DownloadFailed
    | RegistryLookupFailed
)

ReleaseError = PreconditionError | ResolutionError | UploadBatchFailed
