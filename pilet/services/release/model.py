"""Value types flowing through the release pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pilet.core.config import AcquisitionMode, ReleaseConfig

# A local archive ready for upload.
type Artifact = Path


@dataclass(frozen=True, slots=True)
class LocalPattern:
    glob: str


@dataclass(frozen=True, slots=True)
class RemoteUrl:
    url: str


@dataclass(frozen=True, slots=True)
class NpmSpecifier:
    name: str


@dataclass(frozen=True, slots=True)
class FreshEntry:
    module_path: str


type ArtifactSource = LocalPattern | RemoteUrl | NpmSpecifier | FreshEntry


def expand_sources(config: ReleaseConfig) -> tuple[ArtifactSource, ...]:
    """Tag every configured source with the variant its mode implies."""
    match config.mode:
        case AcquisitionMode.FRESH:
            return tuple(FreshEntry(s) for s in config.sources)
        case AcquisitionMode.LOCAL:
            return tuple(LocalPattern(s) for s in config.sources)
        case AcquisitionMode.REMOTE:
            return tuple(RemoteUrl(s) for s in config.sources)
        case AcquisitionMode.NPM:
            return tuple(NpmSpecifier(s) for s in config.sources)


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    """Output of one pilet build, consumed by the packager."""

    root: Path
    package_name: str
    package_version: str


class UploadStatus(Enum):
    SUCCESS = "published"
    PAYMENT_REQUIRED = "payment required"
    VERSION_CONFLICT = "version already exists"
    PAYLOAD_TOO_LARGE = "payload too large"
    UPLOAD_FAILED = "upload failed"
    UNREADABLE = "file unreadable"

    def __str__(self) -> str:
        return self.value


def classify_status(status: int) -> UploadStatus:
    """Map a feed service HTTP status to its upload classification."""
    if 200 <= status < 300:
        return UploadStatus.SUCCESS
    match status:
        case 402:
            return UploadStatus.PAYMENT_REQUIRED
        case 409:
            return UploadStatus.VERSION_CONFLICT
        case 413:
            return UploadStatus.PAYLOAD_TOO_LARGE
        case _:
            return UploadStatus.UPLOAD_FAILED


@dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Result of one upload attempt.

    ``http_status`` is None when no response was received (unreadable file
    or transport failure).
    """

    artifact: Artifact
    status: UploadStatus
    http_status: int | None = None
    response_body: str | None = None

    @property
    def success(self) -> bool:
        return self.status is UploadStatus.SUCCESS


@dataclass(frozen=True, slots=True)
class BatchReport:
    """Ordered outcomes of a batch; the verdict is derived, never stored."""

    outcomes: tuple[UploadOutcome, ...]

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> tuple[UploadOutcome, ...]:
        return tuple(o for o in self.outcomes if o.success)

    @property
    def failed(self) -> tuple[UploadOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.success)

    @property
    def success(self) -> bool:
        return len(self.succeeded) == self.total
