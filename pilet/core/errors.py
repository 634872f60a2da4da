"""Error codes for CLI exit status.

These values are used as process exit codes by ``pilet publish`` and should
remain stable:
- 0: Success (every artifact published)
- 1: User error (missing feed URL, no matching files, bad options)
- 2: not used; typer exits with 2 on invalid command-line usage
- 3: Build error (bundler or lifecycle hook failed)
- 4: Network error (download or registry lookup failed)
- 5: I/O error (certificate or package root unreadable)
- 6: Upload error (at least one artifact was not published)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    UPLOAD_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
