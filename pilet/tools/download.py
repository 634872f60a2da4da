"""Remote archive downloader.

Downloads land in a run-scoped staging directory. File names keep the
original archive name behind a short URL hash, so two sources that end in
the same file name (e.g. ``.../1.0.0/pilet.tgz`` on two hosts) never clash.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from pilet.core.result import Err, Ok, Result
from pilet.tools.http import HttpError

if TYPE_CHECKING:
    from pilet.tools.http import HttpClient
    from pilet.tools.tls import TrustMaterial

__all__ = ["Downloader"]


class Downloader:
    """Fetch remote archives into a staging directory.

    Usage:
        downloader = Downloader(http_client, staging_dir)
        result = await downloader.download(url, trust=trust)
    """

    def __init__(self, http: HttpClient, staging_dir: Path) -> None:
        self._http = http
        self._staging_dir = staging_dir

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir

    def target_name(self, url: str) -> str:
        """File name used for ``url``.

        Example: "https://cdn.example/my-pilet-1.0.0.tgz" -> "a1b2c3d4_my-pilet-1.0.0.tgz"
        """
        parsed = urlparse(url)
        filename = Path(unquote(parsed.path)).name or "pilet.tgz"
        url_hash = hashlib.sha256(url.encode()).hexdigest()[:8]
        return f"{url_hash}_{filename}"

    def target_path(self, url: str) -> Path:
        return self._staging_dir / self.target_name(url)

    async def download(self, url: str, *, trust: TrustMaterial | None) -> Result[Path, HttpError]:
        """Download ``url`` and return the local file path.

        A partially written file is removed when the download fails.
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return Err(HttpError(url=url, status=0, message="Not an http(s) URL"))

        dest = self.target_path(url)
        self._staging_dir.mkdir(parents=True, exist_ok=True)

        result = await self._http.download(url, dest, trust=trust)
        if isinstance(result, Err):
            dest.unlink(missing_ok=True)
            return result

        return Ok(dest)
