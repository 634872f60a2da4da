"""TLS trust material shared by every network call of a run."""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from pathlib import Path

__all__ = ["TrustMaterial"]

_PEM_MARKER = b"-----BEGIN"


@dataclass(frozen=True, slots=True)
class TrustMaterial:
    """Custom CA certificate bytes loaded once at the start of a run.

    The material replaces the system trust store for feed uploads, remote
    downloads and registry lookups, matching a CA-pinned HTTPS agent.

    Attributes:
        data: Raw file contents (PEM text or a single DER certificate).
        source: File the material was read from.
    """

    data: bytes
    source: Path

    @property
    def is_pem(self) -> bool:
        return _PEM_MARKER in self.data

    def ssl_context(self) -> ssl.SSLContext:
        """Build a client SSL context trusting only this material.

        Raises:
            ssl.SSLError: if the data holds no usable certificate.
        """
        if self.is_pem:
            return ssl.create_default_context(cadata=self.data.decode("ascii", errors="ignore"))
        return ssl.create_default_context(cadata=self.data)
