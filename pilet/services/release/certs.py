"""Custom CA certificate loading."""

from __future__ import annotations

import asyncio
import ssl
from pathlib import Path

from pilet.core.result import Err, Ok, Result
from pilet.services.release.errors import CertificateUnreadable
from pilet.tools.tls import TrustMaterial

__all__ = ["load_trust_material"]


async def load_trust_material(
    path: Path | None,
) -> Result[TrustMaterial | None, CertificateUnreadable]:
    """Read the CA file configured for the run.

    Returns Ok(None) when no path is configured or the file does not exist;
    the publish pipeline rejects a configured path that is missing. A file
    that exists but cannot be read, or holds no certificate, is an Err.
    """
    if path is None or not path.exists():
        return Ok(None)

    if path.is_dir():
        return Err(CertificateUnreadable(path=path, reason="is a directory"))

    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        return Err(CertificateUnreadable(path=path, reason=e.strerror or str(e)))

    material = TrustMaterial(data=data, source=path)
    try:
        material.ssl_context()
    except (ssl.SSLError, ValueError) as e:
        return Err(
            CertificateUnreadable(
                path=path,
                reason=f"no usable certificate ({e})",
                hint="Expected a PEM bundle or a single DER certificate",
            )
        )
    return Ok(material)
