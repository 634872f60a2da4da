"""Tests for custom CA certificate loading."""

from __future__ import annotations

import base64
import ssl
from pathlib import Path

import pytest

from pilet.core.result import Err, Ok
from pilet.services.release.certs import load_trust_material
from pilet.services.release.errors import CertificateUnreadable

# Self-signed P-256 test CA, valid until 2126.
TEST_CA_PEM = """\
-----BEGIN CERTIFICATE-----
MIIBiDCCAS2gAwIBAgIUXiDGTiZur4hGT2nIlOzzIOW8b60wCgYIKoZIzj0EAwIw
GDEWMBQGA1UEAwwNUGlsZXQgVGVzdCBDQTAgFw0yNjEwMTgwOTIyMjBaGA8yMTI2
MDkyNDA5MjIyMFowGDEWMBQGA1UEAwwNUGlsZXQgVGVzdCBDQTBZMBMGByqGSM49
AgEGCCqGSM49AwEHA0IABLyRoQ9LJZ8H/PXJq1TNPyDzGGWf7S7y2sTmribSRcck
ETidxbxsAoHfF1c3fKpFZeifXGFMTM+vN5LN7Ue3bXSjUzBRMB0GA1UdDgQWBBR0
mlyiRvHysZrMrACrXMD2/pQWeTAfBgNVHSMEGDAWgBR0mlyiRvHysZrMrACrXMD2
/pQWeTAPBgNVHRMBAf8EBTADAQH/MAoGCCqGSM49BAMCA0kAMEYCIQCgl8Fkd47A
U/OAbgs0SPDznctizcerQ4rYYoihayqImgIhAIczK6+F79355ZCO2YJG3jX2PQuK
HYElOM9dHP53ccJX
-----END CERTIFICATE-----
"""


def _der() -> bytes:
    body = "".join(line for line in TEST_CA_PEM.splitlines() if not line.startswith("-----"))
    return base64.b64decode(body)


class TestLoadTrustMaterial:
    """Tests for load_trust_material()."""

    @pytest.mark.asyncio
    async def test_no_path_configured(self) -> None:
        """No path means no trust material."""
        assert await load_trust_material(None) == Ok(None)

    @pytest.mark.asyncio
    async def test_missing_file_is_none(self, tmp_path: Path) -> None:
        """The loader itself treats a missing file as 'no material'."""
        assert await load_trust_material(tmp_path / "nope.pem") == Ok(None)

    @pytest.mark.asyncio
    async def test_pem_file(self, tmp_path: Path) -> None:
        """A PEM file is loaded."""
        path = tmp_path / "ca.pem"
        path.write_text(TEST_CA_PEM, encoding="ascii")

        result = await load_trust_material(path)

        assert isinstance(result, Ok)
        material = result.value
        assert material is not None
        assert material.is_pem
        assert material.source == path
        assert material.data == TEST_CA_PEM.encode("ascii")
        assert isinstance(material.ssl_context(), ssl.SSLContext)

    @pytest.mark.asyncio
    async def test_der_file(self, tmp_path: Path) -> None:
        """A DER file is loaded."""
        path = tmp_path / "ca.der"
        path.write_bytes(_der())

        result = await load_trust_material(path)

        assert isinstance(result, Ok)
        assert result.value is not None
        assert not result.value.is_pem

    @pytest.mark.asyncio
    async def test_directory_is_an_error(self, tmp_path: Path) -> None:
        """A directory path is reported as unreadable."""
        result = await load_trust_material(tmp_path)

        assert isinstance(result, Err)
        assert isinstance(result.error, CertificateUnreadable)
        assert "directory" in result.error.message

    @pytest.mark.asyncio
    async def test_garbage_is_an_error(self, tmp_path: Path) -> None:
        """A file that holds no certificate is rejected."""
        path = tmp_path / "ca.pem"
        path.write_bytes(b"not a certificate")

        result = await load_trust_material(path)

        assert isinstance(result, Err)
        assert result.error.path == path
        assert result.error.hint is not None
