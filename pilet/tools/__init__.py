"""Infrastructure adapters: HTTP, TLS trust, downloads and the npm registry."""

from .download import Downloader
from .http import FilePart, HttpClient, HttpError, HttpResponse, HttpxClient, MockHttpClient
from .npm import NpmRegistry, PackageSpec, RegistryError, parse_specifier
from .tls import TrustMaterial

__all__ = [
    "Downloader",
    "FilePart",
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "HttpxClient",
    "MockHttpClient",
    "NpmRegistry",
    "PackageSpec",
    "RegistryError",
    "TrustMaterial",
    "parse_specifier",
]
