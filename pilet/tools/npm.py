"""npm registry lookups: package specifier -> tarball URL."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote

from pilet.core.result import Err, Ok, Result
from pilet.core.structured import as_str_dict, get_str, get_table

if TYPE_CHECKING:
    from pilet.tools.http import HttpClient
    from pilet.tools.tls import TrustMaterial

__all__ = ["NpmRegistry", "PackageSpec", "RegistryError", "parse_specifier"]

# Abbreviated metadata is enough to read dist-tags and dist.tarball.
_ABBREVIATED = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"
_NAME_RE = re.compile(r"^(@[a-z0-9][\w.-]*/)?[a-z0-9][\w.-]*$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class PackageSpec:
    """A package reference such as ``@scope/pkg@1.2.3`` or ``pkg@next``."""

    name: str
    selector: str = "latest"

    def __str__(self) -> str:
        return f"{self.name}@{self.selector}"


@dataclass(frozen=True, slots=True)
class RegistryError:
    specifier: str
    message: str

    def __str__(self) -> str:
        return f"{self.specifier}: {self.message}"


def parse_specifier(raw: str) -> PackageSpec | None:
    """Split ``raw`` into package name and version/tag selector.

    Returns None for anything that is not a valid registry package name.
    """
    text = raw.strip()
    if not text:
        return None

    # The leading "@" of a scope is part of the name, not a selector.
    at = text.find("@", 1)
    if at == -1:
        name, selector = text, "latest"
    else:
        name, selector = text[:at], text[at + 1 :].strip() or "latest"

    if not _NAME_RE.match(name):
        return None
    return PackageSpec(name=name, selector=selector)


class NpmRegistry:
    """Resolves package specifiers against one registry."""

    def __init__(self, http: HttpClient, registry_url: str) -> None:
        self._http = http
        self._registry_url = registry_url.rstrip("/")

    def document_url(self, name: str) -> str:
        return f"{self._registry_url}/{quote(name, safe='@')}"

    async def tarball_url(
        self, raw: str, *, trust: TrustMaterial | None
    ) -> Result[str, RegistryError]:
        """Look up the tarball URL for the version ``raw`` selects."""
        spec = parse_specifier(raw)
        if spec is None:
            return Err(RegistryError(raw, "not a valid package name"))

        doc = await self._http.get_json(
            self.document_url(spec.name),
            trust=trust,
            headers={"Accept": _ABBREVIATED},
        )
        if isinstance(doc, Err):
            return Err(RegistryError(raw, str(doc.error)))

        versions = get_table(doc.value, "versions") or {}
        tags = get_table(doc.value, "dist-tags") or {}

        version = get_str(tags, spec.selector) or spec.selector
        manifest = as_str_dict(versions.get(version))
        if manifest is None:
            return Err(RegistryError(raw, f"no version matching '{spec.selector}'"))

        dist = get_table(manifest, "dist") or {}
        tarball = get_str(dist, "tarball")
        if tarball is None:
            return Err(RegistryError(raw, f"version {version} has no tarball"))
        return Ok(tarball)
