"""Artifact resolution: configured sources -> local archives.

One handler per source variant. Within a handler every source is processed
concurrently; results are always flattened in source order so the upload
order (and the outcome list) matches the configuration.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from pilet.core.config import AcquisitionMode
from pilet.core.result import Err, Ok, Result, collect
from pilet.services.release.build import BuildOptions, build_pilet
from pilet.services.release.context import ReleaseContext
from pilet.services.release.entries import find_package_root, match_entries, match_files
from pilet.services.release.errors import (
    BuildFailed,
    DownloadFailed,
    EntryFileMissing,
    HookFailed,
    NoArtifactsFound,
    PackagingFailed,
    RegistryLookupFailed,
    ResolutionError,
)
from pilet.services.release.model import (
    Artifact,
    ArtifactSource,
    FreshEntry,
    LocalPattern,
    NpmSpecifier,
    RemoteUrl,
    expand_sources,
)
from pilet.services.release.pack import pack
from pilet.tools.download import Downloader
from pilet.tools.npm import NpmRegistry
from pilet.tools.tls import TrustMaterial

__all__ = ["resolve"]


def _only[S](sources: Sequence[ArtifactSource], kind: type[S]) -> list[S]:
    return [s for s in sources if isinstance(s, kind)]


def _quoted(values: Sequence[str]) -> str:
    return ", ".join(f'"{v}"' for v in values)


def _flatten(groups: Sequence[Sequence[Artifact]]) -> list[Artifact]:
    return [artifact for group in groups for artifact in group]


async def resolve(
    ctx: ReleaseContext,
    trust: TrustMaterial | None,
) -> Result[list[Artifact], ResolutionError]:
    """Produce the ordered list of archives to upload.

    Fails with NoArtifactsFound rather than returning an empty list.
    """
    config = ctx.config
    sources = expand_sources(config)

    result: Result[list[Artifact], ResolutionError]
    match config.mode:
        case AcquisitionMode.FRESH:
            ctx.console.debug("Building fresh pilets from entry modules.")
            result = await _resolve_fresh(ctx, _only(sources, FreshEntry))
        case AcquisitionMode.LOCAL:
            ctx.console.debug(f"Matching files using {_quoted(config.sources)}.")
            result = await _resolve_local(config.base_dir, _only(sources, LocalPattern))
        case AcquisitionMode.REMOTE:
            ctx.console.debug(f"Downloading files from {_quoted(config.sources)}.")
            result = await _resolve_remote(ctx, _only(sources, RemoteUrl), trust)
        case AcquisitionMode.NPM:
            ctx.console.debug(f"Looking up npm packages {_quoted(config.sources)}.")
            result = await _resolve_npm(ctx, _only(sources, NpmSpecifier), trust)

    if isinstance(result, Err):
        return result
    if not result.value:
        return Err(NoArtifactsFound(sources=config.sources))
    return result


async def _resolve_local(
    base_dir: Path, patterns: Sequence[LocalPattern]
) -> Result[list[Artifact], ResolutionError]:
    groups = await asyncio.gather(
        *(asyncio.to_thread(match_files, base_dir, p.glob) for p in patterns)
    )
    return Ok(_flatten(groups))


async def _download_all(
    ctx: ReleaseContext, urls: Sequence[str], trust: TrustMaterial | None
) -> Result[list[Artifact], ResolutionError]:
    downloader = Downloader(ctx.http, ctx.staging_dir / "downloads")
    results = await asyncio.gather(*(downloader.download(url, trust=trust) for url in urls))

    downloaded: list[Result[Artifact, ResolutionError]] = []
    for url, result in zip(urls, results, strict=True):
        if isinstance(result, Err):
            downloaded.append(Err(DownloadFailed(url=url, reason=str(result.error))))
        else:
            ctx.console.debug(f"Downloaded {url} -> {result.value}")
            downloaded.append(result)
    return collect(downloaded)


async def _resolve_remote(
    ctx: ReleaseContext, urls: Sequence[RemoteUrl], trust: TrustMaterial | None
) -> Result[list[Artifact], ResolutionError]:
    return await _download_all(ctx, [u.url for u in urls], trust)


async def _resolve_npm(
    ctx: ReleaseContext, specifiers: Sequence[NpmSpecifier], trust: TrustMaterial | None
) -> Result[list[Artifact], ResolutionError]:
    registry = NpmRegistry(ctx.http, ctx.config.registry_url)
    lookups = await asyncio.gather(
        *(registry.tarball_url(s.name, trust=trust) for s in specifiers)
    )

    urls: list[str] = []
    for spec, lookup in zip(specifiers, lookups, strict=True):
        if isinstance(lookup, Err):
            return Err(RegistryLookupFailed(specifier=spec.name, reason=lookup.error.message))
        urls.append(lookup.value)

    ctx.console.debug(f"Resolved tarballs: {', '.join(urls)}")
    return await _download_all(ctx, urls, trust)


async def _resolve_fresh(
    ctx: ReleaseContext, entries: Sequence[FreshEntry]
) -> Result[list[Artifact], ResolutionError]:
    config = ctx.config
    patterns = [e.module_path for e in entries]
    modules = await asyncio.to_thread(match_entries, config.base_dir, patterns)
    if not modules:
        return Err(EntryFileMissing(sources=tuple(patterns)))
    modules = _one_entry_per_package(ctx, modules)

    options = BuildOptions(
        schema_version=config.schema_version,
        bundler=config.bundler,
        bundler_args=config.bundler_args,
        hooks=ctx.hooks,
    )
    results = await asyncio.gather(*(_build_and_pack(ctx, module, options) for module in modules))
    return collect(results)


def _one_entry_per_package(ctx: ReleaseContext, modules: Sequence[Path]) -> list[Path]:
    """Keep the first entry of each package; a package packs to a single archive."""
    roots: set[Path] = set()
    kept: list[Path] = []
    for module in modules:
        root = find_package_root(module)
        if root is not None:
            if root in roots:
                ctx.console.warning(f"Skipping {module}: its package at {root} is already built.")
                continue
            roots.add(root)
        kept.append(module)
    return kept


async def _build_and_pack(
    ctx: ReleaseContext, entry: Path, options: BuildOptions
) -> Result[Artifact, BuildFailed | HookFailed | PackagingFailed]:
    ctx.console.info(f"Building pilet from {entry} ...")
    built = await build_pilet(entry, options, ctx.backend)
    if isinstance(built, Err):
        return built

    outcome = built.value
    ctx.console.debug(f'Pilet "{outcome.package_name}" built successfully!')

    packed = await pack(outcome.root)
    if isinstance(packed, Err):
        return packed

    ctx.console.debug(f'Pilet "{outcome.package_name}" packed to {packed.value}')
    return packed
