"""Pilet packaging: build root -> npm-compatible ``.tgz`` archive.

The archive is deterministic for an unchanged tree: entries are sorted,
and timestamps, owners and permissions are normalised, so two packs of the
same sources are byte-identical.
"""

from __future__ import annotations

import asyncio
import glob
import gzip
import io
import os
import tarfile
from pathlib import Path

from pilet.core.result import Err, Ok, Result
from pilet.core.structured import get_str, get_str_list, read_json_object
from pilet.services.release.errors import PackagingFailed
from pilet.services.release.model import Artifact

__all__ = ["archive_name", "collect_package_files", "pack"]

# Fixed entry timestamp used by npm pack (1985-10-26T08:15:00Z).
NPM_EPOCH = 499162500

_IGNORED_NAMES = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    ".npmrc",
    ".DS_Store",
    "npm-debug.log",
    "package-lock.json",
}
_IGNORED_SUFFIXES = (".tgz", ".orig")
_ALWAYS_INCLUDED = ("package.json", "README*", "LICENSE*", "LICENCE*", "CHANGELOG*")


def archive_name(package_name: str, version: str) -> str:
    """File name npm gives a packed package (``@scope/x`` -> ``scope-x``)."""
    return f"{package_name.lstrip('@').replace('/', '-')}-{version}.tgz"


def _ignored(rel: Path) -> bool:
    if any(part in _IGNORED_NAMES for part in rel.parts):
        return True
    return rel.name.endswith(_IGNORED_SUFFIXES)


def _walk(root: Path, start: Path) -> list[Path]:
    if start.is_file():
        return [start]
    out: list[Path] = []
    for p in start.rglob("*"):
        if p.is_file() and not _ignored(p.relative_to(root)):
            out.append(p)
    return out


def collect_package_files(root: Path, manifest: dict[str, object]) -> list[tuple[Path, str]]:
    """List ``(source, arcname)`` pairs, sorted by arcname.

    With a ``files`` field only the listed paths (plus package.json, README,
    LICENSE and CHANGELOG) are packed; otherwise the whole tree minus VCS
    folders, node_modules and earlier archives.
    """
    selected: set[Path] = set()
    listed = get_str_list(manifest, "files")

    if listed is None:
        selected.update(_walk(root, root))
    else:
        for pattern in (*_ALWAYS_INCLUDED, *listed):
            for match in glob.glob(pattern.strip("/"), root_dir=root, recursive=True):
                selected.update(_walk(root, root / match))

    pairs = [(p, f"package/{p.relative_to(root).as_posix()}") for p in selected]
    return sorted(pairs, key=lambda pair: pair[1])


def _tarinfo(arcname: str, source: Path) -> tarfile.TarInfo:
    info = tarfile.TarInfo(arcname)
    info.size = source.stat().st_size
    info.mtime = NPM_EPOCH
    info.mode = 0o755 if os.access(source, os.X_OK) else 0o644
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def _write_archive(files: list[tuple[Path, str]], dest: Path) -> None:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for source, arcname in files:
            with source.open("rb") as f:
                tar.addfile(_tarinfo(arcname, source), f)

    # gzip header: no file name, zero mtime
    with dest.open("wb") as raw, gzip.GzipFile(
        filename="", mode="wb", fileobj=raw, mtime=0, compresslevel=9
    ) as gz:
        gz.write(buffer.getvalue())


def _pack(root: Path, out_dir: Path) -> Result[Artifact, PackagingFailed]:
    if not root.is_dir():
        return Err(PackagingFailed(root=root, reason="directory not found"))

    manifest = read_json_object(root / "package.json")
    if manifest is None:
        return Err(PackagingFailed(root=root, reason="missing or invalid package.json"))

    name = get_str(manifest, "name")
    version = get_str(manifest, "version")
    if name is None or version is None:
        return Err(PackagingFailed(root=root, reason="package.json needs a name and a version"))

    dest = out_dir / archive_name(name, version)
    try:
        files = collect_package_files(root, manifest)
        out_dir.mkdir(parents=True, exist_ok=True)
        _write_archive([f for f in files if f[0] != dest], dest)
    except OSError as e:
        dest.unlink(missing_ok=True)
        return Err(PackagingFailed(root=root, reason=e.strerror or str(e)))

    return Ok(dest)


async def pack(root: Path, *, out_dir: Path | None = None) -> Result[Artifact, PackagingFailed]:
    """Archive ``root`` into ``<name>-<version>.tgz``.

    The archive is written into ``out_dir`` (default: ``root``).
    """
    return await asyncio.to_thread(_pack, root, out_dir or root)
