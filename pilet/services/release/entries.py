"""File matching for local archives and pilet entry modules."""

from __future__ import annotations

import glob
from pathlib import Path

from pilet.core.structured import get_str, read_json_object

__all__ = [
    "ENTRY_EXTENSIONS",
    "find_package_root",
    "match_entries",
    "match_files",
]

ENTRY_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")


def match_files(base_dir: Path, pattern: str) -> list[Path]:
    """Expand ``pattern`` relative to ``base_dir`` into existing files.

    Absolute patterns are used as-is. ``**`` matches across directories.
    Matches are sorted so the result does not depend on directory order.
    """
    return sorted(p.resolve() for p in _glob(base_dir, pattern) if p.is_file())


def _glob(base_dir: Path, pattern: str) -> list[Path]:
    # base_dir is taken literally; only the pattern is expanded
    return [base_dir / p for p in glob.glob(pattern, root_dir=base_dir, recursive=True)]


def find_package_root(start: Path) -> Path | None:
    """Nearest directory at or above ``start`` containing package.json."""
    current = start if start.is_dir() else start.parent
    for candidate in (current, *current.parents):
        if (candidate / "package.json").is_file():
            return candidate
    return None


def _with_extension(path: Path) -> Path | None:
    if path.is_file():
        return path
    for ext in ENTRY_EXTENSIONS:
        candidate = path.with_name(path.name + ext)
        if candidate.is_file():
            return candidate
    return None


def _entry_of_directory(directory: Path) -> Path | None:
    manifest = read_json_object(directory / "package.json")
    if manifest is not None:
        source = get_str(manifest, "source")
        if source:
            entry = _with_extension(directory / source)
            if entry is not None:
                return entry

    for stem in ("src/index", "index"):
        entry = _with_extension(directory / stem)
        if entry is not None:
            return entry
    return None


def _entries_for(base_dir: Path, pattern: str) -> list[Path]:
    if glob.has_magic(pattern):
        candidates = sorted(_glob(base_dir, pattern))
    else:
        target = base_dir / pattern
        if target.exists():
            candidates = [target]
        else:
            found = _with_extension(target)
            candidates = [found] if found is not None else []

    entries: list[Path] = []
    for candidate in candidates:
        if candidate.is_dir():
            entry = _entry_of_directory(candidate)
        elif candidate.name == "package.json":
            entry = _entry_of_directory(candidate.parent)
        elif candidate.suffix in ENTRY_EXTENSIONS:
            entry = candidate
        else:
            entry = None
        if entry is not None:
            entries.append(entry.resolve())
    return entries


def match_entries(base_dir: Path, patterns: tuple[str, ...] | list[str]) -> list[Path]:
    """Resolve entry modules for all ``patterns``, in pattern order.

    A pattern may name a module with or without extension, a package
    directory, its package.json, or a glob over any of those. Entries matched
    by more than one pattern appear once, at their first position.
    """
    seen: set[Path] = set()
    ordered: list[Path] = []
    for pattern in patterns:
        for entry in _entries_for(base_dir, pattern):
            if entry not in seen:
                seen.add(entry)
                ordered.append(entry)
    return ordered
