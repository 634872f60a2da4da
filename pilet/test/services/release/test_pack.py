"""Tests for the npm-compatible packager."""

from __future__ import annotations

import json
import tarfile
from collections.abc import Callable
from pathlib import Path

import pytest

from pilet.core.result import Err, Ok
from pilet.services.release.errors import PackagingFailed
from pilet.services.release.pack import NPM_EPOCH, archive_name, collect_package_files, pack


def _members(archive: Path) -> list[tarfile.TarInfo]:
    with tarfile.open(archive, "r:gz") as tar:
        return tar.getmembers()


class TestArchiveName:
    """Tests for archive_name()."""

    def test_plain(self) -> None:
        """Unscoped names keep their name."""
        assert archive_name("my-pilet", "1.0.0") == "my-pilet-1.0.0.tgz"

    def test_scoped(self) -> None:
        """Scoped names drop the '@' and join with '-'."""
        assert archive_name("@acme/shop", "2.0.0-beta.1") == "acme-shop-2.0.0-beta.1.tgz"


class TestCollectPackageFiles:
    """Tests for collect_package_files()."""

    def test_skips_vcs_dependencies_and_archives(
        self, tmp_path: Path, make_pilet: Callable[..., Path]
    ) -> None:
        """VCS folders, node_modules and archives are left out."""
        root = make_pilet(tmp_path, "p")
        for rel in (".git/HEAD", "node_modules/x/index.js", "old-0.1.0.tgz", "dist/index.js"):
            (root / rel).parent.mkdir(parents=True, exist_ok=True)
            (root / rel).write_text("x", encoding="utf-8")

        names = [arc for _, arc in collect_package_files(root, {})]

        assert names == [
            "package/dist/index.js",
            "package/package.json",
            "package/src/index.tsx",
        ]

    def test_files_field_limits_contents(
        self, tmp_path: Path, make_pilet: Callable[..., Path]
    ) -> None:
        """The files field limits contents to listed paths and README."""
        root = make_pilet(tmp_path, "p")
        (root / "dist").mkdir()
        (root / "dist" / "index.js").write_text("x", encoding="utf-8")
        (root / "README.md").write_text("# p", encoding="utf-8")

        names = [arc for _, arc in collect_package_files(root, {"files": ["dist"]})]

        assert names == ["package/README.md", "package/dist/index.js", "package/package.json"]

    def test_files_field_under_bracketed_root(
        self, tmp_path: Path, make_pilet: Callable[..., Path]
    ) -> None:
        """Listed paths are still packed when the root name contains brackets."""
        root = make_pilet(tmp_path / "build[1]", "p")
        (root / "dist").mkdir()
        (root / "dist" / "index.js").write_text("x", encoding="utf-8")

        names = [arc for _, arc in collect_package_files(root, {"files": ["dist"]})]

        assert names == ["package/dist/index.js", "package/package.json"]


class TestPack:
    """Tests for pack()."""

    @pytest.mark.asyncio
    async def test_writes_npm_layout(self, tmp_path: Path, make_pilet: Callable[..., Path]) -> None:
        """Members sit under package/ with normalised metadata."""
        root = make_pilet(tmp_path, "@acme/p", "1.2.3")

        result = await pack(root)

        assert result == Ok(root / "acme-p-1.2.3.tgz")
        members = _members(result.value)
        assert [m.name for m in members] == ["package/package.json", "package/src/index.tsx"]
        for member in members:
            assert member.mtime == NPM_EPOCH
            assert member.uid == member.gid == 0
            assert member.uname == member.gname == ""
            assert member.mode == 0o644

    @pytest.mark.asyncio
    async def test_is_deterministic(self, tmp_path: Path, make_pilet: Callable[..., Path]) -> None:
        """Packing an unchanged tree twice yields identical bytes."""
        root = make_pilet(tmp_path, "det")

        first = (await pack(root, out_dir=tmp_path / "one")).unwrap().read_bytes()
        second = (await pack(root, out_dir=tmp_path / "two")).unwrap().read_bytes()

        assert first == second
        # gzip header mtime field
        assert first[4:8] == b"\x00\x00\x00\x00"

    @pytest.mark.asyncio
    async def test_repack_does_not_include_previous_archive(
        self, tmp_path: Path, make_pilet: Callable[..., Path]
    ) -> None:
        """A second pack does not include the first archive."""
        root = make_pilet(tmp_path, "again")
        await pack(root)

        result = await pack(root)

        assert isinstance(result, Ok)
        assert all(not m.name.endswith(".tgz") for m in _members(result.value))

    @pytest.mark.asyncio
    async def test_manifest_contents_are_kept(
        self, tmp_path: Path, make_pilet: Callable[..., Path]
    ) -> None:
        """package.json is packed unchanged."""
        root = make_pilet(tmp_path, "meta", "0.0.1", description="a pilet")

        archive = (await pack(root)).unwrap()

        with tarfile.open(archive, "r:gz") as tar:
            extracted = tar.extractfile("package/package.json")
            assert extracted is not None
            assert json.loads(extracted.read())["description"] == "a pilet"

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path: Path) -> None:
        """A missing root is a packaging failure."""
        result = await pack(tmp_path / "nowhere")

        assert isinstance(result, Err)
        assert isinstance(result.error, PackagingFailed)
        assert result.error.reason == "directory not found"

    @pytest.mark.asyncio
    async def test_missing_manifest(self, tmp_path: Path) -> None:
        """A root without package.json is a packaging failure."""
        result = await pack(tmp_path)

        assert isinstance(result, Err)
        assert "package.json" in result.error.reason
