"""Tests for images/scanner.py - image discovery."""

import os
from pathlib import Path
from unittest.mock import patch

from imagewriter.images.scanner import (
    default_roots,
    has_image_extension,
    matches_query,
    normalize_roots,
    scan,
    sort_candidates,
)
from imagewriter.types import DirectoryPath, ImageCandidate, ImagePath
from imagewriter.units import GIB, MIB


def _make_file(path: Path, size: int, mtime: float | None = None) -> Path:
    """Create a sparse file of the given size."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.truncate(size)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class TestFilters:
    """Tests for name filters."""

    def test_extensions_case_insensitive(self) -> None:
        assert has_image_extension("debian.ISO")
        assert has_image_extension("disk.img")
        assert has_image_extension("disk.raw")
        assert not has_image_extension("notes.txt")
        assert not has_image_extension("README")

    def test_custom_extensions(self) -> None:
        assert has_image_extension("a.qcow2", ["qcow2"])
        assert not has_image_extension("a.iso", ["qcow2"])

    def test_query(self) -> None:
        assert matches_query("Ubuntu-24.04.iso", "ubuntu")
        assert matches_query("anything.img", "")
        assert not matches_query("debian.iso", "arch")


class TestScan:
    """Tests for scan()."""

    def test_size_floor_end_to_end(self, tmp_path: Path) -> None:
        """A 2 GiB image is listed and a 50 MiB image is not."""
        big = _make_file(tmp_path / "a.iso", 2 * GIB)
        _make_file(tmp_path / "b.img", 50 * MIB)

        results = scan([DirectoryPath(tmp_path)], "", min_size=100 * MIB)

        assert [c.path for c in results] == [ImagePath(big.resolve())]
        assert results[0].size == 2 * GIB
        assert results[0].modified is not None

    def test_extension_filter(self, tmp_path: Path) -> None:
        """Files without an image extension are ignored."""
        _make_file(tmp_path / "a.iso", 10)
        _make_file(tmp_path / "a.zip", 10)
        results = scan([DirectoryPath(tmp_path)], "", min_size=0)
        assert [c.path.name for c in results] == ["a.iso"]

    def test_query_filter(self, tmp_path: Path) -> None:
        _make_file(tmp_path / "ubuntu.iso", 10)
        _make_file(tmp_path / "debian.iso", 10)
        results = scan([DirectoryPath(tmp_path)], "DEB", min_size=0)
        assert [c.path.name for c in results] == ["debian.iso"]

    def test_hidden_directories_pruned(self, tmp_path: Path) -> None:
        _make_file(tmp_path / ".cache" / "hidden.iso", 10)
        _make_file(tmp_path / "visible" / "shown.iso", 10)
        results = scan([DirectoryPath(tmp_path)], "", min_size=0)
        assert [c.path.name for c in results] == ["shown.iso"]

    def test_symlinks_not_followed(self, tmp_path: Path) -> None:
        """Symlinked files and directories are skipped."""
        outside = tmp_path / "outside"
        _make_file(outside / "real.iso", 10)
        root = tmp_path / "root"
        root.mkdir()
        (root / "link.iso").symlink_to(outside / "real.iso")
        (root / "linkdir").symlink_to(outside)
        assert scan([DirectoryPath(root)], "", min_size=0) == []

    def test_depth_limit(self, tmp_path: Path) -> None:
        """Files below max_depth are not found."""
        _make_file(tmp_path / "a" / "shallow.iso", 10)
        _make_file(tmp_path / "a" / "b" / "deep.iso", 10)
        results = scan([DirectoryPath(tmp_path)], "", max_depth=1, min_size=0)
        assert [c.path.name for c in results] == ["shallow.iso"]

    def test_overlapping_roots_deduplicated(self, tmp_path: Path) -> None:
        """An image reachable from two roots is listed once."""
        _make_file(tmp_path / "sub" / "x.iso", 10)
        roots = [DirectoryPath(tmp_path), DirectoryPath(tmp_path / "sub")]
        results = scan(roots, "", min_size=0)
        assert len(results) == 1
        assert results[0].path == ImagePath((tmp_path / "sub" / "x.iso").resolve())

    def test_newest_first_then_path(self, tmp_path: Path) -> None:
        """Results are sorted by mtime descending, ties by path."""
        _make_file(tmp_path / "old.iso", 10, mtime=1_000_000)
        _make_file(tmp_path / "new.iso", 10, mtime=2_000_000)
        _make_file(tmp_path / "b.iso", 10, mtime=1_500_000)
        _make_file(tmp_path / "a.iso", 10, mtime=1_500_000)
        results = scan([DirectoryPath(tmp_path)], "", min_size=0)
        assert [c.path.name for c in results] == [
            "new.iso",
            "a.iso",
            "b.iso",
            "old.iso",
        ]

    def test_missing_root_skipped(self, tmp_path: Path) -> None:
        assert scan([DirectoryPath(tmp_path / "nope")], "", min_size=0) == []

    def test_unreadable_directory_skipped(self, tmp_path: Path) -> None:
        """Directories that cannot be listed are skipped silently."""
        _make_file(tmp_path / "ok.iso", 10)
        real_scandir = os.scandir

        def flaky_scandir(path):
            if str(path).endswith("locked"):
                raise PermissionError("denied")
            return real_scandir(path)

        (tmp_path / "locked").mkdir()
        with patch("os.scandir", side_effect=flaky_scandir):
            results = scan([DirectoryPath(tmp_path)], "", min_size=0)
        assert [c.path.name for c in results] == ["ok.iso"]


class TestSortCandidates:
    """Tests for sort_candidates."""

    def test_unknown_mtime_last(self) -> None:
        from datetime import datetime, timezone

        dated = ImageCandidate(
            ImagePath("/z.iso"), 1, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
        undated = ImageCandidate(ImagePath("/a.iso"), 1, None)
        assert sort_candidates([undated, dated]) == [dated, undated]


class TestRoots:
    """Tests for default and normalized roots."""

    def test_downloads_drops_home(self, tmp_path: Path) -> None:
        """Home is not scanned when its Downloads directory is a root."""
        home = DirectoryPath(tmp_path)
        (tmp_path / "Downloads").mkdir()
        cwd = tmp_path / "work"
        cwd.mkdir()
        roots = normalize_roots(
            [DirectoryPath(cwd), home.join("Downloads"), home], home
        )
        assert roots == [DirectoryPath(cwd), home.join("Downloads")]

    def test_home_kept_without_downloads(self, tmp_path: Path) -> None:
        """Home stays when it has no Downloads directory."""
        home = DirectoryPath(tmp_path)
        roots = normalize_roots([home], home)
        assert roots == [home]

    def test_duplicates_removed(self, tmp_path: Path) -> None:
        """Roots with the same canonical path are kept once."""
        root = DirectoryPath(tmp_path)
        (tmp_path / "sub").mkdir()
        roots = normalize_roots([root, DirectoryPath(tmp_path / "sub" / "..")], None)
        assert roots == [root]

    def test_default_roots_without_downloads(self, tmp_path: Path) -> None:
        """Running from home without a Downloads directory scans home once."""
        with (
            patch("pathlib.Path.home", return_value=tmp_path),
            patch("pathlib.Path.cwd", return_value=tmp_path),
        ):
            roots = default_roots()
        assert roots == [
            DirectoryPath(tmp_path),
            DirectoryPath(tmp_path / "Downloads"),
        ]

    def test_default_roots_with_downloads(self, tmp_path: Path) -> None:
        """Home is replaced by ~/Downloads when it exists."""
        (tmp_path / "Downloads").mkdir()
        work = tmp_path / "work"
        work.mkdir()
        with (
            patch("pathlib.Path.home", return_value=tmp_path),
            patch("pathlib.Path.cwd", return_value=work),
        ):
            roots = default_roots()
        assert roots == [DirectoryPath(work), DirectoryPath(tmp_path / "Downloads")]
