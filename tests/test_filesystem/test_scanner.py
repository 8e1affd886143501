"""Tests for the filesystem scanner."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from imgindex.filesystem.scanner import (
    extract_date,
    group_by_date,
    is_image_file,
    normalize_path,
    scan_date_directory,
    scan_directory,
)
from tests._helpers import scanned, write_image

if TYPE_CHECKING:
    from pathlib import Path


class TestImageFilter:
    @pytest.mark.parametrize("name", ["a.png", "b.JPG", "c.jpeg", "d.webp", "e.gif"])
    def test_allowed_extensions(self, name: str) -> None:
        assert is_image_file(name)

    @pytest.mark.parametrize("name", ["notes.txt", "workflow.json", "png", "clip.mp4"])
    def test_other_files_rejected(self, name: str) -> None:
        assert not is_image_file(name)


class TestDateExtraction:
    def test_date_prefixed_path(self) -> None:
        assert extract_date("2026-02-14/a.png") == "2026-02-14"

    def test_nested_date_path(self) -> None:
        assert extract_date("2026-02-14/batch/a.png") == "2026-02-14"

    def test_backslash_path_is_normalized(self) -> None:
        assert extract_date("2026-02-14\\a.png") == "2026-02-14"

    def test_undated_paths(self) -> None:
        assert extract_date("misc/a.png") is None
        assert extract_date("a.png") is None
        assert extract_date("2026-2-14/a.png") is None
        assert extract_date("x/2026-02-14/a.png") is None

    def test_group_by_date_skips_undated(self) -> None:
        images = [
            scanned("2026-02-14/a.png", 1),
            scanned("2026-02-14/b.png", 2),
            scanned("2026-02-13/c.png", 3),
            scanned("loose.png", 4),
        ]
        assert group_by_date(images) == {"2026-02-14": 2, "2026-02-13": 1}

    def test_normalize_path(self) -> None:
        assert normalize_path("a\\b\\c.png") == "a/b/c.png"


class TestScanDirectory:
    def test_collects_images_recursively(self, tmp_path: Path) -> None:
        write_image(tmp_path, "2026-02-13/a.png", 1_000)
        write_image(tmp_path, "2026-02-14/sub/b.jpg", 2_000, data=b"12345678")
        (tmp_path / "2026-02-14" / "notes.txt").write_text("skip me")

        images = scan_directory(tmp_path)
        by_path = {image.path: image for image in images}

        assert set(by_path) == {"2026-02-13/a.png", "2026-02-14/sub/b.jpg"}
        b = by_path["2026-02-14/sub/b.jpg"]
        assert b.filename == "b.jpg"
        assert b.size == 8
        assert b.mtime == 2_000
        assert os.path.isabs(b.full_path)
        assert b.full_path == os.path.abspath(tmp_path / "2026-02-14" / "sub" / "b.jpg")

    def test_relative_prefix(self, tmp_path: Path) -> None:
        write_image(tmp_path, "2026-02-14/a.png", 1_000)
        images = scan_directory(tmp_path / "2026-02-14", "2026-02-14")
        assert [image.path for image in images] == ["2026-02-14/a.png"]

    def test_mtime_is_whole_seconds(self, tmp_path: Path) -> None:
        target = write_image(tmp_path, "a.png", 1_000)
        os.utime(target, (1_000.75, 1_000.75))
        assert scan_directory(tmp_path)[0].mtime == 1_000

    def test_missing_root_yields_nothing(self, tmp_path: Path) -> None:
        assert scan_directory(tmp_path / "missing") == []

    def test_unreadable_subdirectory_is_skipped(self, tmp_path: Path) -> None:
        write_image(tmp_path, "good/a.png", 1_000)
        write_image(tmp_path, "bad/b.png", 1_000)
        bad_dir = str(tmp_path / "bad")
        real_scandir = os.scandir

        def flaky_scandir(path):  # type: ignore[no-untyped-def]
            if os.fspath(path) == bad_dir:
                raise PermissionError("denied")
            return real_scandir(path)

        with patch("imgindex.filesystem.scanner.os.scandir", side_effect=flaky_scandir):
            images = scan_directory(tmp_path)

        assert [image.path for image in images] == ["good/a.png"]

    def test_file_vanishing_before_stat_is_skipped(self, tmp_path: Path) -> None:
        write_image(tmp_path, "a.png", 1_000)
        write_image(tmp_path, "b.png", 1_000)
        real_scandir = os.scandir

        class VanishingEntry:
            def __init__(self, entry: os.DirEntry[str]) -> None:
                self._entry = entry
                self.name = entry.name
                self.path = entry.path

            def is_dir(self, follow_symlinks: bool = True) -> bool:
                return False

            def is_file(self) -> bool:
                return True

            def stat(self) -> os.stat_result:
                raise FileNotFoundError(self.path)

        class PatchedIterator:
            def __init__(self, path: str) -> None:
                self._it = real_scandir(path)

            def __enter__(self) -> PatchedIterator:
                return self

            def __exit__(self, *args: object) -> None:
                self._it.close()

            def __iter__(self):  # type: ignore[no-untyped-def]
                for entry in self._it:
                    yield VanishingEntry(entry) if entry.name == "b.png" else entry

        with patch("imgindex.filesystem.scanner.os.scandir", side_effect=PatchedIterator):
            images = scan_directory(tmp_path)

        assert [image.path for image in images] == ["a.png"]


class TestScanDateDirectory:
    def test_paths_carry_date_prefix(self, tmp_path: Path) -> None:
        write_image(tmp_path, "2026-02-14/a.png", 1_000)
        write_image(tmp_path, "2026-02-13/b.png", 1_000)
        images = scan_date_directory(tmp_path, "2026-02-14")
        assert [image.path for image in images] == ["2026-02-14/a.png"]

    def test_missing_date_directory(self, tmp_path: Path) -> None:
        assert scan_date_directory(tmp_path, "2026-02-14") == []

    def test_symlinked_date_directory(self, tmp_path: Path) -> None:
        root = tmp_path / "images"
        root.mkdir()
        write_image(tmp_path, "elsewhere/a.png", 1_000)
        (root / "2026-02-14").symlink_to(tmp_path / "elsewhere", target_is_directory=True)

        assert [image.path for image in scan_date_directory(root, "2026-02-14")] == [
            "2026-02-14/a.png"
        ]
        assert [image.path for image in scan_directory(root)] == ["2026-02-14/a.png"]


class TestSymlinks:
    def test_symlinked_subdirectory_followed(self, tmp_path: Path) -> None:
        root = tmp_path / "images"
        root.mkdir()
        write_image(tmp_path, "shared/batch/a.png", 1_000)
        (root / "2026-02-14").mkdir()
        (root / "2026-02-14" / "batch").symlink_to(tmp_path / "shared" / "batch")

        images = scan_directory(root)

        assert [image.path for image in images] == ["2026-02-14/batch/a.png"]

    def test_directory_loop_walked_once(self, tmp_path: Path) -> None:
        write_image(tmp_path, "2026-02-14/a.png", 1_000)
        (tmp_path / "2026-02-14" / "again").symlink_to(tmp_path, target_is_directory=True)

        images = scan_directory(tmp_path)

        assert [image.path for image in images] == ["2026-02-14/a.png"]

    def test_broken_symlink_ignored(self, tmp_path: Path) -> None:
        write_image(tmp_path, "a.png", 1_000)
        (tmp_path / "dangling.png").symlink_to(tmp_path / "missing.png")

        assert [image.path for image in scan_directory(tmp_path)] == ["a.png"]
