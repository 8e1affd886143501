"""Filesystem scanner for generated images.

Walks the image root (or one ``YYYY-MM-DD`` bucket directory) and returns one
:class:`ScannedImage` per image file.  Unreadable directories and files that
vanish between listing and ``stat`` are logged and skipped; the walk of their
siblings continues.  Directory symlinks are followed the same way in both
scans; a directory reached twice is walked only once.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp", ".gif"})

DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})/")


@dataclass(frozen=True)
class ScannedImage:
    """Descriptor for one image file found on disk."""

    filename: str
    path: str
    full_path: str
    size: int
    mtime: int


def is_image_file(filename: str) -> bool:
    """Return True if the filename has an allow-listed image extension."""
    return os.path.splitext(filename)[1].lower() in IMAGE_EXTENSIONS


def normalize_path(path: str) -> str:
    """Convert native separators to forward slashes."""
    return path.replace("\\", "/")


def extract_date(path: str) -> str | None:
    """Return the leading ``YYYY-MM-DD`` segment of a relative path, if any."""
    match = DATE_PREFIX_RE.match(normalize_path(path))
    return match.group(1) if match else None


def group_by_date(images: list[ScannedImage]) -> dict[str, int]:
    """Count scanned images per derived date; undated paths are left out."""
    counts: dict[str, int] = {}
    for image in images:
        day = extract_date(image.path)
        if day is None:
            continue
        counts[day] = counts.get(day, 0) + 1
    return counts


def scan_directory(directory: Path, relative_path: str = "") -> list[ScannedImage]:
    """Recursively collect image files under ``directory``.

    ``relative_path`` is prepended to every discovered path, so scanning
    ``root / "2026-02-14"`` with ``relative_path="2026-02-14"`` yields paths
    such as ``2026-02-14/a.png``.
    """
    images: list[ScannedImage] = []
    visited: set[tuple[int, int]] = set()
    _walk(os.fspath(directory), normalize_path(relative_path).strip("/"), images, visited)
    return images


def _walk(
    dir_path: str,
    relative_path: str,
    images: list[ScannedImage],
    visited: set[tuple[int, int]],
) -> None:
    # Directory symlinks are followed; each real directory is walked once.
    try:
        info = os.stat(dir_path)
        key = (info.st_dev, info.st_ino)
        if key in visited:
            logger.warning("Skipping already visited directory %s", dir_path)
            return
        visited.add(key)
        with os.scandir(dir_path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.warning("Skipping unreadable directory %s: %s", dir_path, exc)
        return

    for entry in entries:
        item_path = f"{relative_path}/{entry.name}" if relative_path else entry.name
        try:
            if entry.is_dir():
                _walk(entry.path, item_path, images, visited)
                continue
            if not entry.is_file() or not is_image_file(entry.name):
                continue
            stat = entry.stat()
        except OSError as exc:
            logger.warning("Skipping %s: %s", entry.path, exc)
            continue
        images.append(
            ScannedImage(
                filename=entry.name,
                path=item_path,
                full_path=os.path.abspath(entry.path),
                size=stat.st_size,
                mtime=int(stat.st_mtime),
            )
        )


def scan_date_directory(root: Path, date_str: str) -> list[ScannedImage]:
    """Scan one date bucket directory; a missing directory yields no images."""
    date_dir = root / date_str
    if not date_dir.is_dir():
        logger.debug("Date directory does not exist: %s", date_dir)
        return []
    logger.debug("Scanning date directory %s", date_dir)
    return scan_directory(date_dir, date_str)
