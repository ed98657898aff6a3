"""Disk image discovery.

Walks a small set of root directories looking for image files
(.iso/.img/.raw) whose name matches a query. The walk is depth-bounded,
never follows symlinks, prunes hidden directories and silently skips
directories it cannot read.
"""

import logging
import os
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from imagewriter.types import DirectoryPath, ImageCandidate, ImagePath
from imagewriter.units import MIB

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({"iso", "img", "raw"})

DEFAULT_MAX_DEPTH = 5
DEFAULT_MIN_SIZE = 100 * MIB

DOWNLOADS_DIR = "Downloads"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def has_image_extension(
    name: str, extensions: Iterable[str] = IMAGE_EXTENSIONS
) -> bool:
    """Check whether a file name carries an allowed image extension."""
    suffix = Path(name).suffix
    if not suffix:
        return False
    return suffix[1:].lower() in {ext.lower().lstrip(".") for ext in extensions}


def matches_query(name: str, query: str) -> bool:
    """Case-insensitive substring match; an empty query matches everything."""
    if not query:
        return True
    return query.lower() in name.lower()


def home_dir() -> DirectoryPath | None:
    """Return the user's home directory, or None if it cannot be determined."""
    try:
        return DirectoryPath(Path.home())
    except (KeyError, RuntimeError):
        return None


def default_roots() -> list[DirectoryPath]:
    """Return the default scan roots: cwd, ~/Downloads and ~ (normalized)."""
    roots: list[DirectoryPath] = []
    try:
        roots.append(DirectoryPath(Path.cwd()))
    except OSError:
        logger.debug("Current directory is not accessible")

    home = home_dir()
    if home is not None:
        roots.append(home.join(DOWNLOADS_DIR))
        roots.append(home)

    return normalize_roots(roots, home)


def normalize_roots(
    roots: Iterable[DirectoryPath], home: DirectoryPath | None = None
) -> list[DirectoryPath]:
    """Remove roots that would rescan the same tree.

    Roots are de-duplicated by canonical path (first occurrence wins). When
    the canonical Downloads directory under home is among the roots, the
    home root itself is dropped.

    Args:
        roots: Candidate roots in priority order.
        home: Home directory used for the Downloads rule.

    Returns:
        Normalized roots in their original order.
    """
    kept: list[tuple[DirectoryPath, DirectoryPath]] = []
    seen: set[DirectoryPath] = set()
    for root in roots:
        canonical = root.canonical()
        if canonical in seen:
            continue
        seen.add(canonical)
        kept.append((root, canonical))

    if home is not None:
        home_canonical = home.canonical()
        downloads = home.join(DOWNLOADS_DIR)
        downloads_canonical = downloads.canonical()
        if downloads.path.is_dir() and any(c == downloads_canonical for _, c in kept):
            kept = [(r, c) for r, c in kept if c != home_canonical]

    return [root for root, _ in kept]


def _modified_time(stat_result: os.stat_result) -> datetime | None:
    try:
        return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _walk(
    directory: str,
    depth: int,
    max_depth: int,
    min_size: int,
    query: str,
    extensions: frozenset[str],
    found: list[ImageCandidate],
    seen: set[Path],
) -> None:
    if depth > max_depth:
        return

    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        logger.debug("Skipping unreadable directory %s: %s", directory, e)
        return

    for entry in entries:
        try:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name.startswith("."):
                    continue
                _walk(
                    entry.path,
                    depth + 1,
                    max_depth,
                    min_size,
                    query,
                    extensions,
                    found,
                    seen,
                )
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if not has_image_extension(entry.name, extensions):
                continue
            if not matches_query(entry.name, query):
                continue

            st = entry.stat(follow_symlinks=False)
            if st.st_size < min_size:
                continue

            canonical = Path(entry.path).resolve()
        except OSError as e:
            logger.debug("Skipping %s: %s", entry.path, e)
            continue

        if canonical in seen:
            continue
        seen.add(canonical)
        found.append(
            ImageCandidate(
                path=ImagePath(canonical),
                size=st.st_size,
                modified=_modified_time(st),
            )
        )


def sort_candidates(candidates: Iterable[ImageCandidate]) -> list[ImageCandidate]:
    """Newest first (unknown mtime last), ties broken by path."""
    ordered = sorted(candidates, key=lambda c: c.path)
    ordered.sort(key=lambda c: c.modified or _OLDEST, reverse=True)
    return ordered


def scan(
    roots: Iterable[DirectoryPath],
    query: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    min_size: int = DEFAULT_MIN_SIZE,
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
) -> list[ImageCandidate]:
    """Scan directories for image files.

    Args:
        roots: Directories to walk (depth 0 is the root itself).
        query: Case-insensitive substring the file name must contain.
        max_depth: Deepest directory level visited below each root.
        min_size: Minimum file size in bytes.
        extensions: Allowed file extensions (without the dot).

    Returns:
        Candidates unique by canonical path, newest first.
    """
    allowed = frozenset(ext.lower().lstrip(".") for ext in extensions)
    found: list[ImageCandidate] = []
    seen: set[Path] = set()

    for root in roots:
        if not root.path.is_dir():
            logger.debug("Scan root does not exist: %s", root)
            continue
        _walk(str(root), 0, max_depth, min_size, query, allowed, found, seen)

    results = sort_candidates(found)
    logger.info("Image scan for %r found %d candidate(s)", query, len(results))
    return results


def scan_default_roots(
    query: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    min_size: int = DEFAULT_MIN_SIZE,
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
) -> list[ImageCandidate]:
    """Scan the current directory, ~/Downloads and ~ for images."""
    return scan(default_roots(), query, max_depth, min_size, extensions)


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_MIN_SIZE",
    "IMAGE_EXTENSIONS",
    "default_roots",
    "has_image_extension",
    "matches_query",
    "normalize_roots",
    "scan",
    "scan_default_roots",
    "sort_candidates",
]
