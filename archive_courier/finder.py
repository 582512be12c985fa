"""Newest-file lookup for Archive Courier.

Scans a folder for files matching extension / glob filters and returns
the one with the most recent modification time.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def has_extension(name: str, extensions: Iterable[str]) -> bool:
    """Return True if *name* ends with one of *extensions* (case-insensitive).

    Extensions are given without the leading dot and may span several
    suffixes, e.g. ``tar.gz``.
    """
    lowered = name.lower()
    return any(lowered.endswith("." + ext.lower().lstrip(".")) for ext in extensions)


def matches(
    name: str,
    extensions: list[str] | None = None,
    patterns: list[str] | None = None,
    exclude: list[str] | None = None,
) -> bool:
    """Apply the include / exclude / extension filters to a file name."""
    lowered = name.lower()
    # Check include patterns first — file must match at least one
    if patterns and not any(fnmatch.fnmatch(lowered, p.lower()) for p in patterns):
        return False
    for pattern in exclude or []:
        if fnmatch.fnmatch(lowered, pattern.lower()):
            logger.debug("Excluding %s (matches %s)", name, pattern)
            return False
    if not extensions:
        return True
    return has_extension(name, extensions)


def _iter_files(folder: Path, recursive: bool):
    walker = folder.rglob("*") if recursive else folder.iterdir()
    for item in walker:
        try:
            if item.is_file():
                yield item
        except OSError:
            continue


def expand_entries(entries: Iterable[Path]):
    """Yield the regular files in *entries*, descending into directories."""
    for entry in entries:
        if entry.is_dir():
            yield from _iter_files(entry, recursive=True)
        elif entry.is_file():
            yield entry


def newest_of(
    candidates: Iterable[Path],
    extensions: list[str] | None = None,
    patterns: list[str] | None = None,
    exclude: list[str] | None = None,
) -> Path | None:
    """
    Return the most recently modified matching file among *candidates*.

    Ties on ``st_mtime`` go to the lexicographically greatest path so the
    result never depends on directory listing order.  Returns None when
    nothing matches.
    """
    best: tuple[float, str] | None = None
    best_path: Path | None = None

    for item in candidates:
        if not matches(item.name, extensions, patterns, exclude):
            continue
        try:
            mtime = os.stat(item).st_mtime
        except OSError:
            # File vanished between listing and stat
            continue
        key = (mtime, str(item))
        if best is None or key > best:
            best = key
            best_path = item
    return best_path


def find_newest(
    folder: str | Path,
    extensions: list[str] | None = None,
    patterns: list[str] | None = None,
    exclude: list[str] | None = None,
    recursive: bool = False,
) -> Path | None:
    """Return the most recently modified matching file in *folder*."""
    folder = Path(folder)
    newest = newest_of(_iter_files(folder, recursive), extensions, patterns, exclude)
    if newest is not None:
        logger.debug("Newest match in %s: %s", folder, newest)
    else:
        logger.debug("No matching files in %s", folder)
    return newest


def archive_stem(name: str, extensions: Iterable[str]) -> str:
    """Drop the longest matching extension in *extensions* from *name*."""
    lowered = name.lower()
    best = ""
    for ext in extensions:
        suffix = "." + ext.lower().lstrip(".")
        if lowered.endswith(suffix) and len(suffix) > len(best):
            best = suffix
    return name[: len(name) - len(best)] if best else os.path.splitext(name)[0]
