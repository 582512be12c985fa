"""Post-run cleanup for Archive Courier.

Removes transient extraction artifacts from the backup folder.  The
removal is an exclude filter: everything goes except archives and
entries matching the configured keep patterns.
"""

from __future__ import annotations

import fnmatch
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from archive_courier.errors import CleanupError
from archive_courier.finder import has_extension

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Outcome of a cleanup sweep."""
    removed: list[Path] = field(default_factory=list)
    kept: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)


def _is_kept(
    entry: Path,
    keep_extensions: list[str],
    keep_patterns: list[str],
    extracted: set[str],
) -> bool:
    name = entry.name.lower()
    if any(fnmatch.fnmatch(name, p.lower()) for p in keep_patterns):
        return True
    # Archives that came out of the extraction are artifacts too
    if entry.name in extracted:
        return False
    return entry.is_file() and has_extension(entry.name, keep_extensions)


def _remove_entry(entry: Path) -> None:
    if entry.is_dir() and not entry.is_symlink():
        shutil.rmtree(entry)
    else:
        entry.unlink()


def clean_extraction_dir(
    folder: str | Path,
    keep_extensions: list[str] | None = None,
    keep_patterns: list[str] | None = None,
    extracted: list[Path] | None = None,
) -> CleanupResult:
    """
    Delete every top-level entry in *folder* that no keep filter protects.

    Files with one of *keep_extensions* and entries whose name matches a
    glob in *keep_patterns* are left alone.  Every other entry is
    removed, directories recursively.  Entries listed in *extracted* lose
    the archive-extension protection, so nested archives go as well.

    Raises CleanupError listing the entries that could not be removed;
    the rest are removed regardless.
    """
    folder = Path(folder)
    keep_extensions = keep_extensions or []
    keep_patterns = keep_patterns or []
    extracted_names = {Path(p).name for p in extracted or []}
    result = CleanupResult()

    if not folder.is_dir():
        raise CleanupError(f"Cleanup folder does not exist: {folder}")

    for entry in sorted(folder.iterdir()):
        if _is_kept(entry, keep_extensions, keep_patterns, extracted_names):
            result.kept.append(entry)
            continue
        try:
            _remove_entry(entry)
            result.removed.append(entry)
            logger.debug("Removed %s", entry)
        except OSError as exc:
            result.failed.append((entry, str(exc)))
            logger.error("Could not remove %s: %s", entry, exc)

    logger.info(
        "Cleanup of %s: %d removed, %d kept", folder, len(result.removed), len(result.kept)
    )
    if result.failed:
        names = ", ".join(p.name for p, _ in result.failed)
        raise CleanupError(f"Could not remove {len(result.failed)} entr"
                           f"{'y' if len(result.failed) == 1 else 'ies'}: {names}")
    return result


def remove_file(path: str | Path) -> bool:
    """
    Delete a single file, returning True if it was removed.

    Used to drop the moved archive from the backup folder when it turns
    out not to contain a payload.  A file that is already gone is not an
    error.
    """
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Nothing to remove, already gone: %s", path)
        return False
    except OSError as exc:
        raise CleanupError(f"Could not remove {path}: {exc}") from exc
    logger.info("Removed %s", path)
    return True
