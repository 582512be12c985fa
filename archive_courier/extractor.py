"""Archive extraction for Archive Courier.

Thin layer over ``shutil.unpack_archive`` that works out which entries
an extraction produced, so the pipeline can look for the payload among
them and the cleanup knows what it is dealing with.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import zipfile
from pathlib import Path, PurePosixPath

from archive_courier.errors import ExtractionError

logger = logging.getLogger(__name__)

_TAR_FORMATS = {"tar", "gztar", "bztar", "xztar"}


def archive_format(path: str | Path) -> str | None:
    """Return the ``shutil`` unpack format name for *path*, or None."""
    lowered = str(path).lower()
    best: tuple[int, str] | None = None
    for name, extensions, _description in shutil.get_unpack_formats():
        for ext in extensions:
            # Longest suffix wins so ".tar.gz" beats ".gz"
            if lowered.endswith(ext) and (best is None or len(ext) > best[0]):
                best = (len(ext), name)
    return best[1] if best else None


def _member_names(archive: Path, fmt: str) -> list[str]:
    """Return the member names stored in *archive*."""
    if fmt == "zip":
        with zipfile.ZipFile(archive) as zf:
            return zf.namelist()
    with tarfile.open(archive) as tf:
        return tf.getnames()


def top_level_names(members: list[str]) -> list[str]:
    """Reduce archive member names to their distinct top-level components.

    Absolute names and names climbing out with ``..`` are dropped; they
    are never written inside the extraction folder.
    """
    names = set()
    for member in members:
        path = PurePosixPath(member.replace("\\", "/"))
        if path.is_absolute() or ".." in path.parts or not path.parts:
            continue
        names.add(path.parts[0])
    return sorted(names)


def extract_archive(archive: str | Path, dest_dir: str | Path) -> list[Path]:
    """
    Extract *archive* into *dest_dir* and return the top-level entries
    the archive holds.  The entries come from the archive's member list,
    so a member that overwrites an identical leftover still counts.

    Tar members are unpacked with the ``"data"`` filter, which refuses
    absolute paths, parent-directory escapes and special files.  Zip
    members with such names are skipped by ``shutil`` itself.

    Raises ExtractionError on unsupported formats, corrupt archives and
    OS errors.
    """
    archive = Path(archive)
    dest_dir = Path(dest_dir)

    fmt = archive_format(archive)
    if fmt is None:
        raise ExtractionError(f"Unsupported archive format: {archive.name}")
    if not dest_dir.is_dir():
        raise ExtractionError(f"Extraction folder does not exist: {dest_dir}")

    kwargs = {"filter": "data"} if fmt in _TAR_FORMATS else {}

    try:
        members = _member_names(archive, fmt)
    except (tarfile.TarError, zipfile.BadZipFile, EOFError, OSError) as exc:
        raise ExtractionError(f"Could not read {archive.name}: {exc}") from exc

    logger.info("Extracting %s (%s) into %s", archive.name, fmt, dest_dir)
    try:
        shutil.unpack_archive(str(archive), str(dest_dir), format=fmt, **kwargs)
    except (shutil.ReadError, tarfile.TarError, zipfile.BadZipFile, EOFError, OSError) as exc:
        raise ExtractionError(f"Could not extract {archive.name}: {exc}") from exc

    produced = [
        dest_dir / name
        for name in top_level_names(members)
        if name != archive.name and os.path.lexists(dest_dir / name)
    ]
    logger.info("Extracted %d top-level entr%s from %s",
                len(produced), "y" if len(produced) == 1 else "ies", archive.name)
    return produced
