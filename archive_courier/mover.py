"""
File move engine for Archive Courier.

Moves a file into a destination folder, optionally under a new name.
Supports collision protection with configurable rename tokens and
SHA-256 verification when the move has to copy across devices.
"""

import hashlib
import logging
import os
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from archive_courier.config import (
    COLLISION_OVERWRITE,
    COLLISION_RENAME,
    COLLISION_SKIP,
    DEFAULT_RENAME_PATTERN,
)
from archive_courier.errors import STEP_MOVE_ARCHIVE, MoveError
from archive_courier.finder import archive_stem, has_extension

logger = logging.getLogger(__name__)

_HASH_CHUNK = 256 * 1024  # 256 KiB read chunks for hashing


def _sha256(filepath: Path) -> str:
    """Return the hex SHA-256 digest of *filepath*."""
    h = hashlib.sha256()
    with open(filepath, "rb") as fh:
        while chunk := fh.read(_HASH_CHUNK):
            h.update(chunk)
    return h.hexdigest()


def split_name(filename: str, extensions: list[str] | None = None) -> tuple[str, str]:
    """Split *filename* into (stem, ext) with the extension lacking its dot.

    A multi-part extension listed in *extensions* (``tar.gz``) is kept whole.
    """
    if extensions and has_extension(filename, extensions):
        stem = archive_stem(filename, extensions)
        return stem, filename[len(stem):].lstrip(".")
    stem, dot_ext = os.path.splitext(filename)
    return stem, dot_ext.lstrip(".")


def expand_name_pattern(
    pattern: str,
    name: str,
    ext: str,
    counter: int = 0,
    archive: str = "",
    now: datetime | None = None,
) -> str:
    """
    Expand a token-based name pattern.

    Supported tokens:
      {name}     — filename without extension
      {ext}      — extension without leading dot
      {n}        — collision counter (1, 2, 3, …)
      {archive}  — source archive name without its archive extension
      {date}     — current date YYYY-MM-DD
      {time}     — current time HH-MM-SS
      {datetime} — combined YYYY-MM-DD_HH-MM-SS
      {ts}       — integer Unix timestamp

    A pattern that leaves ``{ext}`` empty would end in a stray dot;
    it is stripped.
    """
    now = now or datetime.now()
    try:
        result = pattern.format(
            name=name,
            ext=ext,
            n=counter,
            archive=archive,
            date=now.strftime("%Y-%m-%d"),
            time=now.strftime("%H-%M-%S"),
            datetime=now.strftime("%Y-%m-%d_%H-%M-%S"),
            ts=int(now.timestamp()),
        )
    except (KeyError, IndexError, ValueError) as exc:
        raise ValueError(f"Invalid name pattern {pattern!r}: {exc}") from exc
    result = result.rstrip(".")
    if not result or os.sep in result or (os.altsep and os.altsep in result):
        raise ValueError(f"Name pattern {pattern!r} produced an invalid filename: {result!r}")
    return result


@dataclass
class MoveRecord:
    """Record of a single file move operation."""
    source: str
    destination: str = ""
    size_bytes: int = 0
    started: float = 0.0
    finished: float = 0.0
    success: bool = False
    verified: bool = False
    cross_device: bool = False
    error: str = ""

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0


def resolve_collision(
    dest: Path,
    collision_mode: str = COLLISION_OVERWRITE,
    rename_pattern: str = DEFAULT_RENAME_PATTERN,
    extensions: list[str] | None = None,
) -> Path | None:
    """
    Apply the configured collision strategy.

    Returns the final destination path, or None if the move should be refused.
    """
    if not dest.exists():
        return dest

    if collision_mode == COLLISION_OVERWRITE:
        return dest

    if collision_mode == COLLISION_SKIP:
        return None

    # COLLISION_RENAME — expand pattern with incrementing counter
    stem, ext = split_name(dest.name, extensions)
    parent = dest.parent
    for n in range(1, 10_000):
        candidate = parent / expand_name_pattern(rename_pattern, stem, ext, n)
        if not candidate.exists():
            return candidate

    # Exhausted counter space — fall back to timestamp
    ts = int(time.time())
    return parent / (f"{stem}_{ts}.{ext}" if ext else f"{stem}_{ts}")


def _same_device(source: Path, dest_dir: Path) -> bool:
    try:
        return os.stat(source).st_dev == os.stat(dest_dir).st_dev
    except OSError:
        return False


def _copy_verify_unlink(source: Path, dest: Path, verify: bool, rec: MoveRecord) -> None:
    """Cross-device move: copy, optionally verify, then drop the source."""
    src_hash = _sha256(source) if verify else ""
    shutil.copy2(str(source), str(dest))
    if verify:
        dst_hash = _sha256(dest)
        if src_hash != dst_hash:
            dest.unlink(missing_ok=True)
            raise OSError(
                f"Verification failed: SHA-256 mismatch "
                f"(src={src_hash[:12]}… dst={dst_hash[:12]}…)"
            )
        rec.verified = True
    elif dest.stat().st_size != rec.size_bytes:
        dest.unlink(missing_ok=True)
        raise OSError("Post-copy size mismatch")
    source.unlink()


def move_file(
    source: str | Path,
    dest_dir: str | Path,
    new_name: str | None = None,
    collision_mode: str = COLLISION_OVERWRITE,
    rename_pattern: str = DEFAULT_RENAME_PATTERN,
    verify: bool = True,
    step: str = STEP_MOVE_ARCHIVE,
    extensions: list[str] | None = None,
) -> MoveRecord:
    """
    Move *source* into *dest_dir*, optionally renaming it to *new_name*.

    Same-device moves are a plain rename.  Cross-device moves are copied,
    checked (SHA-256 when *verify* is set, size otherwise) and only then
    removed from the source.
    *extensions* lists multi-part suffixes (``tar.gz``) a collision rename
    must keep whole, e.g. ``batch_1.tar.gz``.

    Raises MoveError (tagged with *step*) on any failure, including a
    collision refused by ``skip`` mode.
    """
    source = Path(source)
    dest_dir = Path(dest_dir)
    rec = MoveRecord(source=str(source), started=time.time())

    try:
        if not source.is_file():
            raise MoveError(f"Source file does not exist: {source}", step=step)
        if not dest_dir.is_dir():
            raise MoveError(f"Destination folder does not exist: {dest_dir}", step=step)

        rec.size_bytes = source.stat().st_size
        base_dest = dest_dir / (new_name or source.name)

        if base_dest.resolve() == source.resolve():
            raise MoveError(f"Source and destination are the same file: {source}", step=step)

        dest = resolve_collision(base_dest, collision_mode, rename_pattern, extensions)
        if dest is None:
            raise MoveError(
                f"Destination already exists and collision mode is 'skip': {base_dest}",
                step=step,
            )
        rec.destination = str(dest)

        logger.info("Moving %s -> %s (%d bytes)", source, dest, rec.size_bytes)
        if _same_device(source, dest_dir):
            os.replace(source, dest)
        else:
            rec.cross_device = True
            _copy_verify_unlink(source, dest, verify, rec)

        rec.finished = time.time()
        rec.success = True
        suffix = " (verified)" if rec.verified else ""
        logger.info("Move complete in %.2fs%s: %s", rec.duration, suffix, dest)
        return rec

    except MoveError as exc:
        rec.error = str(exc)
        rec.finished = time.time()
        raise
    except (OSError, ValueError) as exc:
        rec.error = str(exc)
        rec.finished = time.time()
        raise MoveError(f"Could not move {source}: {exc}", step=step) from exc
