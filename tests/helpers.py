"""Archive-building helpers shared by the tests."""

import io
import os
import tarfile
import time
import zipfile
from pathlib import Path


def set_mtime(path: Path, mtime: float) -> Path:
    os.utime(path, (mtime, mtime))
    return path


def make_zip(path: Path, members: dict[str, bytes | str], mtime: float | None = None) -> Path:
    """Write a zip archive with *members* (name -> content)."""
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    if mtime is not None:
        set_mtime(path, mtime)
    return path


def make_tar(
    path: Path,
    members: dict[str, bytes | str],
    member_mtimes: dict[str, float] | None = None,
    mode: str = "w:gz",
) -> Path:
    """Write a tar archive; tar preserves member mtimes on extraction."""
    member_mtimes = member_mtimes or {}
    with tarfile.open(path, mode) as tf:
        for name, content in members.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mtime = member_mtimes.get(name, time.time())
            tf.addfile(info, io.BytesIO(data))
    return path

