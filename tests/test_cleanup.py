"""Tests for extraction-artifact cleanup."""

import pytest

from archive_courier.cleanup import clean_extraction_dir, remove_file
from archive_courier.errors import CleanupError


def test_removes_everything_but_archives(tmp_path):
    (tmp_path / "keep.zip").write_bytes(b"z")
    (tmp_path / "keep.tar.gz").write_bytes(b"t")
    (tmp_path / "junk.txt").write_text("j")
    nested = tmp_path / "folder" / "deeper"
    nested.mkdir(parents=True)
    (nested / "file.csv").write_text("c")

    result = clean_extraction_dir(tmp_path, keep_extensions=["zip", "tar.gz"])

    assert sorted(p.name for p in tmp_path.iterdir()) == ["keep.tar.gz", "keep.zip"]
    assert sorted(p.name for p in result.removed) == ["folder", "junk.txt"]
    assert len(result.kept) == 2


def test_keep_patterns_protect_entries(tmp_path):
    (tmp_path / "README.keep").write_text("r")
    (tmp_path / "notes").mkdir()
    (tmp_path / "junk.txt").write_text("j")

    clean_extraction_dir(tmp_path, keep_extensions=["zip"], keep_patterns=["*.keep", "notes"])

    assert sorted(p.name for p in tmp_path.iterdir()) == ["README.keep", "notes"]


def test_directory_named_like_archive_is_removed(tmp_path):
    (tmp_path / "weird.zip").mkdir()

    result = clean_extraction_dir(tmp_path, keep_extensions=["zip"])

    assert result.removed == [tmp_path / "weird.zip"]


def test_missing_folder_raises(tmp_path):
    with pytest.raises(CleanupError):
        clean_extraction_dir(tmp_path / "missing")


def test_remove_file(tmp_path):
    target = tmp_path / "a.zip"
    target.write_bytes(b"z")

    assert remove_file(target) is True
    assert not target.exists()
    assert remove_file(target) is False


def test_extracted_archives_are_not_kept(tmp_path):
    (tmp_path / "export.zip").write_bytes(b"moved archive")
    (tmp_path / "attachments.zip").write_bytes(b"nested archive")
    (tmp_path / "data.csv").write_text("d")

    result = clean_extraction_dir(
        tmp_path,
        keep_extensions=["zip"],
        extracted=[tmp_path / "attachments.zip", tmp_path / "data.csv"],
    )

    assert sorted(p.name for p in tmp_path.iterdir()) == ["export.zip"]
    assert [p.name for p in result.kept] == ["export.zip"]
