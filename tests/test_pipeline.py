"""End-to-end tests for a single pipeline run."""

import time

from helpers import make_tar, make_zip, set_mtime

from archive_courier.config import COLLISION_OVERWRITE, COLLISION_SKIP
from archive_courier.errors import (
    STEP_CLEANUP,
    STEP_EXTRACT,
    STEP_FIND_ARCHIVE,
    STEP_FIND_PAYLOAD,
    STEP_MOVE_PAYLOAD,
    STEP_VALIDATE,
)
from archive_courier.pipeline import STATUS_FAILED, STATUS_SUCCESS, Pipeline


def _names(folder):
    return sorted(p.name for p in folder.iterdir())


def test_happy_path(config, folders):
    config.payload_patterns = ["*.csv"]
    make_zip(
        folders["downloads"] / "export.zip",
        {"report.csv": "a,b\n1,2\n", "notes.txt": "n", "img/logo.png": b"\x89PNG"},
    )

    rec = Pipeline(config).run()

    assert rec.status == STATUS_SUCCESS
    assert rec.exit_code == 0
    assert _names(folders["downloads"]) == []
    assert _names(folders["backup"]) == ["export.zip"]
    assert _names(folders["upload"]) == ["report.csv"]
    assert (folders["upload"] / "report.csv").read_text() == "a,b\n1,2\n"
    assert rec.extracted_count == 3
    assert rec.removed_count == 2


def test_only_newest_archive_is_processed(config, folders):
    make_zip(folders["downloads"] / "old.zip", {"old.csv": "old"}, mtime=1_000)
    make_zip(folders["downloads"] / "new.zip", {"new.csv": "new"}, mtime=2_000)

    rec = Pipeline(config).run()

    assert rec.success
    assert _names(folders["downloads"]) == ["old.zip"]
    assert _names(folders["upload"]) == ["new.csv"]


def test_newest_payload_wins(config, folders):
    config.payload_patterns = ["*.csv"]
    now = time.time()
    make_tar(
        folders["downloads"] / "batch.tar.gz",
        {"first.csv": "1", "nested/second.csv": "2", "zzz.txt": "t"},
        member_mtimes={"first.csv": now - 100, "nested/second.csv": now - 10, "zzz.txt": now},
    )

    rec = Pipeline(config).run()

    assert rec.success
    assert _names(folders["upload"]) == ["second.csv"]
    assert _names(folders["backup"]) == ["batch.tar.gz"]


def test_payload_is_renamed(config, folders):
    config.payload_name = "{archive}_{name}_upload.{ext}"
    make_zip(folders["downloads"] / "export-42.zip", {"data.csv": "x"})

    rec = Pipeline(config).run()

    assert rec.success
    assert _names(folders["upload"]) == ["export-42_data_upload.csv"]


def test_missing_folder_fails_validation(config, folders):
    folders["upload"].rmdir()

    rec = Pipeline(config).run()

    assert rec.status == STATUS_FAILED
    assert rec.failed_step == STEP_VALIDATE
    assert rec.exit_code == 1


def test_no_archive(config, folders):
    (folders["downloads"] / "readme.txt").write_text("not an archive")

    rec = Pipeline(config).run()

    assert rec.failed_step == STEP_FIND_ARCHIVE
    assert rec.exit_code == 1
    assert _names(folders["downloads"]) == ["readme.txt"]


def test_missing_payload_removes_archive_from_backup(config, folders):
    config.payload_patterns = ["*.csv"]
    make_zip(folders["downloads"] / "export.zip", {"notes.txt": "no csv here"})

    rec = Pipeline(config).run()

    assert rec.failed_step == STEP_FIND_PAYLOAD
    assert rec.archive_removed
    assert "export.zip" not in _names(folders["backup"])
    assert _names(folders["upload"]) == []


def test_corrupt_archive_fails_extraction(config, folders):
    (folders["downloads"] / "broken.zip").write_bytes(b"garbage")

    rec = Pipeline(config).run()

    assert rec.failed_step == STEP_EXTRACT
    assert _names(folders["backup"]) == ["broken.zip"]


def test_upload_collision_skip_fails(config, folders):
    config.collision_mode = COLLISION_SKIP
    (folders["upload"] / "data.csv").write_text("already here")
    make_zip(folders["downloads"] / "export.zip", {"data.csv": "new"})

    rec = Pipeline(config).run()

    assert rec.failed_step == STEP_MOVE_PAYLOAD
    assert (folders["upload"] / "data.csv").read_text() == "already here"


def test_earlier_backup_is_not_overwritten(config, folders):
    set_mtime(make_zip(folders["backup"] / "export.zip", {"data.csv": "old"}), 1_000)
    make_zip(folders["downloads"] / "export.zip", {"data.csv": "new"})

    rec = Pipeline(config).run()

    assert rec.success
    assert _names(folders["backup"]) == ["export.zip", "export_1.zip"]
    assert (folders["upload"] / "data.csv").read_text() == "new"


def test_cleanup_failure_is_reported(config, folders, monkeypatch):
    import shutil

    def _boom(path, *args, **kwargs):
        raise PermissionError("locked")

    monkeypatch.setattr(shutil, "rmtree", _boom)
    make_zip(folders["downloads"] / "export.zip", {"data.csv": "x", "extra/readme.txt": "r"})

    rec = Pipeline(config).run()

    assert rec.failed_step == STEP_CLEANUP
    assert _names(folders["upload"]) == ["data.csv"]


def test_same_named_tar_gz_downloads_keep_their_extension(config, folders):
    make_tar(folders["downloads"] / "batch.tar.gz", {"data.csv": "first"})
    assert Pipeline(config).run().success

    make_tar(folders["downloads"] / "batch.tar.gz", {"data.csv": "second"})
    rec = Pipeline(config).run()

    assert rec.success
    assert _names(folders["backup"]) == ["batch.tar.gz", "batch_1.tar.gz"]
    assert (folders["upload"] / "data.csv").read_text() == "second"


def test_retry_over_identical_leftover_finds_payload(config, folders):
    member_mtimes = {"data.csv": 1_000}
    config.collision_mode = COLLISION_SKIP
    (folders["upload"] / "data.csv").write_text("blocking")
    make_tar(folders["downloads"] / "batch.tar.gz", {"data.csv": "rows"}, member_mtimes)

    first = Pipeline(config).run()
    assert first.failed_step == STEP_MOVE_PAYLOAD
    assert _names(folders["backup"]) == ["batch.tar.gz", "data.csv"]

    config.collision_mode = COLLISION_OVERWRITE
    make_tar(folders["downloads"] / "batch-retry.tar.gz", {"data.csv": "rows"}, member_mtimes)
    rec = Pipeline(config).run()

    assert rec.success
    assert not rec.archive_removed
    assert _names(folders["backup"]) == ["batch-retry.tar.gz", "batch.tar.gz"]
    assert (folders["upload"] / "data.csv").read_text() == "rows"


def test_nested_archives_are_cleaned_up(config, folders):
    config.payload_patterns = ["*.csv"]
    (folders["backup"] / "older.zip").write_bytes(b"previous backup")
    make_zip(
        folders["downloads"] / "export.zip",
        {"data.csv": "x", "attachments.zip": b"inner archive bytes"},
    )

    rec = Pipeline(config).run()

    assert rec.success
    assert _names(folders["backup"]) == ["export.zip", "older.zip"]


def test_given_archive_skips_the_lookup(config, folders):
    chosen = make_zip(folders["downloads"] / "chosen.zip", {"chosen.csv": "c"}, mtime=1_000)
    make_zip(folders["downloads"] / "newer.zip", {"newer.csv": "n"}, mtime=2_000)

    rec = Pipeline(config).run(archive=chosen)

    assert rec.success
    assert _names(folders["downloads"]) == ["newer.zip"]
    assert _names(folders["upload"]) == ["chosen.csv"]


def test_given_archive_that_vanished(config, folders):
    rec = Pipeline(config).run(archive=folders["downloads"] / "gone.zip")

    assert rec.failed_step == STEP_FIND_ARCHIVE
