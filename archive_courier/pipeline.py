"""
The Archive Courier pipeline.

One run walks a fixed sequence of steps:

  validate folders -> newest archive -> move to backup -> extract
  -> newest payload -> rename + move to upload -> clean backup folder

Any step failure stops the run.  When the archive holds no payload the
archive itself is removed from the backup folder before the run ends.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from archive_courier.cleanup import clean_extraction_dir, remove_file
from archive_courier.config import COLLISION_RENAME, Config
from archive_courier.errors import (
    STEP_MOVE_ARCHIVE,
    STEP_MOVE_PAYLOAD,
    ArchiveNotFoundError,
    CleanupError,
    MissingDirectoryError,
    PayloadNotFoundError,
    PipelineError,
)
from archive_courier.extractor import extract_archive
from archive_courier.finder import archive_stem, expand_entries, find_newest, newest_of
from archive_courier.mover import expand_name_pattern, move_file, split_name

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass
class RunRecord:
    """Record of a single pipeline run."""
    archive: str = ""
    backup_path: str = ""
    payload: str = ""
    upload_path: str = ""
    extracted_count: int = 0
    removed_count: int = 0
    archive_removed: bool = False
    started: float = 0.0
    finished: float = 0.0
    status: str = STATUS_PENDING
    failed_step: str = ""
    error: str = ""

    @property
    def success(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0

    @property
    def timestamp_str(self) -> str:
        """Human-readable timestamp of when the run finished."""
        if self.finished:
            return datetime.fromtimestamp(self.finished).strftime("%Y-%m-%d %H:%M:%S")
        return ""


class Pipeline:
    """
    Runs the archive-to-upload sequence once.

    Parameters
    ----------
    config : Config
        Supplies the three folders, the archive / payload filters, the
        payload name pattern and the collision settings.
    """

    def __init__(self, config: Config):
        self.config = config

    # ---- steps ----

    def validate(self) -> None:
        """Raise MissingDirectoryError unless every pipeline folder exists."""
        cfg = self.config
        folders = (
            ("downloads", cfg.downloads_folder),
            ("backup", cfg.backup_folder),
            ("upload", cfg.upload_folder),
        )
        for label, folder in folders:
            if not folder:
                raise MissingDirectoryError(f"The {label} folder is not configured")
            if not Path(folder).is_dir():
                raise MissingDirectoryError(f"The {label} folder does not exist: {folder}")

    def find_archive(self) -> Path:
        archive = find_newest(
            self.config.downloads_folder,
            extensions=self.config.archive_extensions,
        )
        if archive is None:
            raise ArchiveNotFoundError(
                f"No archive found in {self.config.downloads_folder}"
            )
        logger.info("Newest archive: %s", archive)
        return archive

    def find_payload(self, extracted: list[Path]) -> Path:
        payload = newest_of(
            expand_entries(extracted),
            patterns=self.config.payload_patterns,
        )
        if payload is None:
            raise PayloadNotFoundError(
                "No file matching %s among the extracted files"
                % ", ".join(self.config.payload_patterns)
            )
        logger.info("Payload: %s", payload)
        return payload

    def payload_target_name(self, payload: Path, archive: Path) -> str:
        """Expand the configured payload name pattern for *payload*."""
        stem, ext = split_name(payload.name)
        try:
            return expand_name_pattern(
                self.config.payload_name,
                stem,
                ext,
                archive=archive_stem(archive.name, self.config.archive_extensions),
            )
        except ValueError as exc:
            raise PipelineError(str(exc), step=STEP_MOVE_PAYLOAD) from exc

    # ---- run ----

    def run(self, archive: Path | None = None) -> RunRecord:
        """Execute the pipeline once and return its record.

        *archive* skips the newest-archive lookup; it is how a file the
        downloads watcher has already seen settle is handed over.

        Expected failures are logged and reported through the record;
        they are never raised.
        """
        cfg = self.config
        rec = RunRecord(started=time.time())

        try:
            self.validate()

            if archive is None:
                archive = self.find_archive()
            elif not Path(archive).is_file():
                raise ArchiveNotFoundError(f"Archive is no longer there: {archive}")
            archive = Path(archive)
            rec.archive = str(archive)

            # Keep older backups of a same-named download
            moved = move_file(
                archive,
                cfg.backup_folder,
                collision_mode=COLLISION_RENAME,
                rename_pattern=cfg.rename_pattern,
                verify=cfg.verify_moves,
                step=STEP_MOVE_ARCHIVE,
                extensions=cfg.archive_extensions,
            )
            backup_path = Path(moved.destination)
            rec.backup_path = moved.destination

            extracted = extract_archive(backup_path, cfg.backup_folder)
            rec.extracted_count = len(extracted)

            try:
                payload = self.find_payload(extracted)
            except PayloadNotFoundError:
                try:
                    rec.archive_removed = remove_file(backup_path)
                except CleanupError as cleanup_exc:
                    logger.error("Could not remove archive from backup: %s", cleanup_exc)
                raise
            rec.payload = str(payload)

            delivered = move_file(
                payload,
                cfg.upload_folder,
                new_name=self.payload_target_name(payload, archive),
                collision_mode=cfg.collision_mode,
                rename_pattern=cfg.rename_pattern,
                verify=cfg.verify_moves,
                step=STEP_MOVE_PAYLOAD,
            )
            rec.upload_path = delivered.destination

            cleaned = clean_extraction_dir(
                cfg.backup_folder,
                keep_extensions=cfg.archive_extensions,
                keep_patterns=cfg.keep_patterns,
                extracted=extracted,
            )
            rec.removed_count = len(cleaned.removed)

        except PipelineError as exc:
            self._fail(rec, exc)
        else:
            rec.status = STATUS_SUCCESS
            rec.finished = time.time()
            logger.info(
                "Delivered %s -> %s in %.2fs (%d artifact%s removed)",
                Path(rec.archive).name,
                rec.upload_path,
                rec.duration,
                rec.removed_count,
                "" if rec.removed_count == 1 else "s",
            )
        return rec

    def _fail(self, rec: RunRecord, exc: PipelineError) -> None:
        rec.status = STATUS_FAILED
        rec.failed_step = exc.step
        rec.error = str(exc)
        rec.finished = time.time()
        logger.error("Run failed at step '%s': %s", exc.step, exc)
