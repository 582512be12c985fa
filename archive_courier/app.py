"""
Main application controller for Archive Courier.

Ties together configuration, logging, the optional downloads watcher
and the pipeline, and turns the outcome of a single run into a process
exit code.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from archive_courier import __app_name__, __version__
from archive_courier.config import Config
from archive_courier.pipeline import STATUS_FAILED, Pipeline, RunRecord
from archive_courier.platform_utils import play_error_sound
from archive_courier.watcher import ArchiveWaiter

logger = logging.getLogger(__name__)

INFO_LOG_NAME = "archive_courier.log"
ERROR_LOG_NAME = "archive_courier_error.log"

EXIT_OK = 0
EXIT_FAILURE = 1

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class App:
    """
    Central orchestrator for one invocation.

    Parameters
    ----------
    config_path : str, optional
        Alternative JSON config file; defaults to the platform location.
    verbose : bool
        Log at DEBUG level regardless of the configured level.
    wait : bool
        Block until an archive is present before running the pipeline.
    wait_timeout : int, optional
        Seconds to wait; overrides ``wait_timeout_seconds`` from config.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        verbose: bool = False,
        wait: bool = False,
        wait_timeout: int | None = None,
        config: Config | None = None,
    ) -> None:
        self.config = config or Config(config_path)
        self.verbose = verbose
        self.wait = wait
        self.wait_timeout = wait_timeout
        self.last_run: RunRecord | None = None
        self._handlers: list[logging.Handler] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Run the pipeline once and return the process exit code."""
        self._setup_logging()
        try:
            logger.info("%s %s starting.", __app_name__, __version__)
            if self.config.load_error:
                # Config is read before the handlers exist; repeat it here
                logger.warning(
                    "Could not read config %s (%s); using defaults.",
                    self.config.path,
                    self.config.load_error,
                )
            code = self._run_once()
            if code != EXIT_OK and self.config.play_sound_on_error:
                play_error_sound()
            logger.info("%s finished with exit code %d.", __app_name__, code)
            return code
        finally:
            self._teardown_logging()

    def _run_once(self) -> int:
        cfg = self.config
        if not cfg.is_configured():
            logger.error(
                "Not configured: set downloads_folder, backup_folder and "
                "upload_folder in %s",
                cfg.path,
            )
            return EXIT_FAILURE

        try:
            archive = None
            if self.wait:
                archive = self._wait_for_archive()
                if archive is None:
                    return EXIT_FAILURE
            self.last_run = Pipeline(cfg).run(archive=archive)
        except Exception:
            logger.exception("Unexpected error during run.")
            self.last_run = RunRecord(status=STATUS_FAILED, error="unexpected error")
            return EXIT_FAILURE
        return self.last_run.exit_code

    def _wait_for_archive(self) -> Path | None:
        """Return the settled archive; None on timeout or missing folder."""
        cfg = self.config
        timeout = self.wait_timeout if self.wait_timeout is not None else cfg.wait_timeout
        waiter = ArchiveWaiter(
            cfg.downloads_folder,
            cfg.archive_extensions,
            stable_seconds=cfg.stable_time,
        )
        try:
            archive = waiter.wait(timeout=timeout or None)
        except FileNotFoundError as exc:
            logger.error("Cannot wait for archives: %s", exc)
            return None
        if archive is None:
            logger.error("Gave up waiting for an archive after %ss.", timeout)
        return archive

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def _setup_logging(self) -> None:
        """Configure rotating info + error logs and a stderr handler."""
        cfg = self.config
        if self.verbose:
            level = logging.DEBUG
        else:
            level = getattr(logging, cfg.log_level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        fmt = logging.Formatter(_LOG_FORMAT)
        max_bytes = cfg.max_log_size_mb * 1024 * 1024

        log_dir = cfg.log_folder
        log_dir.mkdir(parents=True, exist_ok=True)

        # Informational log: everything at the configured level
        info_fh = logging.handlers.RotatingFileHandler(
            str(log_dir / INFO_LOG_NAME),
            maxBytes=max_bytes,
            backupCount=cfg.log_backup_count,
            encoding="utf-8",
        )
        info_fh.setLevel(level)
        info_fh.setFormatter(fmt)

        # Error log: failures only
        error_fh = logging.handlers.RotatingFileHandler(
            str(log_dir / ERROR_LOG_NAME),
            maxBytes=max_bytes,
            backupCount=cfg.log_backup_count,
            encoding="utf-8",
        )
        error_fh.setLevel(logging.ERROR)
        error_fh.setFormatter(fmt)

        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(fmt)

        for handler in (info_fh, error_fh, sh):
            root_logger.addHandler(handler)
            self._handlers.append(handler)

    def _teardown_logging(self) -> None:
        root_logger = logging.getLogger()
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
