"""Configuration management for Archive Courier.

Stores and retrieves the pipeline settings from a JSON config file
in the platform-appropriate application data directory.
"""

import json
import logging
from pathlib import Path
from typing import Any

from archive_courier.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from archive_courier.platform_utils import (
    get_log_dir as _platform_log_dir,
)

logger = logging.getLogger(__name__)

# Collision resolution strategies for the upload folder
COLLISION_OVERWRITE = "overwrite"
COLLISION_RENAME = "rename"
COLLISION_SKIP = "skip"
COLLISION_MODES = (COLLISION_OVERWRITE, COLLISION_RENAME, COLLISION_SKIP)

# Available tokens for the payload name pattern
# {name}     — payload filename without extension
# {ext}      — payload extension (without dot)
# {archive}  — archive filename without its archive extension
# {date}     — date stamp YYYY-MM-DD
# {time}     — time stamp HH-MM-SS
# {datetime} — combined YYYY-MM-DD_HH-MM-SS
# {ts}       — Unix timestamp (integer)
PAYLOAD_NAME_HELP = (
    "Tokens: {name} {ext} {archive} {date} {time} {datetime} {ts}\n"
    "Example: upload_{date}.{ext}  produces  upload_2024-05-01.csv"
)
DEFAULT_PAYLOAD_NAME = "{name}.{ext}"
DEFAULT_RENAME_PATTERN = "{name}_{n}.{ext}"

DEFAULT_ARCHIVE_EXTENSIONS = ["zip", "tar", "tar.gz", "tgz", "tar.bz2", "tar.xz"]

DEFAULT_CONFIG: dict[str, Any] = {
    "downloads_folder": "",
    "backup_folder": "",
    "upload_folder": "",
    "log_folder": "",  # blank = platform config dir
    "archive_extensions": list(DEFAULT_ARCHIVE_EXTENSIONS),
    "payload_patterns": ["*"],  # Glob patterns the payload must match
    "payload_name": DEFAULT_PAYLOAD_NAME,
    "keep_patterns": [],  # Extra globs cleanup leaves alone in the backup folder
    # ---- collision protection ----
    "collision_mode": COLLISION_OVERWRITE,  # overwrite | rename | skip
    "rename_pattern": DEFAULT_RENAME_PATTERN,
    # ---- verification ----
    "verify_moves": True,  # SHA-256 checksum when a move crosses devices
    # ---- --wait ----
    "stable_time_seconds": 5,
    "wait_timeout_seconds": 0,  # 0 = wait forever
    # ---- logging ----
    "log_level": "INFO",
    "max_log_size_mb": 10,
    "log_backup_count": 3,
    # ---- notifications ----
    "play_sound_on_error": False,
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def _normalise_extensions(value: list[str]) -> list[str]:
    return [ext.lower().strip().lstrip(".") for ext in value if ext.strip()]


def _normalise_patterns(value: list[str]) -> list[str]:
    return [p.strip() for p in value if p.strip()]


def _expand(path: str) -> str:
    return str(Path(path).expanduser()) if path else ""


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | str | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = Path(path) if path else get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load_error: str | None = None
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        self.load_error = None
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                if not isinstance(stored, dict):
                    raise ValueError("top-level JSON value is not an object")
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, ValueError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self.load_error = str(exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.debug("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- folders ----

    @property
    def downloads_folder(self) -> str:
        """Return the folder archives are picked up from."""
        return _expand(self._data["downloads_folder"])

    @downloads_folder.setter
    def downloads_folder(self, value: str) -> None:
        self._data["downloads_folder"] = value

    @property
    def backup_folder(self) -> str:
        """Return the folder archives are moved to and extracted in."""
        return _expand(self._data["backup_folder"])

    @backup_folder.setter
    def backup_folder(self, value: str) -> None:
        self._data["backup_folder"] = value

    @property
    def upload_folder(self) -> str:
        """Return the folder the renamed payload is delivered to."""
        return _expand(self._data["upload_folder"])

    @upload_folder.setter
    def upload_folder(self, value: str) -> None:
        self._data["upload_folder"] = value

    @property
    def log_folder(self) -> Path:
        """Return the log folder, defaulting to the platform log dir."""
        folder = self._data.get("log_folder", "")
        if folder:
            return Path(folder).expanduser()
        return _platform_log_dir()

    @log_folder.setter
    def log_folder(self, value: str) -> None:
        self._data["log_folder"] = value

    # ---- matching ----

    @property
    def archive_extensions(self) -> list[str]:
        """Return the extensions that identify an archive."""
        return self._data.get("archive_extensions", list(DEFAULT_ARCHIVE_EXTENSIONS))

    @archive_extensions.setter
    def archive_extensions(self, value: list[str]) -> None:
        """Set archive extensions, normalising to lowercase without dots."""
        self._data["archive_extensions"] = _normalise_extensions(value)

    @property
    def payload_patterns(self) -> list[str]:
        """Glob patterns an extracted file must match to be the payload."""
        return self._data.get("payload_patterns", ["*"])

    @payload_patterns.setter
    def payload_patterns(self, value: list[str]) -> None:
        self._data["payload_patterns"] = _normalise_patterns(value) or ["*"]

    @property
    def payload_name(self) -> str:
        """Return the token pattern used to rename the payload."""
        return self._data.get("payload_name", DEFAULT_PAYLOAD_NAME)

    @payload_name.setter
    def payload_name(self, value: str) -> None:
        self._data["payload_name"] = value.strip() or DEFAULT_PAYLOAD_NAME

    @property
    def keep_patterns(self) -> list[str]:
        """Extra glob patterns cleanup never deletes."""
        return self._data.get("keep_patterns", [])

    @keep_patterns.setter
    def keep_patterns(self, value: list[str]) -> None:
        self._data["keep_patterns"] = _normalise_patterns(value)

    # ---- collision protection ----

    @property
    def collision_mode(self) -> str:
        """Return the collision resolution strategy."""
        mode = self._data.get("collision_mode", COLLISION_OVERWRITE)
        return mode if mode in COLLISION_MODES else COLLISION_OVERWRITE

    @collision_mode.setter
    def collision_mode(self, value: str) -> None:
        """Set the collision resolution strategy."""
        if value not in COLLISION_MODES:
            value = COLLISION_OVERWRITE
        self._data["collision_mode"] = value

    @property
    def rename_pattern(self) -> str:
        return self._data.get("rename_pattern", DEFAULT_RENAME_PATTERN)

    @rename_pattern.setter
    def rename_pattern(self, value: str) -> None:
        self._data["rename_pattern"] = value.strip() or DEFAULT_RENAME_PATTERN

    # ---- verification ----

    @property
    def verify_moves(self) -> bool:
        """Return whether cross-device moves are SHA-256 verified."""
        return bool(self._data.get("verify_moves", True))

    @verify_moves.setter
    def verify_moves(self, value: bool) -> None:
        self._data["verify_moves"] = value

    # ---- --wait ----

    @property
    def stable_time(self) -> int:
        """Return the stability threshold in seconds."""
        return int(self._data.get("stable_time_seconds", 5))

    @stable_time.setter
    def stable_time(self, value: int) -> None:
        """Set the stability threshold (minimum 0 s)."""
        self._data["stable_time_seconds"] = max(0, int(value))

    @property
    def wait_timeout(self) -> int:
        """Return the wait timeout in seconds (0 = forever)."""
        return int(self._data.get("wait_timeout_seconds", 0))

    @wait_timeout.setter
    def wait_timeout(self, value: int) -> None:
        self._data["wait_timeout_seconds"] = max(0, int(value))

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        self._data["log_backup_count"] = max(0, int(value))

    # ---- notifications ----

    @property
    def play_sound_on_error(self) -> bool:
        """Return whether an alert sound plays on failure."""
        return bool(self._data.get("play_sound_on_error", False))

    @play_sound_on_error.setter
    def play_sound_on_error(self, value: bool) -> None:
        self._data["play_sound_on_error"] = value

    # ---- convenience ----

    def is_configured(self) -> bool:
        """Return True when downloads, backup and upload folders are all set."""
        return all((self.downloads_folder, self.backup_folder, self.upload_folder))
