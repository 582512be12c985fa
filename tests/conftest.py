"""Shared fixtures for the Archive Courier tests."""

import pytest

from archive_courier.config import Config


@pytest.fixture
def folders(tmp_path):
    """Create the downloads / backup / upload / logs folders."""
    paths = {}
    for name in ("downloads", "backup", "upload", "logs"):
        paths[name] = tmp_path / name
        paths[name].mkdir()
    return paths


@pytest.fixture
def config(tmp_path, folders):
    """A Config pointing at the test folders."""
    cfg = Config(tmp_path / "config.json")
    cfg.downloads_folder = str(folders["downloads"])
    cfg.backup_folder = str(folders["backup"])
    cfg.upload_folder = str(folders["upload"])
    cfg.log_folder = str(folders["logs"])
    cfg.save()
    return cfg
