"""Tests for configuration loading."""
from pathlib import Path

import pytest

from snapshot_restore.core.config import (
    DEFAULT_ARCHIVE_PATTERNS,
    Config,
    config_from_dict,
    get_default_config_path,
    load_config,
    save_config,
)
from snapshot_restore.core.exceptions import ConfigError


def test_defaults():
    config = config_from_dict({})
    assert config.installer.files_chunk_size == 250
    assert config.installer.tables_chunk_size == 1
    assert config.installer.archive_patterns == DEFAULT_ARCHIVE_PATTERNS
    assert config.session.backend == "file"
    assert config.logging.error_log == "si-error.log"
    assert config.ui.interface == "rich"


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "installer:\n"
        "  target_dir: /srv/site\n"
        "  files_chunk_size: 100\n"
        "session:\n"
        "  backend: Memory\n"
        "logging:\n"
        "  level: debug\n"
        "  error_log: ''\n"
    )
    config = load_config(path)
    assert config.installer.target_dir == "/srv/site"
    assert config.installer.files_chunk_size == 100
    assert config.session.backend == "memory"
    assert config.logging.level == "DEBUG"
    assert config.logging.error_log == ""


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml")


def test_invalid_yaml_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("installer: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize("value", [0, -1, "many"])
def test_chunk_size_must_be_positive(value):
    with pytest.raises(ConfigError):
        config_from_dict({"installer": {"files_chunk_size": value}})


def test_unknown_session_backend():
    with pytest.raises(ConfigError):
        config_from_dict({"session": {"backend": "redis"}})


def test_save_and_reload(tmp_path):
    config = Config()
    config.installer.target_url = "https://example.org/"
    config.installer.tables_chunk_size = 3
    path = tmp_path / "out" / "config.yaml"

    save_config(config, path)
    reloaded = load_config(path)

    assert reloaded.installer.target_url == "https://example.org/"
    assert reloaded.installer.tables_chunk_size == 3
    assert reloaded.database.ssl_ca is None


def test_shipped_config_loads():
    config = load_config(Path(__file__).parent.parent / "config" / "config.yaml")
    assert config.installer.files_chunk_size > 0


def test_lookup_falls_back_to_shipped_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert get_default_config_path().exists()
    config = load_config()
    assert config.installer.files_chunk_size > 0
