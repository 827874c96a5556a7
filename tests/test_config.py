"""
Tests for loading, saving and migrating the INI configuration.
"""

import configparser

import pytest

from crate_mirror.exceptions import ConfigurationError
from crate_mirror.storage.config_manager import ConfigManager

PATHS = {
    "registry_path": "/srv/mirror/registry",
    "crates_path": "/srv/mirror/crates",
    "db_path": "/srv/mirror/catalog.db",
}


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "crate-mirror" / "config.ini"


def read_ini(path):
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path)
    return parser["DEFAULT"]


class TestSaveAndLoad:
    def test_round_trip_with_defaults(self, config_file):
        ConfigManager(config_file).save_new_config(PATHS)
        config = ConfigManager(config_file).load_config()

        assert config.registry_path == PATHS["registry_path"]
        assert config.update_index is True
        assert config.workers == 0
        assert config.config_path == str(config_file.parent)

    def test_every_key_is_written(self, config_file):
        ConfigManager(config_file).save_new_config(PATHS)
        section = read_ini(config_file)
        assert section["download_yanked"] == "true"
        assert section["workers"] == "0"
        assert "config_path" not in section

    def test_invalid_settings_are_not_written(self, config_file):
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).save_new_config({**PATHS, "workers": 1000})
        assert not config_file.exists()

    def test_cli_options_override_file(self, config_file):
        ConfigManager(config_file).save_new_config(PATHS)
        config = ConfigManager(config_file).load_config(
            {"update_index": False, "workers": 7}
        )
        assert config.update_index is False
        assert config.workers == 7


class TestLoadErrors:
    def test_missing_file(self, config_file):
        with pytest.raises(ConfigurationError, match="crate-mirror init"):
            ConfigManager(config_file).load_config()

    def test_missing_required_path(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[DEFAULT]\nregistry_path = /r\ncrates_path = /c\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_unparsable_value(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text(
            "[DEFAULT]\nregistry_path = /r\ncrates_path = /c\ndb_path = /d\n"
            "workers = many\n"
        )
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_out_of_range_value(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text(
            "[DEFAULT]\nregistry_path = /r\ncrates_path = /c\ndb_path = /d\n"
            "timeout = -5\n"
        )
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_broken_ini(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("registry_path = /r\n")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()


def test_migration_adds_missing_keys(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text(
        "[DEFAULT]\nregistry_path = /r\ncrates_path = /c\ndb_path = /d\n"
        "workers = 3\n"
    )

    config = ConfigManager(config_file).load_config()

    assert config.workers == 3
    section = read_ini(config_file)
    assert section["workers"] == "3"
    assert section["enrich_license"] == "true"
    assert section["timeout"] == "60.0"
