import configparser

import pytest

from amiibo_cli.exceptions import ConfigurationError
from amiibo_cli.models.config import DEFAULT_API_BASE_URL, AppConfig
from amiibo_cli.storage.config_manager import ConfigManager


def test_missing_file_uses_defaults(tmp_path):
    config = ConfigManager(tmp_path / "config.ini").load_config()

    assert config.api_base_url == DEFAULT_API_BASE_URL
    assert config.share_base_url == ""
    assert config.data_dir == str(tmp_path)
    assert not (tmp_path / "config.ini").exists()


def test_saved_config_is_loaded(tmp_path):
    manager = ConfigManager(tmp_path / "config.ini")
    manager.save_new_config(
        {"api_base_url": "http://localhost:8000/api", "share_base_url": "https://me.test/"}
    )

    config = ConfigManager(tmp_path / "config.ini").load_config()

    assert config.api_base_url == "http://localhost:8000/api/"
    assert config.share_base_url == "https://me.test/"
    assert config.quota_kb == 5120


def test_cli_options_override_file(tmp_path):
    manager = ConfigManager(tmp_path / "config.ini")
    manager.save_new_config({})

    config = manager.load_config({"share_base_url": "https://other.test/"})

    assert config.share_base_url == "https://other.test/"


@pytest.mark.parametrize(
    "settings",
    [
        {"api_base_url": "ftp://example.com"},
        {"share_base_url": "https://me.test/?collection=x"},
        {"max_value_kb": 9000, "quota_kb": 10},
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path, settings):
    manager = ConfigManager(tmp_path / "config.ini")
    manager.save_new_config(settings)

    with pytest.raises(ConfigurationError):
        ConfigManager(tmp_path / "config.ini").load_config()


def test_non_integer_limit_is_configuration_error(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\nquota_kb = lots\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(path).load_config()


def test_missing_keys_are_migrated(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("[DEFAULT]\napi_base_url = https://api.test/api/\n", encoding="utf-8")

    ConfigManager(path).load_config()

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    assert set(parser["DEFAULT"]) == AppConfig.get_ini_keys()
    assert parser["DEFAULT"]["api_base_url"] == "https://api.test/api/"
