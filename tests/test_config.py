import configparser

import pytest

from ipa_cli.exceptions import ConfigurationError
from ipa_cli.models.config import AppConfig
from ipa_cli.models.session import DEFAULT_GUID_SEED
from ipa_cli.storage.config_manager import ConfigManager


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "ipa-cli" / "config.ini"


def test_missing_file_uses_defaults(config_file):
    config = ConfigManager(config_file).load_config()

    assert config.email == ""
    assert config.country == "US"
    assert config.allow_purchase is False
    assert config.verify_md5 is True
    assert config.guid_seed == DEFAULT_GUID_SEED
    assert not config_file.exists()


def test_saved_config_round_trips(config_file):
    manager = ConfigManager(config_file)
    manager.save_new_config(
        {"email": "user@example.com", "country": "gb", "allow_purchase": True}
    )

    config = ConfigManager(config_file).load_config()

    assert config.email == "user@example.com"
    assert config.country == "GB"
    assert config.allow_purchase is True
    assert config.output_dir == "."


def test_saved_file_holds_every_key(config_file):
    ConfigManager(config_file).save_new_config({"email": "user@example.com"})

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file, encoding="utf-8")

    assert set(parser["DEFAULT"]) == AppConfig.get_ini_keys()
    assert parser["DEFAULT"]["allow_purchase"] == "false"


def test_cli_options_override_file(config_file):
    ConfigManager(config_file).save_new_config({"country": "GB"})

    config = ConfigManager(config_file).load_config(
        {"country": "jp", "verify_md5": False}
    )

    assert config.country == "JP"
    assert config.verify_md5 is False


def test_missing_keys_are_migrated(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nemail = user@example.com\n", encoding="utf-8")

    config = ConfigManager(config_file).load_config()

    assert config.email == "user@example.com"
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file, encoding="utf-8")
    assert set(parser["DEFAULT"]) == AppConfig.get_ini_keys()


@pytest.mark.parametrize(
    "contents",
    [
        "[DEFAULT]\ncountry = XX\n",
        "[DEFAULT]\nguid_seed = 0\n",
        "[DEFAULT]\nguid_seed = lots\n",
        "[DEFAULT]\nallow_purchase = maybe\n",
        "not an ini file",
    ],
)
def test_invalid_file_raises_configuration_error(config_file, contents):
    config_file.parent.mkdir(parents=True)
    config_file.write_text(contents, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_invalid_cli_option(config_file):
    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config({"country": "Narnia"})


def test_save_overwrites_corrupt_file_without_reading_it(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("not an ini file", encoding="utf-8")

    saved = ConfigManager(config_file).save_new_config(
        {"email": "user@example.com", "country": "de"}
    )

    assert saved.country == "DE"
    config = ConfigManager(config_file).load_config()
    assert config.email == "user@example.com"
    assert config.country == "DE"


def test_invalid_settings_are_not_written(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\ncountry = GB\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).save_new_config({"country": "Narnia"})

    assert config_file.read_text(encoding="utf-8") == "[DEFAULT]\ncountry = GB\n"
