import logging
from pathlib import Path

import pytest
import yaml

from hostconf import constants
from hostconf.config import Settings, load_settings
from hostconf.exceptions import ConfigFileMissingError, ConfigParsingError, ConfigValidationError
from hostconf.utils import normalize_module_name, parse_module_levels, setup_logger


@pytest.fixture
def create_config_file(tmp_path: Path):
    """A pytest fixture to create a temporary hostconf.yml file."""
    def _create_file(config_data) -> Path:
        config_file = tmp_path / "hostconf.yml"
        with open(config_file, 'w') as f:
            yaml.dump(config_data, f)
        return config_file
    return _create_file


class TestSettingsLoading:
    """Tests for loading and validating the settings file."""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setattr(constants, "DEFAULT_CONFIG_FILE", str(tmp_path / "absent.yml"))
        settings = load_settings()
        assert settings.root == "/"
        assert settings.default_perm == 0o644
        assert settings.host_path("/etc/hosts") == "/etc/hosts"

    def test_load_valid_file(self, create_config_file):
        path = create_config_file({
            'root': '/srv/image',
            'lock_timeout': 2.5,
            'default_perm': '0640',
            'log_levels': {'cache': 'DEBUG'},
        })
        settings = load_settings(str(path))

        assert settings.lock_timeout == 2.5
        assert settings.default_perm == 0o640
        assert settings.log_levels == {'cache': 'DEBUG'}
        assert settings.host_path("/etc/hosts") == "/srv/image/etc/hosts"

    def test_overrides_win_over_file(self, create_config_file):
        path = create_config_file({'root': '/srv/image'})
        assert load_settings(str(path), root='/srv/other', task_dir=None).root == '/srv/other'

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / "hostconf.yml"
        path.write_text("")
        assert load_settings(str(path)) == Settings()

    def test_file_not_found_raises_error(self, tmp_path):
        with pytest.raises(ConfigFileMissingError):
            load_settings(str(tmp_path / "missing.yml"))

    def test_invalid_yaml_raises_error(self, tmp_path):
        path = tmp_path / "hostconf.yml"
        path.write_text("root: [unclosed\n")
        with pytest.raises(ConfigParsingError):
            load_settings(str(path))

    def test_non_mapping_raises_error(self, create_config_file):
        with pytest.raises(ConfigParsingError, match="dictionary"):
            load_settings(str(create_config_file(['root', '/'])))

    @pytest.mark.parametrize("data", [
        {'root': 'relative/path'},
        {'default_perm': '0999'},
        {'lock_timeout': 0},
        {'cachetime': 10},
    ])
    def test_invalid_values_raise_error(self, create_config_file, data):
        with pytest.raises(ConfigValidationError):
            load_settings(str(create_config_file(data)))


class TestLogging:

    @pytest.fixture(autouse=True)
    def restore_levels(self):
        names = ("hostconf.watch", "hostconf.registry", "hostconf.io.atomic")
        yield
        for name in names:
            logging.getLogger(name).setLevel(logging.NOTSET)

    @pytest.mark.parametrize("name, expected", [
        ("cc", "hostconf.cache"),
        ("net", "hostconf.codecs.network"),
        ("cache.*", "hostconf.cache"),
        ("codecs.simple", "hostconf.codecs.simple"),
        ("hostconf.watch", "hostconf.watch"),
        ("watchdog", "watchdog"),
    ])
    def test_normalize_module_name(self, name, expected):
        assert normalize_module_name(name) == expected

    def test_parse_module_levels(self):
        assert parse_module_levels("cache=debug, net=INFO,broken") == {
            "cache": "DEBUG",
            "net": "INFO",
        }

    def test_module_levels_are_applied(self):
        setup_logger(module_levels={"wt": "DEBUG", "rty": "bogus"})
        assert logging.getLogger("hostconf.watch").level == logging.DEBUG
        assert logging.getLogger("hostconf.registry").level == logging.NOTSET

    def test_env_levels(self, monkeypatch):
        monkeypatch.setenv(constants.LOG_LEVELS_ENV, "atomic=ERROR")
        setup_logger()
        assert logging.getLogger("hostconf.io.atomic").level == logging.ERROR
