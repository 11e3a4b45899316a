# tests/core/test_config_management.py
import json

import pytest

from structaudit.managers.config_manager import ConfigManager
from structaudit.utils.path_utils import PathUtils

# A small, predictable configuration for these tests
MOCK_SETTINGS_CONTENT = {
    "debug": {
        "level": "WARNING"
    },
    "fetch": {
        "timeout": 30,
        "headers": {"X-Structure-Analysis": "1"}
    },
    "analysis": {
        "enabled": ["headings", "landmarks"]
    }
}


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """
    Points the ConfigManager singleton at a temporary settings.json and a
    (not yet existing) user override file. The previous configuration is
    put back afterwards so other tests see the packaged settings.
    """
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps(MOCK_SETTINGS_CONTENT))
    user_file = tmp_path / "user" / "settings.json"

    monkeypatch.setattr(PathUtils, 'get_settings_file', lambda: settings_file)
    monkeypatch.setattr(PathUtils, 'get_user_settings_file', lambda: user_file)

    manager = ConfigManager()
    original = manager._config
    manager.reset()

    yield manager, user_file

    manager._config = original


def test_config_manager_is_a_singleton():
    assert ConfigManager() is ConfigManager()


def test_config_manager_load(config_env):
    manager, _ = config_env
    config = manager.get_all()
    assert config["debug"]["level"] == "WARNING"
    assert config["fetch"]["timeout"] == 30


def test_config_manager_get_nested(config_env):
    manager, _ = config_env
    assert manager.get_nested("fetch.headers.X-Structure-Analysis") == "1"
    assert manager.get_nested("non.existent.key", "default") == "default"
    assert manager.get_nested("debug.level.deeper", "default") == "default"


def test_config_manager_set_nested(config_env):
    manager, _ = config_env

    manager.set_nested("debug.level", "INFO")
    assert manager.get_nested("debug.level") == "INFO"

    manager.set_nested("new_feature.enabled", "True")
    assert manager.get_nested("new_feature.enabled")

    # The original value is an int, so the string is cast back to int
    manager.set_nested("fetch.timeout", "12")
    assert manager.get_nested("fetch.timeout") == 12
    assert isinstance(manager.get_nested("fetch.timeout"), int)


def test_config_manager_set_nested_keeps_lists(config_env):
    manager, _ = config_env

    manager.set_nested("analysis.enabled", ["headings"])

    assert manager.get_nested("analysis.enabled") == ["headings"]


def test_config_manager_set_nested_refuses_to_descend_into_scalar(config_env):
    manager, _ = config_env

    assert manager.set_nested("debug.level.sub", "x") is False
    assert manager.get_nested("debug.level") == "WARNING"


def test_config_manager_reset(config_env):
    manager, _ = config_env

    manager.set_nested("debug.level", "DEBUG")
    assert manager.get_nested("debug.level") == "DEBUG"

    manager.reset()

    assert manager.get_nested("debug.level") == "WARNING"


def test_user_settings_are_merged_over_packaged_ones(config_env):
    manager, user_file = config_env
    user_file.parent.mkdir()
    user_file.write_text(json.dumps({"fetch": {"timeout": 5}, "labels": {"locale": "de"}}))

    manager.reset()

    assert manager.get_nested("fetch.timeout") == 5
    assert manager.get_nested("fetch.headers") == {"X-Structure-Analysis": "1"}
    assert manager.get_nested("labels.locale") == "de"


def test_broken_settings_file_gives_empty_config(config_env, tmp_path, monkeypatch):
    manager, _ = config_env
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    monkeypatch.setattr(PathUtils, 'get_settings_file', lambda: broken)

    manager.reset()

    assert manager.get_all() == {}
    assert manager.get_nested("debug.level", "WARNING") == "WARNING"
