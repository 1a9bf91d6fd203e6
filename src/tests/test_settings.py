import json

import pytest

from utils import settings


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    monkeypatch.setattr(settings, "SETTINGS_PATH", path)
    for key in settings.DEFAULT_SETTINGS:
        monkeypatch.delenv(f"SCHEMANAV_{key.upper()}", raising=False)
    return path


def test_defaults_when_missing(settings_file):
    assert settings.load_settings() == settings.DEFAULT_SETTINGS


def test_file_values_and_env_override(settings_file, monkeypatch):
    settings_file.write_text(json.dumps({"row_limit": 200, "execution_timeout": 5}), encoding="utf-8")
    monkeypatch.setenv("SCHEMANAV_EXECUTION_TIMEOUT", "12")
    monkeypatch.setenv("SCHEMANAV_LOG_LEVEL", "info")

    loaded = settings.load_settings()
    assert loaded["row_limit"] == 200
    assert loaded["execution_timeout"] == 12
    assert loaded["log_level"] == "INFO"


def test_invalid_values_fall_back(settings_file):
    settings_file.write_text(json.dumps({"row_limit": "lots", "execution_timeout": -1}), encoding="utf-8")
    loaded = settings.load_settings()
    assert loaded["row_limit"] == 1000
    assert loaded["execution_timeout"] == 30


def test_save_round_trip(settings_file):
    settings.save_settings({"row_limit": 50})
    assert settings.load_settings()["row_limit"] == 50


def test_app_state(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "APP_STATE_PATH", tmp_path / "app_state.json")
    assert settings.load_app_state() == {}
    settings.save_app_state({"last_sql": "SELECT 1"})
    assert settings.load_app_state() == {"last_sql": "SELECT 1"}
