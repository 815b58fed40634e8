import json

import pytest

from backend import settings


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    monkeypatch.setattr(settings, "SETTINGS_PATH", path)
    settings.reset_cache()
    yield path
    settings.reset_cache()


def test_defaults_are_written_on_first_read(settings_file):
    assert settings.get_value("rest_duration") == 90
    assert settings.get_value("input_debounce_seconds") == 1.0
    assert settings.get_value("orphan_session_age_hours") == 6
    assert settings_file.exists()


def test_missing_keys_are_added_to_old_files(settings_file):
    settings_file.write_text(json.dumps([{"key": "rest_duration", "value": 60, "type": "int"}]))
    assert settings.get_value("rest_duration") == 60
    assert settings.get_value("sound_on") is True


def test_set_value_persists(settings_file):
    settings.set_value("weight_unit", "lbs")
    settings.reset_cache()
    assert settings.get_value("weight_unit") == "lbs"


def test_unreadable_file_uses_defaults(settings_file):
    settings_file.write_text("{broken")
    assert settings.get_value("vibration_on") is True
    assert settings.get_value("nope", "fallback") == "fallback"
