import json

import pytest

from image_crop_tool import settings
from image_crop_tool.config import DEFAULT_SETTINGS
from image_crop_tool.errors import SettingsError


@pytest.fixture(autouse=True)
def config_home(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "config_dir", lambda: tmp_path)
    return tmp_path


def _envelope(path):
    return json.loads((path / "settings.json").read_text(encoding="utf-8"))


def test_first_load_writes_defaults(config_home):
    loaded = settings.load_settings()

    assert loaded == DEFAULT_SETTINGS
    assert _envelope(config_home) == {"version": 1, "settings": DEFAULT_SETTINGS}


def test_save_then_load(config_home):
    custom = dict(DEFAULT_SETTINGS, quality=80, aspect_ratio=None, show_grid=True)

    settings.save_settings(custom)

    assert settings.load_settings() == custom


def test_corrupt_file_restores_defaults(config_home):
    (config_home / "settings.json").write_text("{not json", encoding="utf-8")

    assert settings.load_settings() == DEFAULT_SETTINGS
    assert _envelope(config_home)["version"] == 1


def test_missing_envelope_restores_defaults(config_home):
    (config_home / "settings.json").write_text(json.dumps(DEFAULT_SETTINGS), encoding="utf-8")

    assert settings.load_settings() == DEFAULT_SETTINGS


def test_invalid_values_restore_defaults(config_home):
    bad = {"version": 1, "settings": dict(DEFAULT_SETTINGS, quality=500)}
    (config_home / "settings.json").write_text(json.dumps(bad), encoding="utf-8")

    assert settings.load_settings() == DEFAULT_SETTINGS


def test_save_rejects_invalid_settings():
    with pytest.raises(SettingsError):
        settings.save_settings(dict(DEFAULT_SETTINGS, output_long_side=0))


@pytest.mark.parametrize(
    "data, fragment",
    [
        ("nope", "must be a dict"),
        (dict(DEFAULT_SETTINGS, show_grid="yes"), "show_grid"),
        (dict(DEFAULT_SETTINGS, aspect_ratio=-1), "aspect_ratio"),
        (dict(DEFAULT_SETTINGS, quality=True), "quality"),
        (dict(DEFAULT_SETTINGS, extra=1), "unknown keys"),
        ({"quality": 90}, "missing keys"),
    ],
)
def test_validate_settings_reports_problems(data, fragment):
    errors = settings.validate_settings(data)

    assert any(fragment in e for e in errors)


def test_validate_accepts_defaults():
    assert settings.validate_settings(DEFAULT_SETTINGS) == []


@pytest.mark.parametrize(
    "text, expected",
    [
        ("16:9", 16 / 9),
        ("4/3", 4 / 3),
        ("2x1", 2.0),
        ("1.5", 1.5),
        (" 1:1 ", 1.0),
    ],
)
def test_parse_aspect_ratio(text, expected):
    assert settings.parse_aspect_ratio(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["free", "None", "", "ANY"])
def test_parse_free_aspect(text):
    assert settings.parse_aspect_ratio(text) is None


@pytest.mark.parametrize("text", ["0:1", "-2", "wide", "16:"])
def test_parse_aspect_ratio_rejects_bad_input(text):
    with pytest.raises(ValueError):
        settings.parse_aspect_ratio(text)


def test_aspect_label():
    assert settings.aspect_label(None) == "Free"
    assert settings.aspect_label(16 / 9) == "16:9"
    assert settings.aspect_label(1.0) == "1:1"
