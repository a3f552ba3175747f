"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from twinpane.services.settings import DEFAULT_WORD_LIMIT, Settings, SettingsStore, normalize_settings


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == Settings()
    assert settings.word_limit == DEFAULT_WORD_LIMIT
    assert settings.language == "English"


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = Settings(
        language="Bangla",
        word_limit=120,
        dark_mode=True,
        can_freeze=True,
        terms_path="~/terms.yaml",
        decoration_colors={"overflow": "#ff0000"},
    )

    SettingsStore(path).save(original)

    assert SettingsStore(path).load() == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert not path.with_suffix(".tmp").exists()


def test_legacy_payload_is_migrated(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"word_limit": 50, "unknown": True}), encoding="utf-8")

    loaded = SettingsStore(path).load()

    assert loaded.word_limit == 50
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert "unknown" not in payload


@pytest.mark.parametrize("body", ["{not json", "[1, 2]"])
def test_unreadable_file_falls_back_to_defaults(tmp_path: Path, body: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(body, encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_non_mapping_colors_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"version": 1, "decoration_colors": ["red"]}), encoding="utf-8")

    assert SettingsStore(path).load().decoration_colors == {}


def test_cli_overrides_merge_colors(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(decoration_colors={"overflow": "#111111", "frozen": "#222222"}))

    loaded = SettingsStore(path).load(
        overrides={"decoration_colors": {"frozen": "#333333"}, "dark_mode": True, "word_limit": None, "bogus": 1}
    )

    assert loaded.decoration_colors == {"overflow": "#111111", "frozen": "#333333"}
    assert loaded.dark_mode is True
    assert loaded.word_limit == DEFAULT_WORD_LIMIT


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(language="English", word_limit=10))
    monkeypatch.setenv("TWINPANE_LANGUAGE", "Bangla")
    monkeypatch.setenv("TWINPANE_WORD_LIMIT", "42")
    monkeypatch.setenv("TWINPANE_CAN_FREEZE", "yes")
    monkeypatch.setenv("TWINPANE_DARK_MODE", "off")

    overridden = SettingsStore(path).load(overrides={"word_limit": 7})

    assert overridden.language == "Bangla"
    assert overridden.word_limit == 42
    assert overridden.can_freeze is True
    assert overridden.dark_mode is False


def test_invalid_int_env_override_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TWINPANE_WORD_LIMIT", "lots")

    loaded = SettingsStore(tmp_path / "settings.json").load()

    assert loaded.word_limit == DEFAULT_WORD_LIMIT


@pytest.mark.parametrize("limit", ["0", "none", "off"])
def test_env_can_disable_word_limit(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, limit: str) -> None:
    monkeypatch.setenv("TWINPANE_WORD_LIMIT", limit)

    assert SettingsStore(tmp_path / "settings.json").load().word_limit is None


def test_non_positive_word_limit_means_no_limit(tmp_path: Path) -> None:
    loaded = SettingsStore(tmp_path / "settings.json").load(overrides={"word_limit": -5})

    assert loaded.word_limit is None


def test_language_is_canonicalized(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load(overrides={"language": " bangla "}).language == "Bangla"
    assert store.load(overrides={"language": "Klingon"}).language == "English"


def test_colors_for_unknown_decorations_are_dropped() -> None:
    settings = normalize_settings(Settings(decoration_colors={"frozen": "#00ff00", "sparkle": "#ffffff"}))

    assert settings.decoration_colors == {"frozen": "#00ff00"}


def test_normalize_returns_same_instance_when_nothing_changes() -> None:
    settings = Settings(decoration_colors={"active": "#eeeeee"})

    assert normalize_settings(settings) is settings
