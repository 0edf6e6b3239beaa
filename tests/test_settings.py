"""Tests for settings persistence and overrides."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from worxspace.services.settings import Settings, SettingsStore


def test_defaults_match_editor_timings() -> None:
    settings = Settings()

    assert settings.selection_debounce_ms == 150
    assert settings.autosave_delay_ms == 500
    assert settings.save_status_reset_ms == 2000
    assert settings.default_zoom == 100
    assert settings.autosave_enabled is True
    assert settings.store_path.endswith("documents.json")


def test_roundtrip(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    settings = Settings(autosave_delay_ms=750, last_project_id="proj", recent_documents=["a", "b"])

    path = store.save(settings)
    payload = json.loads(path.read_text(encoding="utf-8"))
    loaded = store.load()

    assert payload["version"] == 1
    assert loaded == settings


def test_missing_or_invalid_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    assert store.load() == Settings()

    path.write_text("{oops", encoding="utf-8")
    assert store.load() == Settings()

    path.write_text("[1, 2]", encoding="utf-8")
    assert store.load() == Settings()


def test_unknown_keys_are_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"version": 1, "default_zoom": 150, "theme": "dark"}), encoding="utf-8")

    with caplog.at_level("WARNING", logger="worxspace.services.settings"):
        loaded = SettingsStore(path).load()

    assert loaded.default_zoom == 150
    assert "theme" in caplog.text


def test_older_payload_is_rewritten(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_zoom": 120}), encoding="utf-8")

    loaded = SettingsStore(path).load()

    assert loaded.default_zoom == 120
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_cli_overrides_apply_before_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    monkeypatch.setenv("WORXSPACE_AUTOSAVE_DELAY_MS", "900")

    loaded = store.load(overrides={"autosave_delay_ms": 300, "default_zoom": 80, "unknown": 1})

    assert loaded.autosave_delay_ms == 900
    assert loaded.default_zoom == 80


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORXSPACE_STORE_PATH", str(tmp_path / "docs.json"))
    monkeypatch.setenv("WORXSPACE_AUTOSAVE", "off")
    monkeypatch.setenv("WORXSPACE_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("WORXSPACE_RETRY_MAX_SECONDS", "2.5")
    monkeypatch.setenv("WORXSPACE_WRITE_RETRIES", "lots")

    loaded = SettingsStore(tmp_path / "settings.json").load()

    assert loaded.store_path == str(tmp_path / "docs.json")
    assert loaded.autosave_enabled is False
    assert loaded.debug_logging is True
    assert loaded.retry_max_seconds == 2.5
    assert loaded.write_retries == 3


def test_recent_documents_are_most_recent_first() -> None:
    settings = Settings(recent_documents=["a", "b", "c"])

    updated = settings.with_recent_document("b")

    assert updated.recent_documents == ["b", "a", "c"]
    assert updated.last_document_id == "b"
    assert settings.recent_documents == ["a", "b", "c"]

    for index in range(20):
        updated = updated.with_recent_document(f"doc-{index}")
    assert len(updated.recent_documents) == 10
    assert updated.recent_documents[0] == "doc-19"
