"""Tests for the command-line entry point helpers."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from worxspace import app


@pytest.fixture(autouse=True)
def _quiet_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(sys, "argv", ["worxspace"])


def test_dump_settings_reports_effective_values(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    settings_path = tmp_path / "settings.json"
    monkeypatch.setenv("WORXSPACE_DEFAULT_ZOOM", "120")

    app.main(
        [
            "--dump-settings",
            "--settings-path",
            str(settings_path),
            "--set",
            "autosave_delay_ms=250",
        ]
    )

    output = json.loads(capsys.readouterr().out)
    assert output["settings"]["autosave_delay_ms"] == 250
    assert output["settings"]["default_zoom"] == 120
    assert output["meta"]["path"] == str(settings_path)
    assert output["meta"]["cli_overrides"] == ["autosave_delay_ms"]
    assert "WORXSPACE_DEFAULT_ZOOM" in output["meta"]["environment_variables"]


def test_layout_command_prints_page_geometry(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    app.main(["--layout", "2000", "--settings-path", str(tmp_path / "settings.json")])

    payload = json.loads(capsys.readouterr().out)
    assert payload["page_count"] == 3
    assert payload["page_breaks"] == pytest.approx([1076.0, 2172.0])
    assert payload["zoom_level"] == 100


def test_layout_command_honours_zoom(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    app.main(["--layout", "864", "--zoom", "50", "--settings-path", str(tmp_path / "settings.json")])

    payload = json.loads(capsys.readouterr().out)
    assert payload["page_count"] == 2


def test_invalid_override_exits_with_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--set", "no_such_field=1", "--settings-path", str(tmp_path / "settings.json")])

    assert excinfo.value.code == 2
    assert "Unknown setting" in capsys.readouterr().err


def test_invalid_zoom_exits_with_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--layout", "100", "--zoom", "0", "--settings-path", str(tmp_path / "settings.json")])

    assert excinfo.value.code == 2


def test_cli_overrides_are_coerced_by_field_type() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "autosave_delay_ms=250",
            "page_mode=off",
            "retry_max_seconds=2.5",
            "last_project_id=proj-1",
            'recent_documents=["a", "b"]',
        ]
    )

    assert overrides == {
        "autosave_delay_ms": 250,
        "page_mode": False,
        "retry_max_seconds": 2.5,
        "last_project_id": "proj-1",
        "recent_documents": ["a", "b"],
    }


@pytest.mark.parametrize("entry", ["missing-equals", "=1", "page_mode=maybe", "autosave_delay_ms=soon"])
def test_bad_cli_overrides_raise(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_load_settings_falls_back_on_errors(tmp_path: Path) -> None:
    class _BrokenStore:
        path = tmp_path / "settings.json"

        def load(self, *, overrides=None):
            raise OSError("permission denied")

    settings = app.load_settings(store=_BrokenStore())  # type: ignore[arg-type]

    assert settings == app.Settings()
