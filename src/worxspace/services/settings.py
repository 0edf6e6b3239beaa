"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = ["Settings", "SettingsStore", "DEFAULT_SETTINGS_PATH", "DEFAULT_STORE_PATH"]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".worxspace"
DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
DEFAULT_STORE_PATH = _SETTINGS_DIR / "documents.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "WORXSPACE_STORE_PATH": "store_path",
    "WORXSPACE_LAST_PROJECT": "last_project_id",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "WORXSPACE_DEBUG_LOGGING": "debug_logging",
    "WORXSPACE_AUTOSAVE": "autosave_enabled",
    "WORXSPACE_PAGE_MODE": "page_mode",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "WORXSPACE_SELECTION_DEBOUNCE_MS": "selection_debounce_ms",
    "WORXSPACE_AUTOSAVE_DELAY_MS": "autosave_delay_ms",
    "WORXSPACE_DEFAULT_ZOOM": "default_zoom",
    "WORXSPACE_WRITE_RETRIES": "write_retries",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "WORXSPACE_RETRY_MIN_SECONDS": "retry_min_seconds",
    "WORXSPACE_RETRY_MAX_SECONDS": "retry_max_seconds",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_MAX_RECENT_DOCUMENTS = 10


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    store_path: str = str(DEFAULT_STORE_PATH)
    selection_debounce_ms: int = 150
    autosave_delay_ms: int = 500
    autosave_enabled: bool = True
    save_status_reset_ms: int = 2000
    default_zoom: int = 100
    page_mode: bool = True
    write_retries: int = 3
    retry_min_seconds: float = 0.05
    retry_max_seconds: float = 1.0
    debug_logging: bool = False
    recent_documents: list[str] = field(default_factory=list)
    last_project_id: str | None = None
    last_document_id: str | None = None
    window_geometry: str | None = None

    def with_recent_document(self, document_id: str) -> "Settings":
        """Return a copy with ``document_id`` moved to the front of the MRU list."""

        recent = [document_id] + [entry for entry in self.recent_documents if entry != document_id]
        return replace(
            self,
            recent_documents=recent[:_MAX_RECENT_DOCUMENTS],
            last_document_id=document_id,
        )


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            LOGGER.debug(
                "Settings loaded from %s: last_document_id=%s recent=%d",
                self._path,
                settings.last_document_id,
                len(settings.recent_documents),
            )

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = self._serialize(settings)
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        data["version"] = _SETTINGS_VERSION
        return data

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    result: Dict[str, Any] = {}
    for key, value in payload.items():
        if key == "version":
            continue
        if key not in allowed:
            LOGGER.warning("Ignoring unknown settings key %r", key)
            continue
        result[key] = value
    return result
