"""Namespaced settings storage.

The host owns a key-value settings blob; the core keeps everything it
persists under a single namespace key:

    {
      "threadshift_core": {
        "settings":      {...},   ← plugin settings (see DEFAULT_SETTINGS)
        "swap_history":  [...],   ← capped list of swap records
        "zone_mappings": {...},   ← garment type → zones overrides
        "error":         {...}    ← last initialization failure, if any
      }
    }

Two stores implement the same get / set / update surface:

    JsonSettingsStore    — one JSON file on disk (the host blob)
    MemorySettingsStore  — in-memory only; used when there is no host store
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

STORAGE_NAMESPACE = "threadshift_core"

DEFAULT_SETTINGS: dict[str, Any] = {
    "bidirectional_swaps": True,
    "auto_validation": True,
    "history_limit": 100,
    "enable_debug_logging": False,
    "zone_validation": True,
}


class SettingsStore(Protocol):
    def get(self, key: str) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def update(self, key: str, fn: Callable[[Any], Any]) -> Any: ...
    def keys(self) -> list[str]: ...


def default_namespace() -> dict[str, Any]:
    return {
        "settings": dict(DEFAULT_SETTINGS),
        "swap_history": [],
        "zone_mappings": {},
    }


def merged_settings(stored: dict[str, Any] | None) -> dict[str, Any]:
    """Defaults overlaid with stored values; unknown stored keys are dropped."""
    settings = dict(DEFAULT_SETTINGS)
    for key, value in (stored or {}).items():
        if key in settings:
            settings[key] = value
    return settings


class MemorySettingsStore:
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def update(self, key: str, fn: Callable[[Any], Any]) -> Any:
        updated = fn(self.get(key))
        self.set(key, updated)
        return updated

    def keys(self) -> list[str]:
        return list(self._data)


class JsonSettingsStore:
    """Settings stored under STORAGE_NAMESPACE in a JSON file.

    Other top-level keys in the file belong to the host and are preserved.
    """

    def __init__(self, path: Path, namespace: str = STORAGE_NAMESPACE) -> None:
        self._path = path
        self._namespace = namespace
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def _read_blob(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        return json.loads(self._path.read_text())

    def _write_blob(self, blob: dict[str, Any]) -> None:
        self._path.write_text(json.dumps(blob, indent=2))

    def _read_namespace(self) -> dict[str, Any]:
        return self._read_blob().get(self._namespace, {})

    def get(self, key: str) -> Any:
        return self._read_namespace().get(key)

    def set(self, key: str, value: Any) -> None:
        blob = self._read_blob()
        blob.setdefault(self._namespace, {})[key] = value
        self._write_blob(blob)
        logger.debug("settings saved key=%s path=%s", key, self._path)

    def update(self, key: str, fn: Callable[[Any], Any]) -> Any:
        updated = fn(self.get(key))
        self.set(key, updated)
        return updated

    def keys(self) -> list[str]:
        return list(self._read_namespace())
