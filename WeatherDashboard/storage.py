"""Durable key-value persistence for history, favorites and preferences."""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

HISTORY_KEY = "searchHistory"
FAVORITES_KEY = "favorites"
THEME_KEY = "theme"
UNIT_KEY = "unit"


class KeyValueStore(ABC):
    """Minimal synchronous key-value store holding JSON-compatible values."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Process-local store, used in tests and when persistence is disabled."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})
        self.writes = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.writes += 1


class JsonFileStore(KeyValueStore):
    """
    Store backed by one JSON object on disk.

    The file is read once on construction; every ``set`` rewrites it
    through a temporary file so a crash never leaves it half written.
    """

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            logging.info("No storage file at %s, starting empty", self.path)
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logging.warning("Could not read storage file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logging.warning("Ignoring storage file %s: not a JSON object", self.path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".weather-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logging.debug("Persisted '%s' to %s", key, self.path)
