"""Durable key/value storage backed by a JSON file."""

import json
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


class LocalStorage:
    """
    String key/value store persisted to a single JSON file.

    Every write rewrites the whole file. A missing or unreadable file is
    treated as empty storage.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: expected a JSON object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self) -> None:
        with open(self.path, "w") as f:
            json.dump(self._data, f)
        os.chmod(self.path, 0o600)

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def remove_item(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()
