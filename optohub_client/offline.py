from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any

from msal_extensions import FilePersistence

logger = logging.getLogger(__name__)

SNAPSHOT_SECTIONS = ("products", "appointments", "settings", "analytics")


class OfflineStore:
    """Whole admin panel state kept on disk as one JSON blob.

    Nothing reconciles this snapshot with the backend; it is only read when the
    backend cannot answer.
    """

    def __init__(self, path: str | None = None):
        self._lock = threading.Lock()
        self._memory: dict[str, Any] | None = None
        self._persistence = None
        if path:
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self._persistence = FilePersistence(path)

    def load(self) -> dict[str, Any] | None:
        with self._lock:
            return self._load_unlocked()

    def save(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._save_unlocked(data)
        logger.debug("Offline snapshot saved")

    def get_section(self, name: str, default: Any = None) -> Any:
        data = self.load()
        if not data or name not in data:
            return default
        return data[name]

    def update_section(self, name: str, value: Any) -> None:
        with self._lock:
            data = self._load_unlocked() or {}
            data[name] = value
            self._save_unlocked(data)

    def clear(self) -> None:
        with self._lock:
            self._memory = None
            if self._persistence is not None:
                self._persistence.save("")

    def _load_unlocked(self) -> dict[str, Any] | None:
        if self._persistence is None:
            return dict(self._memory) if self._memory is not None else None

        try:
            raw = self._persistence.load()
        except OSError:
            return None
        if not raw:
            return None

        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.error("Error reading offline data: %s", exc)
            return None
        return data if isinstance(data, dict) else None

    def _save_unlocked(self, data: dict[str, Any]) -> None:
        if self._persistence is None:
            self._memory = dict(data)
            return

        try:
            payload = json.dumps(data, default=str)
        except (TypeError, ValueError) as exc:
            logger.error("Error saving offline data: %s", exc)
            return
        self._persistence.save(payload)
