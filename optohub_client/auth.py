from __future__ import annotations

import json
import logging
import os
import threading

from msal_extensions import FilePersistence, FilePersistenceWithDataProtection

from optohub_client.models import AuthState

logger = logging.getLogger(__name__)


class TokenStore:
    """Admin bearer token persisted between runs.

    With ``path=None`` the token lives in memory only.
    """

    def __init__(self, path: str | None = None):
        self._lock = threading.Lock()
        self._persistence = self._build_persistence(path) if path else None
        self._token: str | None = None
        self._username: str | None = None
        self._load()

    @staticmethod
    def _build_persistence(path: str):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            return FilePersistenceWithDataProtection(path)
        except Exception:
            return FilePersistence(path)

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def username(self) -> str | None:
        return self._username

    def set(self, token: str | None, username: str | None = None) -> None:
        if not token:
            self.clear()
            return

        with self._lock:
            self._token = token
            self._username = username
            self._save()

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._username = None
            if self._persistence is not None:
                self._persistence.save("")

    def auth_state(self) -> AuthState:
        if not self._token:
            return AuthState(is_signed_in=False)
        return AuthState(is_signed_in=True, username=self._username)

    def _load(self) -> None:
        if self._persistence is None:
            return

        try:
            raw = self._persistence.load()
        except OSError:
            return
        if not raw:
            return

        try:
            stored = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable token store at %s", self._persistence.get_location())
            return
        if not isinstance(stored, dict):
            return

        token = str(stored.get("token") or "").strip()
        if token:
            self._token = token
            self._username = stored.get("username") or None

    def _save(self) -> None:
        if self._persistence is None:
            return
        self._persistence.save(json.dumps({"token": self._token, "username": self._username}))
