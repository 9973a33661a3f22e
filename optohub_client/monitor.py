from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import requests

from optohub_client.config import ClientSettings
from optohub_client.models import ConnectionEvent, ConnectionState, ConnectionStatus

logger = logging.getLogger(__name__)

ConnectionListener = Callable[[ConnectionEvent], None]


class ConnectionMonitor:
    """Last known reachability of the backend.

    Request outcomes and the periodic health check both write here; UI code
    reads it and subscribes for change notifications.
    """

    def __init__(
        self,
        settings: ClientSettings,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._session = session or requests.Session()
        self._clock = clock
        self._lock = threading.Lock()
        self._status = ConnectionStatus.UNKNOWN
        self._offline_mode = False
        self._last_health_check = 0.0
        self._listeners: list[ConnectionListener] = []
        self._monitor_thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def offline_mode(self) -> bool:
        return self._offline_mode

    @property
    def last_health_check(self) -> float:
        return self._last_health_check

    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED and not self._offline_mode

    def snapshot(self, cache_size: int = 0) -> ConnectionState:
        with self._lock:
            return ConnectionState(
                status=self._status,
                offline_mode=self._offline_mode,
                last_health_check=self._last_health_check,
                cache_size=cache_size,
            )

    def subscribe(self, listener: ConnectionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def mark_connected(self) -> None:
        self._transition(ConnectionStatus.CONNECTED, offline_mode=False, always_notify=False)

    def mark_disconnected(self) -> None:
        self._transition(ConnectionStatus.DISCONNECTED, offline_mode=True, always_notify=True)

    def check_health(self) -> ConnectionStatus:
        url = f"{self._settings.base_url}/health"
        try:
            response = self._session.get(
                url,
                timeout=self._settings.health_check_timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.warning("Backend connection lost: %s", exc)
            self.mark_disconnected()
            return self._status

        if response.ok:
            with self._lock:
                self._last_health_check = self._clock()
            self.mark_connected()
        else:
            logger.warning("Backend health check failed: HTTP %s", response.status_code)
            self._transition(ConnectionStatus.ERROR, offline_mode=None, always_notify=False)
        return self._status

    def reconnect(self) -> bool:
        logger.info("Attempting to reconnect to %s", self._settings.base_url)
        with self._lock:
            self._offline_mode = False
            self._status = ConnectionStatus.UNKNOWN
        self.check_health()
        return self.is_connected()

    def start(self) -> None:
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self.check_health()
        self._stop_event.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitor_loop,
            name="optohub-health-monitor",
            daemon=True,
        )
        self._monitor_thread.start()
        logger.info(
            "Health monitoring started (every %ss)",
            self._settings.health_check_interval_seconds,
        )

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._monitor_thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self._settings.health_check_timeout_seconds + 1)
        self._monitor_thread = None

    def close(self) -> None:
        self.stop()
        self._session.close()

    def _monitor_loop(self) -> None:
        while not self._stop_event.wait(self._settings.health_check_interval_seconds):
            try:
                self.check_health()
            except Exception:
                logger.exception("Health check crashed")

    def _transition(
        self,
        status: ConnectionStatus,
        offline_mode: bool | None,
        always_notify: bool,
    ) -> None:
        with self._lock:
            previous = self._status
            self._status = status
            if offline_mode is not None:
                self._offline_mode = offline_mode
            listeners = list(self._listeners)

        if previous != status:
            logger.info("Connection status changed: %s -> %s", previous.value, status.value)
        if previous == status and not always_notify:
            return

        event = ConnectionEvent(status=status, timestamp=self._clock())
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Connection listener failed")
