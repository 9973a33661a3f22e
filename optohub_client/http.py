from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import requests

from optohub_client.auth import TokenStore
from optohub_client.cache import ResponseCache, make_cache_key
from optohub_client.config import ClientSettings
from optohub_client.errors import (
    ApiHttpError,
    AuthenticationError,
    BackendErrorCategory,
    DatabaseUnavailableError,
    RequestFailedError,
    RequestTimeoutError,
    classify_error_body,
)
from optohub_client.monitor import ConnectionMonitor

logger = logging.getLogger(__name__)

AuthRequiredListener = Callable[[int], None]

DATABASE_UNAVAILABLE_MESSAGE = "Database not available"


def database_unavailable_payload() -> dict[str, Any]:
    """Empty success handed to reads while the backend's database is down."""
    return {"success": True, "settings": {}, "message": DATABASE_UNAVAILABLE_MESSAGE}


def is_database_unavailable_payload(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    message = payload.get("message")
    return isinstance(message, str) and message.startswith(DATABASE_UNAVAILABLE_MESSAGE)


class HttpClient:
    def __init__(
        self,
        settings: ClientSettings,
        token_store: TokenStore,
        monitor: ConnectionMonitor,
        cache: ResponseCache | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings
        self._token_store = token_store
        self._monitor = monitor
        self._cache = cache or ResponseCache(settings.cache_timeout_seconds)
        self._sleep = sleep
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        self._auth_listeners: list[AuthRequiredListener] = []
        self._listeners_lock = threading.Lock()

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def monitor(self) -> ConnectionMonitor:
        return self._monitor

    @property
    def token_store(self) -> TokenStore:
        return self._token_store

    def subscribe_auth_required(self, listener: AuthRequiredListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._auth_listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._auth_listeners:
                    self._auth_listeners.remove(listener)

        return unsubscribe

    def get_from_cache(self, key: str) -> Any | None:
        return self._cache.get(key)

    def set_cache(self, key: str, value: Any) -> None:
        self._cache.set(key, value)

    def clear_cache(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._session.close()

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        json_body: Any = None,
        data: dict[str, Any] | None = None,
        files: Any = None,
        headers: dict[str, str] | None = None,
        use_cache: bool = True,
    ) -> Any:
        method_name = (method or "GET").upper()
        is_read = method_name == "GET"
        url = f"{self._settings.base_url}{endpoint}"
        request_headers = self._build_headers(json_body, headers)
        cache_key = make_cache_key(method_name, endpoint, json_body if json_body is not None else data)

        if is_read and use_cache and not self._monitor.offline_mode:
            cached = self._cache.get(cache_key, evict_expired=False)
            if cached is not None:
                return cached

        attempts = self._settings.max_retries + 1
        last_error: BaseException | None = None
        for attempt in range(attempts):
            if attempt == 0:
                logger.debug("API request %s %s", method_name, endpoint)

            try:
                response = self._session.request(
                    method_name,
                    url,
                    headers=request_headers,
                    json=json_body,
                    data=data,
                    files=files,
                    timeout=self._settings.timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
            else:
                if response.ok:
                    try:
                        payload = self._parse_json(response)
                    except ValueError as exc:
                        logger.warning("Invalid JSON in response from %s: %s", endpoint, exc)
                        last_error = exc
                    else:
                        if is_read and use_cache:
                            self._cache.set(cache_key, payload)
                        self._monitor.mark_connected()
                        return payload
                else:
                    outcome = self._check_error_response(response, endpoint, is_read)
                    if not isinstance(outcome, ApiHttpError):
                        return outcome
                    last_error = outcome

            if attempt < attempts - 1:
                delay = self._settings.retry_delay_for(attempt)
                logger.warning(
                    "API request attempt %s for %s failed: %s; retrying in %.2fs",
                    attempt + 1,
                    endpoint,
                    last_error,
                    delay,
                )
                self._sleep(delay)

        self._monitor.mark_disconnected()

        if is_read:
            stale = self._cache.get_stale(cache_key)
            if stale is not None:
                logger.info("Using cached data for %s after %s failed attempts", endpoint, attempts)
                return stale

        if isinstance(last_error, requests.Timeout):
            logger.warning("Request timeout: %s", endpoint)
            raise RequestTimeoutError(endpoint, self._settings.timeout_seconds, attempts) from last_error
        raise RequestFailedError(endpoint, attempts, last_error) from last_error

    def _build_headers(self, json_body: Any, overrides: dict[str, str] | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if json_body is not None:
            headers["Content-Type"] = "application/json"
        token = self._token_store.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if overrides:
            headers.update(overrides)
        return headers

    def _check_error_response(
        self,
        response: requests.Response,
        endpoint: str,
        is_read: bool,
    ) -> Any:
        """Raise for non-retryable responses.

        Returns the synthetic payload for reads hitting a database outage, or the
        :class:`ApiHttpError` to record when the request should be retried.
        """
        status_code = response.status_code
        body = response.text or ""
        category = classify_error_body(body)
        message = f"HTTP {status_code}: {body[:500]}"

        if status_code in (401, 403):
            logger.warning("Authentication rejected for %s (HTTP %s)", endpoint, status_code)
            self._handle_auth_failure(status_code)
            raise AuthenticationError(status_code, message, category)

        if status_code >= 500 and category == BackendErrorCategory.DATABASE_UNAVAILABLE:
            logger.info("Database not available for %s, using local data", endpoint)
            if is_read:
                return database_unavailable_payload()
            raise DatabaseUnavailableError(status_code, f"Database unavailable: {body[:500]}", category)

        if 400 <= status_code < 500:
            if status_code == 404:
                logger.debug("Resource not found (404): %s", endpoint)
            else:
                logger.warning("API request failed: %s", message)
            raise ApiHttpError(status_code, message, category)

        return ApiHttpError(status_code, message, category)

    def _handle_auth_failure(self, status_code: int) -> None:
        self._token_store.clear()
        with self._listeners_lock:
            listeners = list(self._auth_listeners)
        for listener in listeners:
            try:
                listener(status_code)
            except Exception:
                logger.exception("Auth-required listener failed")

    @staticmethod
    def _parse_json(response: requests.Response) -> Any:
        if not response.content:
            return {}
        return response.json()
