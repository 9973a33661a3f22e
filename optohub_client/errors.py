from __future__ import annotations

from enum import Enum
import json
from typing import Any


class BackendErrorCategory(str, Enum):
    """Closed set of failure kinds the backend reports in an error body."""

    DATABASE_UNAVAILABLE = "database_unavailable"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


# Older backend builds only describe a storage outage in free text.
_LEGACY_DATABASE_MARKERS = (
    "MongoDB",
    "querySrv",
    "EREFUSED",
    "Database not available",
    "Database unavailable",
)


class OptoHubError(RuntimeError):
    pass


class ApiHttpError(OptoHubError):
    def __init__(
        self,
        status_code: int,
        message: str,
        category: BackendErrorCategory = BackendErrorCategory.UNKNOWN,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.category = category


class AuthenticationError(ApiHttpError):
    pass


class DatabaseUnavailableError(ApiHttpError):
    pass


class RequestTimeoutError(OptoHubError, TimeoutError):
    def __init__(self, endpoint: str, timeout_seconds: float, attempts: int):
        super().__init__(
            f"Request timeout after {timeout_seconds:g}s: {endpoint} ({attempts} attempts)"
        )
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.attempts = attempts


class RequestFailedError(OptoHubError):
    def __init__(self, endpoint: str, attempts: int, last_error: BaseException | None):
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"Request failed after {attempts} attempts: {detail}")
        self.endpoint = endpoint
        self.attempts = attempts
        self.last_error = last_error


def classify_error_body(body: str | None) -> BackendErrorCategory:
    """Map a backend error body onto :class:`BackendErrorCategory`.

    A structured ``category`` (or ``code``) field wins. Bodies without one are
    checked for the legacy storage-outage wording; anything else is UNKNOWN.
    """
    if not body:
        return BackendErrorCategory.UNKNOWN

    try:
        parsed: Any = json.loads(body)
    except ValueError:
        return BackendErrorCategory.UNKNOWN
    if not isinstance(parsed, dict):
        return BackendErrorCategory.UNKNOWN

    for field_name in ("category", "code"):
        raw = parsed.get(field_name)
        if isinstance(raw, str) and raw.strip():
            try:
                return BackendErrorCategory(raw.strip().lower())
            except ValueError:
                continue

    for field_name in ("message", "error", "details"):
        text = parsed.get(field_name)
        if isinstance(text, str) and any(marker in text for marker in _LEGACY_DATABASE_MARKERS):
            return BackendErrorCategory.DATABASE_UNAVAILABLE

    return BackendErrorCategory.UNKNOWN
