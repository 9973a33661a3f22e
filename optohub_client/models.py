from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ConnectionEvent:
    status: ConnectionStatus
    timestamp: float


@dataclass(frozen=True)
class ConnectionState:
    status: ConnectionStatus
    offline_mode: bool
    last_health_check: float
    cache_size: int


@dataclass(frozen=True)
class AuthState:
    is_signed_in: bool
    username: str | None = None


@dataclass(frozen=True)
class BatchRequest:
    endpoint: str
    method: str = "GET"
    json_body: Any = None


@dataclass
class BatchResult:
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
