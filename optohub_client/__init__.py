from .config import ClientSettings, ConfigurationError, derive_base_url
from .errors import (
    ApiHttpError,
    AuthenticationError,
    BackendErrorCategory,
    DatabaseUnavailableError,
    OptoHubError,
    RequestFailedError,
    RequestTimeoutError,
)
from .models import AuthState, BatchRequest, BatchResult, ConnectionEvent, ConnectionState, ConnectionStatus
from .services import OptoHubService, build_service

__all__ = [
    "ApiHttpError",
    "AuthState",
    "AuthenticationError",
    "BackendErrorCategory",
    "BatchRequest",
    "BatchResult",
    "ClientSettings",
    "ConfigurationError",
    "ConnectionEvent",
    "ConnectionState",
    "ConnectionStatus",
    "DatabaseUnavailableError",
    "OptoHubError",
    "OptoHubService",
    "RequestFailedError",
    "RequestTimeoutError",
    "build_service",
    "derive_base_url",
]
