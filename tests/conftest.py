"""Shared fixtures: a mocked requests session, a controllable clock and a wired client."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from optohub_client.auth import TokenStore
from optohub_client.cache import ResponseCache
from optohub_client.config import ClientSettings
from optohub_client.http import HttpClient
from optohub_client.monitor import ConnectionMonitor

BASE_URL = "http://backend.test/api"


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_response(status_code: int, payload=None, text: str | None = None) -> requests.Response:
    """Build a real Response so .ok/.text/.json() behave like the library."""
    response = requests.Response()
    response.status_code = status_code
    body = json.dumps(payload) if payload is not None else (text or "")
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    return response


def _mock_session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(base_url=BASE_URL)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session() -> MagicMock:
    """Session used by the request layer."""
    return _mock_session()


@pytest.fixture
def health_session() -> MagicMock:
    """Separate session used by the health monitor."""
    return _mock_session()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def token_store() -> TokenStore:
    return TokenStore()


@pytest.fixture
def monitor(settings, health_session, clock) -> ConnectionMonitor:
    return ConnectionMonitor(settings, session=health_session, clock=clock)


@pytest.fixture
def http_client(settings, token_store, monitor, session, clock, sleeps) -> HttpClient:
    return HttpClient(
        settings,
        token_store=token_store,
        monitor=monitor,
        cache=ResponseCache(settings.cache_timeout_seconds, clock=clock),
        session=session,
        sleep=sleeps.append,
    )
