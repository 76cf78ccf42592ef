"""
Arena Slides Test Configuration and Fixtures

Shared fixtures for the PLM client, stores, AI layer, presentation writer
and orchestrator tests. No test touches the network: Arena traffic goes
through FakeArenaHTTP, Gemini traffic through a MagicMock session.
"""

import base64
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union
from unittest.mock import MagicMock

import pytest
import requests

from arena_slides.core.config import TestConfig
from arena_slides.core.datashapes import Session
from arena_slides.core.error_handler import ErrorHandler
from arena_slides.plm.client import ArenaClient
from arena_slides.settings.credential_store import CredentialStore
from arena_slides.settings.repository import InMemorySettingsRepository


# =============================================================================
# PYTEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "critical: must-pass behaviour of the slide pipeline")
    config.addinivalue_line("markers", "integration: exercises several components together")


# =============================================================================
# KEY CONSTANTS
# =============================================================================

BASE_URL = TestConfig.ARENA_API_BASE_URL
SESSION_TOKEN = "tok-123"
USER_EMAIL = "eng@example.com"
WORKSPACE_ID = "1001"
GEMINI_KEY = "gem-key-xyz"

# 1x1 transparent PNG
TINY_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


# =============================================================================
# HTTP FAKES
# =============================================================================

def make_response(status_code: int = 200, json_body: Any = None, content: Optional[bytes] = None) -> requests.Response:
    """Real requests.Response with a canned body."""
    response = requests.Response()
    response.status_code = status_code
    if content is not None:
        response._content = content
    elif json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
    else:
        response._content = b""
    response.encoding = "utf-8"
    return response


def gemini_response(text: str) -> requests.Response:
    return make_response(200, {"candidates": [{"content": {"parts": [{"text": text}]}}]})


@dataclass
class RecordedCall:
    method: str
    path: str
    headers: Dict[str, str]
    params: Optional[Dict[str, Any]]
    payload: Any


Handler = Union[requests.Response, Callable[[RecordedCall], requests.Response]]


class FakeArenaHTTP:
    """
    Stand-in for requests.Session routed on (METHOD, path).

    A route holds a queue of responses or callables; the last one repeats.
    Unrouted paths answer 404.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url.rstrip('/')
        self.routes: Dict[tuple, List[Handler]] = {}
        self.calls: List[RecordedCall] = []

    def add(self, method: str, path: str, *handlers: Handler) -> "FakeArenaHTTP":
        self.routes[(method.upper(), path)] = list(handlers)
        return self

    def request(self, method, url, headers=None, data=None, params=None, timeout=None):
        path = url[len(self.base_url):] if url.startswith(self.base_url) else url
        call = RecordedCall(
            method=method.upper(),
            path=path,
            headers=dict(headers or {}),
            params=dict(params) if params else None,
            payload=json.loads(data) if data else None,
        )
        self.calls.append(call)

        queue = self.routes.get((call.method, path))
        if not queue:
            return make_response(404, {"errors": [{"message": f"No route {path}"}]})
        handler = queue.pop(0) if len(queue) > 1 else queue[0]
        return handler(call) if callable(handler) else handler

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [call.path for call in self.calls if method is None or call.method == method.upper()]


def paged(records: List[Dict[str, Any]]) -> Callable[[RecordedCall], requests.Response]:
    """Handler that serves `records` honouring limit/offset."""
    def handler(call: RecordedCall) -> requests.Response:
        params = call.params or {}
        limit = int(params.get("limit", 400))
        offset = int(params.get("offset", 0))
        page = records[offset:offset + limit]
        return make_response(200, {"count": len(page), "results": page})
    return handler


def raw_item(number: str, name: str, guid: Optional[str] = None, **extra) -> Dict[str, Any]:
    data = {
        "guid": guid or f"G-{number}",
        "number": number,
        "name": name,
        "description": f"{name} description",
        "category": {"guid": "CAT1", "name": "Mechanical"},
        "lifecyclePhase": {"guid": "LC1", "name": "Production"},
    }
    data.update(extra)
    return data


class FakeClock:
    """Injectable clock for TTL and budget checks."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config():
    return TestConfig


@pytest.fixture
def repository():
    return InMemorySettingsRepository()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credentials(repository, clock):
    return CredentialStore(repository, clock=clock)


@pytest.fixture
def logged_in(credentials):
    """Credential store holding a live session."""
    credentials.save_session(Session(
        session_token=SESSION_TOKEN,
        user_email=USER_EMAIL,
        workspace_id=WORKSPACE_ID,
        created_at="2026-01-01T00:00:00+00:00",
    ))
    return credentials


@pytest.fixture
def arena_http():
    return FakeArenaHTTP()


@pytest.fixture
def client(logged_in, config, arena_http):
    return ArenaClient(logged_in, config, http_session=arena_http)


@pytest.fixture
def mock_console():
    """Mock Rich console for testing output."""
    console = MagicMock()
    console.print = MagicMock()
    return console


@pytest.fixture
def error_handler(mock_console):
    return ErrorHandler(console=mock_console, debug_mode=True)


@pytest.fixture
def gemini_http():
    """MagicMock requests.Session for the Gemini connector."""
    return MagicMock()
