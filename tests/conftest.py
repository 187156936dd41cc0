"""Test configuration ensuring local package import when editable install not active.

If users invoke `pytest` outside the project's virtualenv, we still add the project
root to sys.path so `import incident_sync` works. Shared fakes for the HTTP session
and the sync settings live here too.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import requests  # noqa: E402

from incident_sync.core.settings import SyncSettings  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Routes GETs by endpoint suffix; each route is a list consumed in order.

    The last response of a route repeats once the list is exhausted. A route
    entry may be an exception instance, which is raised instead of returned.
    """

    def __init__(self, routes=None):
        self.routes = {k: list(v) for k, v in (routes or {}).items()}
        self.calls: list[tuple[str, dict | None]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, dict(params) if params else None))
        for suffix in sorted(self.routes, key=len, reverse=True):
            if url.endswith(suffix):
                queue = self.routes[suffix]
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, BaseException):
                    raise item
                if callable(item):
                    return item(url, params)
                return item
        raise requests.ConnectionError(f"no route for {url}")

    def calls_to(self, suffix):
        return [c for c in self.calls if c[0].endswith(suffix)]


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_api(sleeps):
    from incident_sync.core.incident_client import IncidentIOAPI

    def _make(routes=None, jitter=lambda base: int(base)):
        session = FakeSession(routes)
        api = IncidentIOAPI("test-key", session=session, sleep=sleeps.append, jitter=jitter)
        return api, session

    return _make


@pytest.fixture
def settings():
    return SyncSettings(api_key_configured=True, timezone="UTC")
