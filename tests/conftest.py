# tests/conftest.py
import os
import sys

import pytest

# Make the project root importable as top-level
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from services.cache import CacheService
from services.geo import GeoService
from services.upstream import UpstreamClient


MOUNTAIN_VIEW = {
    "ip": "8.8.8.8",
    "city": "Mountain View",
    "region": "California",
    "country_name": "United States",
    "country_code": "US",
    "latitude": 37.4056,
    "longitude": -122.0775,
    "timezone": "America/Los_Angeles",
    "utc_offset": "-0800",
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; replays scripted responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def ok(payload=None):
    return FakeResponse(200, payload if payload is not None else dict(MOUNTAIN_VIEW))


def rate_limited(retry_after=None):
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else {}
    return FakeResponse(429, {"error": True, "reason": "RateLimited"}, headers)


def server_error():
    return FakeResponse(500, {"error": True, "reason": "Server error"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_upstream(sleeps):
    def _make(*responses, **kwargs):
        session = FakeSession(*responses)
        kwargs.setdefault("base_url", "https://ipapi.test")
        kwargs.setdefault("api_key", "")
        client = UpstreamClient(session=session, sleep=sleeps.append, **kwargs)
        return client, session
    return _make


@pytest.fixture
def make_geo(make_upstream, clock):
    def _make(*responses, allow_development_fallback=False, **cache_kwargs):
        upstream, session = make_upstream(*responses)
        cache = CacheService(timer=clock, **cache_kwargs)
        service = GeoService(
            cache=cache,
            upstream=upstream,
            allow_development_fallback=allow_development_fallback
        )
        return service, session
    return _make
