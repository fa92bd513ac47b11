# tests/test_api.py
import logging
import threading

import pytest

from app import create_app, shutdown
from config import Config
from conftest import MOUNTAIN_VIEW, ok, rate_limited, server_error
from errors import RateLimitedError


class ApiTestConfig(Config):
    ENV = "test"
    REQUEST_TIMEOUT = 0.2
    RATE_LIMIT_RETRY_AFTER = 60
    WORKER_THREADS = 2


@pytest.fixture
def make_client(make_geo):
    apps = []

    def _make(*responses, geo_service=None, **kwargs):
        if geo_service is None:
            geo_service, _ = make_geo(*responses, **kwargs)
        app = create_app(ApiTestConfig, geo_service=geo_service)
        app.config["TESTING"] = True
        apps.append(app)
        return app.test_client(), geo_service

    yield _make

    for app in apps:
        shutdown(app)


class SlowGeoService:
    """Blocks resolve() until released"""

    def __init__(self, cache, upstream):
        self.cache = cache
        self.upstream = upstream
        self.release = threading.Event()

    def resolve(self, raw_ip):
        self.release.wait(5)
        return {}

    def stats(self):
        return self.cache.stats()

    def close(self):
        self.release.set()


class RateLimitedGeoService(SlowGeoService):
    def __init__(self, cache, upstream, retry_after):
        super().__init__(cache, upstream)
        self.retry_after = retry_after

    def resolve(self, raw_ip):
        raise RateLimitedError(retry_after=self.retry_after)


def test_timezone_success(make_client):
    client, _ = make_client(ok())

    resp = client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ip"] == "8.8.8.8"
    assert body["city"] == "Mountain View"
    assert body["cached"] is False
    assert "currentTime" in body

    again = client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"}).get_json()
    assert again["cached"] is True


def test_timezone_uses_forwarded_for(make_client):
    client, geo = make_client(ok())

    resp = client.get(
        "/api/timezone",
        headers={"X-Forwarded-For": "8.8.8.8"},
        environ_base={"REMOTE_ADDR": "10.0.0.2"}
    )

    assert resp.status_code == 200
    assert geo.upstream.session.calls[0]["url"].endswith("/8.8.8.8/json/")


def test_timezone_rate_limited_returns_503(make_client):
    client, _ = make_client(rate_limited())

    resp = client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "60"
    assert "error" in resp.get_json()


def test_timezone_rate_limited_uses_provider_retry_after(make_client, make_geo):
    base, _ = make_geo(ok())
    client, _ = make_client(
        geo_service=RateLimitedGeoService(base.cache, base.upstream, retry_after=7.2)
    )

    resp = client.get("/api/timezone")

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "8"


@pytest.mark.parametrize("header", ["inf", "nan"])
def test_timezone_non_finite_retry_after_returns_503(make_client, header):
    client, _ = make_client(rate_limited(retry_after=header))

    resp = client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "60"


@pytest.mark.parametrize("retry_after", [float("inf"), float("nan")])
def test_timezone_rate_limited_clamps_retry_after(make_client, make_geo, retry_after):
    base, _ = make_geo(ok())
    client, _ = make_client(
        geo_service=RateLimitedGeoService(base.cache, base.upstream, retry_after=retry_after)
    )

    resp = client.get("/api/timezone")

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "60"


def test_timezone_failure_returns_generic_500(make_client):
    client, _ = make_client(server_error())

    resp = client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to fetch timezone information"}


def test_timezone_failure_logs_event(make_client, caplog):
    client, _ = make_client(server_error())

    with caplog.at_level(logging.ERROR, logger="geotime.routes.api"):
        client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    events = [r.getMessage() for r in caplog.records if r.name == "geotime.routes.api"]
    assert events == ["timezone_request_failed"]


def test_timezone_development_fallback(make_client):
    client, _ = make_client(server_error(), allow_development_fallback=True)

    resp = client.get("/api/timezone", environ_base={"REMOTE_ADDR": "127.0.0.1"})

    assert resp.status_code == 200
    assert resp.get_json()["fallback"] is True


def test_timezone_deadline_returns_503(make_client, make_geo):
    base, _ = make_geo(ok())
    slow = SlowGeoService(base.cache, base.upstream)
    client, _ = make_client(geo_service=slow)

    try:
        resp = client.get("/api/timezone")
    finally:
        slow.release.set()

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "60"


def test_create_app_config(make_client):
    client, _ = make_client(ok())
    config = client.application.config

    assert config["DEBUG"] is ApiTestConfig.DEBUG
    assert "ENV_NAME" not in config


def test_health(make_client):
    client, _ = make_client(ok())
    body = client.get("/health").get_json()
    assert body["status"] == "ok"
    assert "timestamp" in body
    assert body["uptime"] >= 0


def test_ready_healthy(make_client):
    client, _ = make_client(ok())
    resp = client.get("/health/ready")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "healthy"


def test_ready_degraded(make_client):
    client, _ = make_client(server_error())
    resp = client.get("/health/ready")
    assert resp.status_code == 503
    assert resp.get_json()["status"] == "degraded"


def test_cache_stats(make_client):
    client, _ = make_client(ok())
    client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})
    client.get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    stats = client.get("/api/cache/stats").get_json()

    assert stats == {"keyCount": 1, "hits": 1, "misses": 1, "hitRatePercent": 50.0}


def test_shutdown_flushes_cache(make_geo):
    geo, _ = make_geo(ok())
    app = create_app(ApiTestConfig, geo_service=geo)
    app.test_client().get("/api/timezone", environ_base={"REMOTE_ADDR": "8.8.8.8"})

    shutdown(app)
    shutdown(app)

    assert geo.stats()["keyCount"] == 0
