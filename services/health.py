"""
Health Check Service Module
Readiness checks for the geolocation provider and the cache
"""

import time
from concurrent.futures import ThreadPoolExecutor

from config import Config
from errors import UpstreamError
from utils.helpers import utcnow_iso, format_duration_ms


class HealthService:
    """Aggregates provider reachability and cache state"""

    def __init__(self, upstream, cache, timeout=None, started_at=None):
        self.upstream = upstream
        self.cache = cache
        self.timeout = timeout if timeout is not None else Config.HEALTH_CHECK_TIMEOUT
        self.started_at = started_at if started_at is not None else time.monotonic()

    def uptime(self):
        """Seconds since the service started"""
        return round(time.monotonic() - self.started_at, 3)

    def check_geolocation_api(self):
        """
        Check if the geolocation provider is reachable

        A single attempt against the bare endpoint with its own short
        timeout. Any HTTP answer below 500 means the API is up, including
        429, since the provider answered.

        Returns:
            Dictionary with status, responseTime, message (and error)
        """
        start = time.monotonic()

        try:
            self.upstream.fetch('', timeout=self.timeout)
        except UpstreamError as e:
            if e.status_code is not None and e.status_code < 500:
                return {
                    "status": "healthy",
                    "responseTime": format_duration_ms(time.monotonic() - start),
                    "message": "Geolocation API is accessible",
                }
            return {
                "status": "unhealthy",
                "responseTime": None,
                "message": f"Geolocation API error: {e}",
                "error": str(e.status_code) if e.status_code else "UNREACHABLE",
            }

        return {
            "status": "healthy",
            "responseTime": format_duration_ms(time.monotonic() - start),
            "message": "Geolocation API is accessible",
        }

    def check_cache(self):
        """
        Check if the cache is operational

        Returns:
            Dictionary with status, keys, hitRate, message
        """
        try:
            stats = self.cache.stats()
        except Exception as e:
            return {
                "status": "unhealthy",
                "message": f"Cache error: {e}",
            }

        return {
            "status": "healthy",
            "keys": stats["keyCount"],
            "hitRate": stats["hitRatePercent"],
            "message": "Cache is operational",
        }

    def perform_health_check(self):
        """
        Run both checks concurrently and combine them

        Returns:
            Dictionary with overall status ("healthy" or "degraded")
        """
        start = time.monotonic()

        with ThreadPoolExecutor(max_workers=2) as pool:
            api_future = pool.submit(self.check_geolocation_api)
            cache_future = pool.submit(self.check_cache)
            api_check = api_future.result()
            cache_check = cache_future.result()

        healthy = api_check["status"] == "healthy" and cache_check["status"] == "healthy"

        return {
            "status": "healthy" if healthy else "degraded",
            "timestamp": utcnow_iso(),
            "uptime": self.uptime(),
            "checks": {
                "geolocationAPI": api_check,
                "cache": cache_check,
            },
            "responseTime": format_duration_ms(time.monotonic() - start),
        }
