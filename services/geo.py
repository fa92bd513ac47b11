"""
Geolocation Service Module
Resolves a client IP to location and local time, with caching
"""

from datetime import datetime, timezone

from errors import (
    UpstreamError,
    RateLimitedError,
    LocationUnavailableError,
    InvalidTimezoneError,
)
from services.cache import CacheService
from services.upstream import UpstreamClient
from utils.helpers import format_timezone
from utils.logger import get_logger
from utils.validators import classify_ip

logger = get_logger('services.geo')

CACHE_KEY_PREFIX = "geo:"

# Served only in local development when the provider is unreachable
DEVELOPMENT_FALLBACK = {
    "city": "San Francisco",
    "region": "California",
    "country": "United States",
    "countryCode": "US",
    "latitude": 37.7749,
    "longitude": -122.4194,
    "timezone": "America/Los_Angeles",
    "utcOffset": "-0800",
}


def cache_key_for(lookup_key):
    """
    Build the cache key for a lookup key

    Example:
        >>> cache_key_for('8.8.8.8')
        'geo:8.8.8.8'
        >>> cache_key_for('')
        'geo:default'
    """
    return f"{CACHE_KEY_PREFIX}{lookup_key or 'default'}"


def to_cache_entry(payload):
    """Map a raw ipapi.co payload onto the cached entry shape"""
    return {
        "ip": payload.get("ip"),
        "city": payload.get("city"),
        "region": payload.get("region"),
        "country": payload.get("country_name"),
        "countryCode": payload.get("country_code"),
        "latitude": payload.get("latitude"),
        "longitude": payload.get("longitude"),
        "timezone": payload.get("timezone"),
        "utcOffset": payload.get("utc_offset"),
    }


class GeoService:
    """Geolocation and timezone resolution service"""

    def __init__(self, cache=None, upstream=None, allow_development_fallback=False):
        """
        Args:
            cache: CacheService instance owned by this service
            upstream: UpstreamClient used on cache misses
            allow_development_fallback: Serve DEVELOPMENT_FALLBACK when the
                provider fails for any reason other than rate limiting
        """
        self.cache = cache or CacheService()
        self.upstream = upstream or UpstreamClient()
        self.allow_development_fallback = allow_development_fallback

    def resolve(self, raw_ip):
        """
        Resolve a client IP to location and current local time

        Args:
            raw_ip: Client IP as seen by the HTTP layer

        Returns:
            Dictionary with location fields, currentTime, timestamp, cached
            and (for development fallback data) fallback

        Raises:
            RateLimitedError: Provider still rate limited after retries
            LocationUnavailableError: Any other lookup failure
            InvalidTimezoneError: Provider returned an unknown timezone
        """
        classified = classify_ip(raw_ip)
        lookup_key = classified["lookup_key"]
        key = cache_key_for(lookup_key)

        logger.debug(
            "resolve",
            extra={"data": {
                "ip": raw_ip,
                "normalized_ip": classified["normalized_ip"],
                "lookup_key": lookup_key or "default",
            }}
        )

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("cache_hit", extra={"data": {"key": key}})
            return self._render(cached, cached=True)

        logger.info("cache_miss", extra={"data": {"key": key}})

        try:
            payload = self.upstream.fetch_with_retry(lookup_key)
        except RateLimitedError:
            raise
        except UpstreamError as e:
            return self._handle_failure(key, classified, e)

        entry = to_cache_entry(payload)
        # Render first so an unknown timezone is never cached
        result = self._render(entry, cached=False)
        self.cache.set(key, entry)
        return result

    def _handle_failure(self, key, classified, error):
        if not self.allow_development_fallback:
            logger.error(
                "resolution_failed",
                extra={"data": {"key": key, "error": str(error)}}
            )
            raise LocationUnavailableError() from error

        logger.warning(
            "fallback_used",
            extra={"data": {"key": key, "error": str(error)}}
        )
        # Cached under the same key a live result would use; the marker
        # keeps later cache hits flagged as fallback data
        entry = {"ip": classified["normalized_ip"], **DEVELOPMENT_FALLBACK, "fallback": True}
        self.cache.set(key, entry)
        return self._render(entry, cached=False)

    def _render(self, entry, cached):
        now = datetime.now(timezone.utc)
        try:
            current_time = format_timezone(entry["timezone"], now=now)
        except InvalidTimezoneError:
            logger.error(
                "invalid_timezone",
                extra={"data": {"ip": entry.get("ip"), "timezone": entry.get("timezone")}}
            )
            raise

        result = dict(entry)
        result["currentTime"] = current_time
        result["timestamp"] = now.isoformat()
        result["cached"] = cached
        return result

    def stats(self):
        """Get cache statistics"""
        return self.cache.stats()

    def clear_cache(self):
        """Clear the geolocation cache"""
        self.cache.flush()

    def start(self):
        """Start background cache maintenance"""
        self.cache.start_sweeper()

    def close(self):
        """Stop cache maintenance and flush entries on shutdown"""
        self.cache.stop_sweeper()
        self.cache.flush()
        self.upstream.close()
        logger.info("geo_service_stopped", extra={"data": self.cache.stats()})
