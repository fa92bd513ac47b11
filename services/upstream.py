"""
Upstream Client Module
Handles all interactions with the ipapi.co geolocation API
"""

import math
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import requests

from config import Config
from errors import UpstreamError, RateLimitedError
from utils.logger import get_logger

logger = get_logger('services.upstream')


def parse_retry_after(value, cap=None):
    """
    Parse a Retry-After header value into seconds

    Accepts delta-seconds or an HTTP date. Negative values clamp to 0.

    Args:
        value: Raw header value
        cap: Optional upper bound in seconds

    Returns:
        Float seconds or None if missing, unparseable or not finite

    Example:
        >>> parse_retry_after("3")
        3.0
        >>> parse_retry_after("120", cap=10)
        10
    """
    if value is None:
        return None

    value = str(value).strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None
        if when is None:
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()

    if not math.isfinite(seconds):
        return None

    seconds = max(seconds, 0.0)
    if cap is not None:
        seconds = min(seconds, cap)
    return seconds


class UpstreamClient:
    """ipapi.co API client with retry on rate limiting"""

    def __init__(self, base_url=None, api_key=None, timeout=None, max_retries=None,
                 base_delay=None, max_retry_after=None, session=None, sleep=time.sleep):
        self.base_url = (base_url or Config.GEO_API_BASE).rstrip('/')
        self.api_key = api_key if api_key is not None else Config.GEOLOCATION_API_KEY
        self.timeout = timeout if timeout is not None else Config.UPSTREAM_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else Config.MAX_RETRIES
        self.base_delay = base_delay if base_delay is not None else Config.RETRY_BASE_DELAY
        self.max_retry_after = (
            max_retry_after if max_retry_after is not None else Config.MAX_RETRY_AFTER
        )
        self.session = session or requests.Session()
        self._sleep = sleep

    def build_url(self, lookup_key):
        """
        Build the provider URL for a lookup key

        An empty key hits the bare endpoint, which reports the caller's
        own public IP.
        """
        if lookup_key:
            return f"{self.base_url}/{lookup_key}/json/"
        return f"{self.base_url}/json/"

    def fetch(self, lookup_key, timeout=None):
        """
        Issue a single request to the provider

        Args:
            lookup_key: Public IP to look up, or '' for the server's own IP
            timeout: Per-attempt timeout in seconds (defaults to UPSTREAM_TIMEOUT)

        Returns:
            Raw provider payload (dict)

        Raises:
            UpstreamError: On any non-success response or network failure
        """
        url = self.build_url(lookup_key)
        params = {"key": self.api_key} if self.api_key else None

        try:
            response = self.session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=timeout if timeout is not None else self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise UpstreamError(f"Request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise UpstreamError(
                "Rate limited by geolocation provider",
                status_code=429,
                retry_after=parse_retry_after(response.headers.get("Retry-After"))
            )

        if not 200 <= response.status_code < 300:
            raise UpstreamError(
                f"HTTP error: {response.status_code}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                "Invalid JSON from geolocation provider",
                status_code=response.status_code
            ) from e

        if not isinstance(data, dict):
            raise UpstreamError(
                "Unexpected payload from geolocation provider",
                status_code=response.status_code
            )

        # ipapi.co can report errors in a 200 body
        if data.get("error"):
            reason = data.get("reason") or "unknown"
            if reason == "RateLimited":
                raise UpstreamError(
                    "Rate limited by geolocation provider",
                    status_code=429,
                    retry_after=parse_retry_after(response.headers.get("Retry-After"))
                )
            raise UpstreamError(
                f"Provider error: {reason}",
                status_code=response.status_code
            )

        return data

    def backoff_delay(self, attempt, retry_after=None):
        """
        Seconds to wait before the next attempt

        A provider-supplied Retry-After wins (capped at max_retry_after);
        otherwise the delay doubles from base_delay on every attempt.
        """
        if retry_after is not None:
            return min(retry_after, self.max_retry_after)
        return self.base_delay * (2 ** attempt)

    def fetch_with_retry(self, lookup_key):
        """
        Fetch with up to ``max_retries`` retries on HTTP 429

        Any other failure propagates immediately.

        Raises:
            RateLimitedError: If every attempt was rate limited
            UpstreamError: On the first non-429 failure
        """
        last_error = None

        for attempt in range(self.max_retries + 1):
            try:
                return self.fetch(lookup_key)
            except UpstreamError as e:
                if not e.is_rate_limited:
                    raise
                last_error = e

            if attempt == self.max_retries:
                break

            delay = self.backoff_delay(attempt, last_error.retry_after)
            logger.warning(
                "upstream_retry",
                extra={"data": {
                    "lookup_key": lookup_key or "default",
                    "attempt": attempt + 1,
                    "delay": delay,
                    "error": str(last_error),
                }}
            )
            self._sleep(delay)

        logger.error(
            "upstream_rate_limited",
            extra={"data": {
                "lookup_key": lookup_key or "default",
                "attempts": self.max_retries + 1,
            }}
        )
        raise RateLimitedError(retry_after=last_error.retry_after) from last_error

    def close(self):
        self.session.close()
