"""
Errors Module
Error types raised by the geolocation pipeline
"""


class GeoTimeError(Exception):
    """Base class for all GeoTime service errors"""


class UpstreamError(GeoTimeError):
    """
    A single failed request to the geolocation provider

    Attributes:
        status_code: HTTP status returned by the provider, or None for
            network failures and timeouts
        retry_after: Seconds the provider asked us to wait (429 only)
    """

    def __init__(self, message, status_code=None, retry_after=None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def is_rate_limited(self):
        return self.status_code == 429


class ResolutionError(GeoTimeError):
    """Base class for errors surfaced by GeoService.resolve()"""


class RateLimitedError(ResolutionError):
    """The provider kept answering 429 after every retry was spent"""

    def __init__(self, message="Geolocation provider rate limit exceeded", retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after


class LocationUnavailableError(ResolutionError):
    """Generic lookup failure; the underlying cause is chained, never exposed"""

    def __init__(self, message="Unable to determine location from IP address"):
        super().__init__(message)


class InvalidTimezoneError(ResolutionError):
    """An unrecognised IANA timezone identifier"""

    def __init__(self, timezone_name):
        super().__init__(f"Unknown timezone: {timezone_name!r}")
        self.timezone = timezone_name
