"""
Services package
Geolocation pipeline: cache, upstream client, resolution and health
"""

from errors import (
    GeoTimeError,
    UpstreamError,
    ResolutionError,
    RateLimitedError,
    LocationUnavailableError,
    InvalidTimezoneError,
)
from .cache import CacheService
from .upstream import UpstreamClient
from .geo import GeoService
from .health import HealthService

__all__ = [
    'GeoTimeError',
    'UpstreamError',
    'ResolutionError',
    'RateLimitedError',
    'LocationUnavailableError',
    'InvalidTimezoneError',
    'CacheService',
    'UpstreamClient',
    'GeoService',
    'HealthService',
]
