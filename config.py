"""
Configuration Management Module
Handles loading environment variables for the GeoTime service
"""

import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger('geotime.config')

VALID_ENVS = ('development', 'production', 'test', 'qa', 'staging')


def _env_int(name, default):
    """Read an integer environment variable, keeping the default on bad input"""
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s %r, using default %s", name, raw, default)
        return default


def _env_float(name, default):
    """Read a float environment variable, keeping the default on bad input"""
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s %r, using default %s", name, raw, default)
        return default


class Config:
    """Application configuration class"""

    # Application Configuration
    ENV = os.getenv('APP_ENV', 'production')
    DEBUG = os.getenv('APP_DEBUG', 'False').lower() == 'true'

    # Server Configuration
    HOST = os.getenv('APP_HOST', '0.0.0.0')
    PORT = _env_int('APP_PORT', 3000)

    # Logging Configuration
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO' if ENV == 'production' else 'DEBUG')
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'json' if ENV == 'production' else 'text')

    # Geolocation Provider (ipapi.co)
    GEO_API_BASE = os.getenv('GEO_API_BASE', 'https://ipapi.co')
    GEOLOCATION_API_KEY = os.getenv('GEOLOCATION_API_KEY') or None

    # Timeouts (seconds)
    UPSTREAM_TIMEOUT = _env_float('UPSTREAM_TIMEOUT', 10.0)
    HEALTH_CHECK_TIMEOUT = _env_float('HEALTH_CHECK_TIMEOUT', 2.0)
    REQUEST_TIMEOUT = _env_float('REQUEST_TIMEOUT', 30.0)

    # Threads resolving lookups under the request deadline
    WORKER_THREADS = _env_int('WORKER_THREADS', 8)

    # Upstream retry on HTTP 429
    MAX_RETRIES = _env_int('MAX_RETRIES', 2)
    RETRY_BASE_DELAY = _env_float('RETRY_BASE_DELAY', 0.5)
    MAX_RETRY_AFTER = _env_float('MAX_RETRY_AFTER', 10.0)

    # Retry-After sent to our own callers on 503 responses
    RATE_LIMIT_RETRY_AFTER = _env_int('RATE_LIMIT_RETRY_AFTER', 60)

    # Cache Configuration
    CACHE_TTL = _env_float('CACHE_TTL', 24 * 60 * 60)
    CACHE_MAX_KEYS = _env_int('CACHE_MAX_KEYS', 10000)
    CACHE_CHECK_PERIOD = _env_float('CACHE_CHECK_PERIOD', 60 * 60)

    @classmethod
    def is_production(cls):
        """Check if running in production"""
        return cls.ENV == 'production'

    @classmethod
    def is_development(cls):
        """Check if running in development"""
        return cls.ENV == 'development'

    @classmethod
    def allow_development_fallback(cls):
        """
        Whether a failed upstream lookup may be masked by the static
        development location. Only plain local development qualifies;
        QA, staging, test and production always surface the failure.
        """
        return cls.is_development()

    @classmethod
    def validate(cls):
        """
        Validate configuration values

        Raises:
            ValueError: If a value is out of range
        """
        if not 1 <= cls.PORT <= 65535:
            raise ValueError(
                f"Invalid APP_PORT configuration: {cls.PORT}. Must be between 1 and 65535."
            )

        if cls.CACHE_MAX_KEYS < 1:
            raise ValueError(f"CACHE_MAX_KEYS must be positive, got {cls.CACHE_MAX_KEYS}")

        for name in ('CACHE_TTL', 'UPSTREAM_TIMEOUT', 'HEALTH_CHECK_TIMEOUT', 'REQUEST_TIMEOUT'):
            if getattr(cls, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(cls, name)}")

        if cls.MAX_RETRIES < 0:
            raise ValueError(f"MAX_RETRIES must not be negative, got {cls.MAX_RETRIES}")

        if cls.ENV not in VALID_ENVS:
            logger.warning(
                "APP_ENV %r is not standard. Expected one of: %s",
                cls.ENV, ', '.join(VALID_ENVS)
            )
