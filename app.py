import atexit
import signal
import sys
from concurrent.futures import ThreadPoolExecutor

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config
from services import CacheService, UpstreamClient, GeoService, HealthService
from utils.logger import get_logger, setup_logging

# Import blueprints
from routes.api import api_bp

logger = get_logger('app')


def create_app(config=Config, geo_service=None, health_service=None):
    """
    Application factory

    Args:
        config: Configuration class (defaults to Config)
        geo_service: Pre-built GeoService (tests inject their own)
        health_service: Pre-built HealthService
    """
    app = Flask(__name__)

    # Load configuration
    app.config['DEBUG'] = config.DEBUG

    # Trust exactly one proxy hop for the client address
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1)

    if geo_service is None:
        cache = CacheService(
            ttl=config.CACHE_TTL,
            max_keys=config.CACHE_MAX_KEYS,
            check_period=config.CACHE_CHECK_PERIOD
        )
        upstream = UpstreamClient(
            base_url=config.GEO_API_BASE,
            api_key=config.GEOLOCATION_API_KEY,
            timeout=config.UPSTREAM_TIMEOUT,
            max_retries=config.MAX_RETRIES,
            base_delay=config.RETRY_BASE_DELAY,
            max_retry_after=config.MAX_RETRY_AFTER
        )
        geo_service = GeoService(
            cache=cache,
            upstream=upstream,
            allow_development_fallback=config.allow_development_fallback()
        )

    if health_service is None:
        health_service = HealthService(
            geo_service.upstream,
            geo_service.cache,
            timeout=config.HEALTH_CHECK_TIMEOUT
        )

    app.extensions['geotime'] = {
        'geo': geo_service,
        'health': health_service,
        'executor': ThreadPoolExecutor(
            max_workers=config.WORKER_THREADS,
            thread_name_prefix='geotime-resolve'
        ),
        'request_timeout': config.REQUEST_TIMEOUT,
        'retry_after': config.RATE_LIMIT_RETRY_AFTER,
    }

    # Register blueprints
    app.register_blueprint(api_bp)

    return app


def shutdown(app):
    """Release worker threads and flush the cache"""
    services = app.extensions.get('geotime')
    if not services or services.get('stopped'):
        return

    services['stopped'] = True
    services['executor'].shutdown(wait=False)
    services['geo'].close()
    logger.info("server_stopped")


def _install_signal_handlers():
    def _handle(signum, frame):
        logger.info("shutdown_signal", extra={"data": {"signal": signal.Signals(signum).name}})
        sys.exit(0)

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)


if __name__ == '__main__':
    setup_logging(Config.LOG_LEVEL, Config.LOG_FORMAT)
    Config.validate()

    app = create_app()
    app.extensions['geotime']['geo'].start()

    atexit.register(shutdown, app)
    _install_signal_handlers()

    logger.info(
        "server_started",
        extra={"data": {
            "url": f"http://{Config.HOST}:{Config.PORT}",
            "environment": Config.ENV,
            "development_fallback": Config.allow_development_fallback(),
        }}
    )

    app.run(
        host=Config.HOST,
        port=Config.PORT,
        debug=Config.DEBUG,
        threaded=True
    )
