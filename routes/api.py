import math
from concurrent.futures import TimeoutError as FutureTimeoutError

from flask import Blueprint, current_app, jsonify, request

from errors import RateLimitedError
from utils.helpers import utcnow_iso
from utils.logger import get_logger

api_bp = Blueprint('api', __name__)

logger = get_logger('routes.api')


def _services():
    return current_app.extensions['geotime']


def _service_unavailable(message, retry_after=None):
    if retry_after is None or not math.isfinite(retry_after):
        retry_after = _services()['retry_after']

    response = jsonify({"error": message})
    response.status_code = 503
    response.headers['Retry-After'] = str(max(int(math.ceil(retry_after)), 0))
    return response


# ============================================================================
# Health Check Endpoints
# ============================================================================

@api_bp.route('/health', methods=['GET'])
def health():
    """
    Liveness probe

    Response:
        {"status": "ok", "timestamp": "ISO timestamp", "uptime": 12.3}
    """
    return jsonify({
        "status": "ok",
        "timestamp": utcnow_iso(),
        "uptime": _services()['health'].uptime()
    })


@api_bp.route('/health/ready', methods=['GET'])
def ready():
    """
    Readiness probe: provider reachability plus cache state

    Response:
        200 when healthy, 503 when degraded
    """
    try:
        status = _services()['health'].perform_health_check()
    except Exception as e:
        logger.exception("health_check_failed")
        return jsonify({
            "status": "unhealthy",
            "timestamp": utcnow_iso(),
            "error": "Health check failed",
            "message": str(e)
        }), 503

    return jsonify(status), 200 if status["status"] == "healthy" else 503


# ============================================================================
# Timezone Endpoints
# ============================================================================

@api_bp.route('/api/timezone', methods=['GET'])
def timezone_info():
    """
    Location and local time for the calling client

    Response:
        {
            "ip": "8.8.8.8",
            "city": "Mountain View",
            "timezone": "America/Los_Angeles",
            "currentTime": "Wednesday, February 10, 2026 at 04:30:00",
            "cached": false,
            ...
        }
    """
    services = _services()
    client_ip = request.remote_addr or ''

    future = services['executor'].submit(services['geo'].resolve, client_ip)

    try:
        result = future.result(timeout=services['request_timeout'])
    except FutureTimeoutError:
        future.cancel()
        logger.error(
            "request_timeout",
            extra={"data": {"ip": client_ip, "timeout": services['request_timeout']}}
        )
        return _service_unavailable(
            "Request timed out, please retry later",
            services['retry_after']
        )
    except RateLimitedError as e:
        return _service_unavailable(
            "Geolocation provider is busy, please retry later",
            e.retry_after or services['retry_after']
        )
    except Exception as e:
        logger.error(
            "timezone_request_failed",
            extra={"data": {"error": str(e), "ip": client_ip}}
        )
        return jsonify({"error": "Failed to fetch timezone information"}), 500

    return jsonify(result)


@api_bp.route('/api/cache/stats', methods=['GET'])
def cache_stats():
    """
    Cache statistics

    Response:
        {"keyCount": 12, "hits": 40, "misses": 12, "hitRatePercent": 76.92}
    """
    return jsonify(_services()['geo'].stats())
