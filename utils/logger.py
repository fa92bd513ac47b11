"""
Logging Setup Module
JSON and text log formatters for the GeoTime service

Usage:
    logger = get_logger('services.geo')
    logger.info("cache_hit", extra={"data": {"key": "geo:8.8.8.8"}})
"""

import json
import logging
import sys
from datetime import datetime, timezone

ROOT_LOGGER = 'geotime'


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter used in production"""

    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development"""

    def format(self, record):
        line = (
            f"{datetime.now().strftime('%Y-%m-%d %H:%M:%S')} "
            f"[{record.levelname}] {record.name}: {record.getMessage()}"
        )

        data = getattr(record, "data", None)
        if data:
            line += f" {json.dumps(data, default=str)}"

        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)

        return line


def get_logger(name):
    """Get a named logger under the geotime namespace"""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(level="INFO", log_format="json"):
    """
    Configure the geotime logger

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" or "text"

    Returns:
        The configured root geotime logger
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Drop handlers from a previous call
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if log_format == "json" else TextFormatter())
    root.addHandler(handler)

    return root
