"""
Utils package
Utility functions and helpers
"""

from .validators import is_valid_ip, normalize_ip, classify_ip
from .helpers import utcnow_iso, format_timezone
from .logger import get_logger, setup_logging

__all__ = [
    'is_valid_ip',
    'normalize_ip',
    'classify_ip',
    'utcnow_iso',
    'format_timezone',
    'get_logger',
    'setup_logging',
]
