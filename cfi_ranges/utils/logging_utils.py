import logging
import os
import time
from functools import wraps

logger = logging.getLogger(__name__)


def setup_console_logging(level=None):
    """Setup console logging handler."""
    root_logger = logging.getLogger()
    if getattr(root_logger, '_configured', False):
        return

    console_handler = logging.StreamHandler()
    # Use explicit level, LOG_LEVEL env variable or fallback to INFO
    level_name = (level or os.environ.get('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(name)s: %(message)s'))

    root_logger.addHandler(console_handler)

    # Set root logger to DEBUG so all messages reach handlers, let handlers filter individually
    root_logger.setLevel(logging.DEBUG)

    # Mark that we've already configured logging to prevent duplicate handlers
    root_logger._configured = True


def sanitize_log_data(data):
    """Truncate long strings to "First 50... [truncated] ...Last 50"."""
    if data is None:
        return ""
    try:
        s = str(data)
    except Exception:
        return "[unrepresentable]"
    if len(s) <= 100:
        return s
    return f"{s[:50]}... [truncated] ...{s[-50:]}"


def time_execution(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        ms = (time.perf_counter() - start) * 1000
        logger.debug(f"⏱️ [{func.__name__}] took {ms:.2f}ms")
        return result
    return wrapper
