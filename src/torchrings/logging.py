"""
Logging utilities for torchrings.

Provides consistent logging and error reporting for the geometry builders.
"""

import logging
import os
import sys
import time
from functools import wraps

# Configure torchrings logger
logger = logging.getLogger("torchrings")

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

logger.setLevel(
    _LEVEL_MAP.get(os.environ.get("TORCHRINGS_LOG_LEVEL", "INFO").upper(), logging.INFO)
)

# Create console handler if none exists
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_errors(func):
    """Decorator to log exceptions before re-raising."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {str(e)}")
            raise

    return wrapper


def log_performance(func):
    """Decorator to log build time, and failures with their elapsed time."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            end_time = time.perf_counter()
            logger.debug(
                f"{func.__name__} completed in {(end_time - start_time) * 1000:.2f}ms"
            )
            return result
        except Exception as e:
            end_time = time.perf_counter()
            logger.error(
                f"{func.__name__} failed after {(end_time - start_time) * 1000:.2f}ms: {str(e)}"
            )
            raise

    return wrapper


def set_log_level(level: str):
    """Set logging level for torchrings."""
    logger.setLevel(_LEVEL_MAP.get(level.upper(), logging.INFO))


def log_ring_summary(kind: str, nrings: int, npix: int, total_weight: float):
    """Log the shape of a freshly built ring table."""
    logger.debug(
        f"{kind} geometry: nrings={nrings}, npix={npix}, total_weight={total_weight:.15g}"
    )


def log_memory_usage(context: str, size_mb: float):
    """Log memory usage information."""
    logger.debug(f"Memory usage in {context}: {size_mb:.2f} MB")
