"""Logging, correlation ids and health checks."""

from .correlation import generate_correlation_id, get_correlation_id, set_correlation_id
from .logging_config import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "generate_correlation_id",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
]
