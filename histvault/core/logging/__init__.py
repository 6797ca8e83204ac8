"""Structured JSON logging built on loguru."""

from histvault.core.logging.config import LogConfig
from histvault.core.logging.logger import PROMOTED_FIELDS, configure_logging, get_logger, log_context

__all__ = [
    "LogConfig",
    "PROMOTED_FIELDS",
    "configure_logging",
    "get_logger",
    "log_context",
]
