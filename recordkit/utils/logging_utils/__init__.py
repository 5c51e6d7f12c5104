"""
Convenience accessors for the structured logging facility.

Usage:
    from recordkit.utils.logging_utils import get_logger, log_context
    log = get_logger("model")
    with log_context(table="user"):
        log.info("row inserted")
"""

from .manager import (
    ContextAwareFormatter,
    LoggerManager,
    get_log_context,
    get_logger,
    init_logger,
    log_context,
    logger_manager,
    shutdown_logger,
)

__all__ = [
    "ContextAwareFormatter",
    "LoggerManager",
    "get_log_context",
    "get_logger",
    "init_logger",
    "log_context",
    "logger_manager",
    "shutdown_logger",
]
