"""QueryCore structured logging.

Classes:
    StructuredLogger: Main structured logging interface
    PerformanceLogger: Operation timing and metrics
    LoggerFactory: Logger creation and configuration

Example:
    >>> from querycore.logging import get_logger, get_performance_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Connecting", backend="MongoDB", host="db.example")
    >>>
    >>> perf_logger = get_performance_logger("database.mongodb")
    >>> with perf_logger.measure("execute_query"):
    ...     pass
"""

from .factory import (
    LoggerFactory,
    configure_logging,
    get_factory,
    get_logger,
    get_performance_logger,
    shutdown_logging,
)
from .formatters import JSONFormatter, TextFormatter, get_formatter, redact
from .handlers import ConsoleHandler, RotatingFileHandler
from .performance import PerformanceLogger, TimingContext
from .structured import LogContext, StructuredLogger

__all__ = [
    "LoggerFactory",
    "configure_logging",
    "get_factory",
    "get_logger",
    "get_performance_logger",
    "shutdown_logging",
    "JSONFormatter",
    "TextFormatter",
    "get_formatter",
    "redact",
    "ConsoleHandler",
    "RotatingFileHandler",
    "PerformanceLogger",
    "TimingContext",
    "LogContext",
    "StructuredLogger",
]
