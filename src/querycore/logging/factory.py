"""Logger factory and configuration for QueryCore.

This module provides centralized logger creation and configuration of the
stdlib handlers and structlog processors behind them.

Classes:
    LoggerFactory: Logger factory and configuration manager

Functions:
    get_logger: Get a structured logger from the global factory
    get_performance_logger: Get a performance logger from the global factory
    configure_logging: Configure the logging system globally

Example:
    >>> from querycore.logging import get_logger, configure_logging
    >>> configure_logging(level="INFO", format="json")
    >>> logger = get_logger(__name__)
    >>> logger.info("Session opened", backend="MySQL")
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..config.models import LoggingConfig
from ..core.exceptions import ValidationError
from .formatters import get_formatter, redact
from .handlers import ConsoleHandler, RotatingFileHandler
from .performance import PerformanceLogger
from .structured import StructuredLogger


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking credential-like fields."""
    return redact(event_dict)


class LoggerFactory:
    """Factory for creating and configuring QueryCore loggers.

    Loggers are cached by name. Creating a logger does not touch global
    logging state; handlers and structlog processors are installed only by
    ``configure`` (or the module-level ``configure_logging``).

    Attributes:
        config: Active logging configuration
        initialized: Whether the logging system has been configured

    Example:
        >>> factory = LoggerFactory()
        >>> factory.configure(LoggingConfig(level="DEBUG", format="text"))
        >>> logger = factory.get_logger("querycore.database.mongodb")
    """

    def __init__(self, config: Optional[LoggingConfig] = None) -> None:
        self.config = config or LoggingConfig()
        self.initialized = False
        self._loggers: Dict[str, StructuredLogger] = {}
        self._performance_loggers: Dict[str, PerformanceLogger] = {}
        self._handlers: List[logging.Handler] = []

    def configure(self, config: Optional[LoggingConfig] = None) -> None:
        """Install handlers and structlog processors for ``config``.

        Calling this again replaces the handlers installed by the previous call.
        """
        if config is not None:
            self.config = config
        self._configure_stdlib_logging()
        self._configure_structlog()
        self.initialized = True

    def configure_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Configure from a plain dictionary of ``LoggingConfig`` fields.

        Raises:
            ValidationError: If the dictionary does not validate
        """
        try:
            config = LoggingConfig(**config_dict)
        except ValueError as e:
            raise ValidationError(f"Invalid logging configuration: {e}", cause=e) from e
        self.configure(config)

    def _configure_stdlib_logging(self) -> None:
        root_logger = logging.getLogger()
        level = getattr(logging, self.config.level, logging.INFO)
        root_logger.setLevel(level)

        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()

        if self.config.console_output:
            console_handler = ConsoleHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(get_formatter(self.config.format))
            self._handlers.append(console_handler)

        if self.config.file_path is not None:
            file_handler = RotatingFileHandler(
                filename=Path(self.config.file_path),
                maxBytes=self.config.max_file_size,
                backupCount=self.config.backup_count,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(get_formatter(self.config.format))
            self._handlers.append(file_handler)

        for handler in self._handlers:
            root_logger.addHandler(handler)

    def _configure_structlog(self) -> None:
        processors: List[Any] = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            redact_secrets,
        ]

        if self.config.format == "json":
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.dev.ConsoleRenderer(colors=False))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str, *, level: Optional[str] = None) -> StructuredLogger:
        """Get or create a structured logger.

        Args:
            name: Logger name (typically module name)
            level: Override default log level
        """
        cache_key = f"{name}_{level}"
        if cache_key not in self._loggers:
            self._loggers[cache_key] = StructuredLogger(name=name, level=level or self.config.level)
        return self._loggers[cache_key]

    def get_performance_logger(
        self,
        name: str,
        *,
        auto_log: bool = True,
        track_metrics: bool = True,
    ) -> PerformanceLogger:
        """Get or create a performance logger.

        Args:
            name: Logger name
            auto_log: Whether to automatically log timing results
            track_metrics: Whether to track aggregated metrics
        """
        cache_key = f"{name}_{auto_log}_{track_metrics}"
        if cache_key not in self._performance_loggers:
            self._performance_loggers[cache_key] = PerformanceLogger(
                name=name,
                auto_log=auto_log,
                track_metrics=track_metrics,
                logger=self.get_logger(f"perf.{name}"),
            )
        return self._performance_loggers[cache_key]

    def set_level(self, level: str) -> None:
        """Set the log level for every cached logger and the root logger.

        Raises:
            ValidationError: If the level name is unknown
        """
        if not isinstance(getattr(logging, level.upper(), None), int):
            raise ValidationError(f"Invalid log level: {level}")

        self.config = self.config.update_from_dict({"level": level.upper()})
        for logger in self._loggers.values():
            logger.set_level(level)
        logging.getLogger().setLevel(getattr(logging, level.upper()))

    def get_logger_info(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "initialized": self.initialized,
            "loggers": {
                "structured": list(self._loggers.keys()),
                "performance": list(self._performance_loggers.keys()),
            },
            "handlers": [type(handler).__name__ for handler in self._handlers],
        }

    def shutdown(self) -> None:
        """Remove installed handlers and clear logger caches."""
        root_logger = logging.getLogger()
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._loggers.clear()
        self._performance_loggers.clear()
        self.initialized = False

    def __repr__(self) -> str:
        return (
            f"LoggerFactory("
            f"level={self.config.level!r}, "
            f"format={self.config.format!r}, "
            f"initialized={self.initialized})"
        )


# Global logger factory instance
_global_factory = LoggerFactory()


def configure_logging(config: Optional[LoggingConfig] = None, **kwargs: Any) -> None:
    """Configure QueryCore logging globally.

    Accepts either a ``LoggingConfig`` or its fields as keyword arguments.

    Example:
        >>> configure_logging(level="DEBUG", format="text", file_path="/var/log/querycore.log")
    """
    if config is not None:
        _global_factory.configure(config)
    else:
        _global_factory.configure_from_dict(kwargs)


def get_logger(name: str, *, level: Optional[str] = None) -> StructuredLogger:
    """Get or create a structured logger using the global factory."""
    return _global_factory.get_logger(name, level=level)


def get_performance_logger(
    name: str,
    *,
    auto_log: bool = True,
    track_metrics: bool = True,
) -> PerformanceLogger:
    """Get or create a performance logger using the global factory.

    Example:
        >>> perf_logger = get_performance_logger("database.mysql")
        >>> with perf_logger.measure("execute_query"):
        ...     rows = await service.execute_query("SELECT * FROM orders")
    """
    return _global_factory.get_performance_logger(
        name,
        auto_log=auto_log,
        track_metrics=track_metrics,
    )


def get_factory() -> LoggerFactory:
    """Get the global logger factory instance."""
    return _global_factory


def shutdown_logging() -> None:
    """Shutdown the global logging system."""
    _global_factory.shutdown()
