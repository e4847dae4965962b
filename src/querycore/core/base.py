"""Base classes for QueryCore components.

This module provides the abstract base class that long-lived QueryCore
components inherit from, ensuring consistent configuration handling,
logging and health reporting.

Classes:
    BaseComponent: Generic base class for configured components

Example:
    >>> class DatabaseService(BaseComponent[TimeoutPolicy]):
    ...     async def connect(self, profile: ConnectionProfile) -> None:
    ...         ...
"""

import time
from abc import ABC
from typing import Any, ClassVar, Dict, Generic, TypeVar

import structlog

from .exceptions import ConfigurationError, ValidationError

# Configuration type
T = TypeVar("T")


class BaseComponent(Generic[T], ABC):
    """Base class for configured QueryCore components.

    Type Parameters:
        T: Type of configuration object this component accepts

    Attributes:
        component_name: Name of the component for logging and identification
        version: Component version for compatibility checking
    """

    component_name: ClassVar[str] = "BaseComponent"
    version: ClassVar[str] = "1.0.0"

    def __init__(self, config: T) -> None:
        """Initialize base component.

        Args:
            config: Configuration object for this component

        Raises:
            ValidationError: If configuration is missing
            ConfigurationError: If configuration is invalid
        """
        if config is None:
            raise ValidationError(
                "Configuration cannot be None",
                code="CONFIG_NULL",
                context={"component": self.component_name},
            )

        self._config: T = config
        self._creation_time: float = time.time()
        self._logger = structlog.get_logger(self.__class__.__name__)

        if not self.validate_config():
            raise ConfigurationError(
                f"Invalid configuration for {self.component_name}",
                code="CONFIG_INVALID",
                context={"component": self.component_name},
            )

    @property
    def config(self) -> T:
        """Get component configuration."""
        return self._config

    @property
    def uptime(self) -> float:
        """Get component uptime in seconds."""
        return time.time() - self._creation_time

    def validate_config(self) -> bool:
        """Validate component configuration.

        Subclasses should override this method to implement
        component-specific configuration validation.

        Returns:
            True if configuration is valid
        """
        return self._config is not None

    def get_health_status(self) -> Dict[str, Any]:
        """Get component health status.

        Returns:
            Dictionary containing component health information
        """
        return {
            "component": self.component_name,
            "version": self.version,
            "uptime_seconds": self.uptime,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.component_name!r}, uptime={self.uptime:.2f}s)"
