"""QueryCore configuration management.

This package provides type-safe configuration models with validation and
environment variable support.

Classes:
    BaseConfig: Base configuration class
    ConnectionProfile: Connection parameters for one database
    TimeoutPolicy: Network and query timeouts
    QueryCoreSettings: Top-level settings object

Example:
    >>> from querycore.config import QueryCoreSettings
    >>> settings = QueryCoreSettings.from_file("querycore.yaml")
    >>> settings.timeouts.query_timeout
"""

from .models import (
    BackendType,
    BaseConfig,
    ConnectionProfile,
    LoggingConfig,
    QueryCoreSettings,
    TimeoutPolicy,
    TrackerConfig,
)

__all__ = [
    "BackendType",
    "BaseConfig",
    "ConnectionProfile",
    "LoggingConfig",
    "QueryCoreSettings",
    "TimeoutPolicy",
    "TrackerConfig",
]
