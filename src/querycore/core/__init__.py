"""QueryCore core infrastructure.

This package provides the foundational pieces shared by every QueryCore
component: the component base class, the exception hierarchy and small
validation and formatting helpers.

Modules:
    base: Component base class
    exceptions: Exception hierarchy and error kinds
    utils: Utility functions

Example:
    >>> from querycore.core import ErrorKind, DatabaseConnectionError
"""

from .base import BaseComponent
from .exceptions import (
    ConfigurationError,
    ConnectionError,
    DatabaseConnectionError,
    ErrorCodes,
    ErrorKind,
    KindedError,
    NotConnectedError,
    OperationError,
    PermissionDeniedError,
    QueryCoreException,
    QueryError,
    ValidationError,
)
from .utils import FormatUtils, ValidationUtils

__all__ = [
    "BaseComponent",
    "ConfigurationError",
    "ConnectionError",
    "DatabaseConnectionError",
    "ErrorCodes",
    "ErrorKind",
    "FormatUtils",
    "KindedError",
    "NotConnectedError",
    "OperationError",
    "PermissionDeniedError",
    "QueryCoreException",
    "QueryError",
    "ValidationError",
]
