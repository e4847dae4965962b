"""QueryCore exception hierarchy.

This module defines the exception hierarchy for QueryCore operations. Every
failure that crosses the package boundary is one of these exceptions, carrying
a human-readable message, an error code, optional context and the original
driver exception.

Connection and operation errors additionally carry an ``ErrorKind`` so callers
can branch on the classified category instead of inspecting message text.

Classes:
    ErrorKind: Classified failure categories
    QueryCoreException: Base exception for all QueryCore operations
    ConfigurationError: Configuration related errors
    ConnectionError: Database connection errors
    OperationError: Errors raised by list/query/describe operations

Example:
    >>> try:
    ...     await service.connect(profile)
    ... except DatabaseConnectionError as e:
    ...     if e.kind is ErrorKind.AUTH_FAILED:
    ...         prompt_for_credentials()
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Classified failure categories shared by every backend."""

    WRONG_PORT = "WRONG_PORT"
    DRIVER_UNAVAILABLE = "DRIVER_UNAVAILABLE"
    PROTOCOL_MISMATCH = "PROTOCOL_MISMATCH"
    AUTH_FAILED = "AUTH_FAILED"
    TIMEOUT = "TIMEOUT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNKNOWN = "UNKNOWN"


class QueryCoreException(Exception):
    """Base exception for all QueryCore operations.

    Attributes:
        code: Unique error code for categorization
        context: Additional context information about the error
        cause: Original exception that caused this error (if any)

    Example:
        >>> raise QueryCoreException(
        ...     "Operation failed",
        ...     code="OPERATION_FAILED",
        ...     context={"operation": "list_tables", "database": "shop"}
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Initialize QueryCore exception.

        Args:
            message: Human-readable error description
            code: Unique error code for categorization (defaults to class name)
            context: Additional context information
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[BaseException] = cause

    def __str__(self) -> str:
        """Return formatted error message with code."""
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation of the exception."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r}, "
            f"cause={self.cause!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(QueryCoreException):
    """Configuration related errors.

    Raised when settings or connection profiles are invalid, missing, or
    cannot be loaded.
    """
    pass


class ValidationError(ConfigurationError):
    """Data validation errors.

    Raised when input data fails validation rules, including type mismatches,
    value constraints, and format requirements.
    """
    pass


class KindedError(QueryCoreException):
    """Mixin base for errors that carry a classified ``ErrorKind``.

    The error code defaults to the kind's value so serialized errors and
    tracker records share one vocabulary.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, code=code or kind.value, context=context, cause=cause)
        self.kind: ErrorKind = kind

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind.value
        return data


class ConnectionError(KindedError):
    """Database connection related errors.

    Base class for every failure to establish or use a backend session.
    """
    pass


class DatabaseConnectionError(ConnectionError):
    """Database connection establishment errors.

    Raised by ``connect()`` once classification has run. The message is the
    single user-facing explanation; ``kind`` is the classified category.
    """
    pass


class NotConnectedError(ConnectionError):
    """Raised when an operation is issued with no active session."""

    def __init__(self, message: str = "Not connected to a database", **kwargs: Any) -> None:
        kwargs.setdefault("code", ErrorCodes.NOT_CONNECTED)
        super().__init__(message, **kwargs)


class OperationError(KindedError):
    """Errors raised by list, query, update and describe operations."""
    pass


class QueryError(OperationError):
    """Query or update execution errors.

    Raised when a query string is malformed or rejected by the server.
    """
    pass


class PermissionDeniedError(OperationError):
    """Raised when an authenticated principal may not perform an operation.

    Distinct from authentication failures: the session is valid, the
    operation is not allowed.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("kind", ErrorKind.PERMISSION_DENIED)
        super().__init__(message, **kwargs)


class ErrorCodes:
    """Error codes that are not backed by an ``ErrorKind``."""

    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    BACKEND_NOT_SUPPORTED = "BACKEND_NOT_SUPPORTED"
    INVALID_QUERY = "INVALID_QUERY"
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"
