"""Database service abstraction shared by every backend.

A service owns at most one open backend session. ``connect`` is a template:
the base class handles tracking, the port pre-flight and error wrapping,
while subclasses only know how to open, ping and close their driver handle.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Optional

from ..config.models import BackendType, ConnectionProfile, TimeoutPolicy
from ..core import BaseComponent
from ..core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    ErrorCodes,
    ErrorKind,
    NotConnectedError,
    OperationError,
    PermissionDeniedError,
    QueryError,
)
from ..logging import get_logger, get_performance_logger
from .classifier import Classification, check_port, error_text, format_error
from .models import ActiveSession, QueryRows, TableStructure
from .tracker import ConnectionTracker, get_default_tracker


class DatabaseService(BaseComponent[TimeoutPolicy], ABC):
    """Abstract base class for backend services.

    Subclasses set ``backend`` and ``driver_name`` and implement the
    ``_open_session`` / ``_ping`` / ``_close_handle`` hooks plus the five
    browse and query operations.

    Example:
        >>> service = MySQLService()
        >>> await service.connect(profile)
        >>> await service.list_tables("shop")
        ['orders', 'users']
        >>> await service.disconnect()
    """

    component_name: ClassVar[str] = "DatabaseService"
    backend: ClassVar[BackendType]
    driver_name: ClassVar[str] = "unknown"

    def __init__(
        self,
        timeouts: Optional[TimeoutPolicy] = None,
        *,
        tracker: Optional[ConnectionTracker] = None,
    ) -> None:
        super().__init__(timeouts or TimeoutPolicy())
        self.tracker = tracker or get_default_tracker()
        self.logger = get_logger(f"querycore.database.{self.backend.value}")
        self.perf_logger = get_performance_logger(f"database.{self.backend.value}")
        self._session: Optional[ActiveSession] = None

    @property
    def backend_label(self) -> str:
        return self.backend.label

    @property
    def timeouts(self) -> TimeoutPolicy:
        return self.config

    @property
    def session(self) -> Optional[ActiveSession]:
        return self._session

    @property
    def profile(self) -> Optional[ConnectionProfile]:
        return self._session.profile if self._session else None

    # Lifecycle

    async def connect(self, profile: ConnectionProfile) -> None:
        """Open a session for ``profile``, replacing any existing one.

        Exactly one tracker outcome is recorded per call.

        Raises:
            ConfigurationError: If the profile belongs to another backend family
            DatabaseConnectionError: If the connection could not be established
        """
        if profile.backend.is_sql != self.backend.is_sql:
            raise ConfigurationError(
                f"{self.backend_label} service cannot connect to a {profile.backend.label} profile",
                code=ErrorCodes.BACKEND_NOT_SUPPORTED,
                context={"service": self.backend.value, "profile_backend": profile.backend.value},
            )

        if self._session is not None:
            await self.disconnect()

        tracking_id = self.tracker.start_attempt(profile, self.backend_label)
        context = {"host": profile.host, "port": profile.port, "database": profile.database}
        self.logger.info("Connecting", tracking_id=tracking_id, uri=profile.masked_uri)

        preflight = check_port(self.backend, profile.port)
        if preflight is not None:
            self.tracker.record_failure(tracking_id, preflight.message, preflight.kind)
            raise DatabaseConnectionError(preflight.message, kind=preflight.kind, context=context)

        with self.perf_logger.measure("connect", backend=self.backend.value, host=profile.host):
            try:
                session = await self._open_session(profile)
            except DatabaseConnectionError as e:
                self.tracker.record_failure(tracking_id, e.message, e.kind)
                raise
            except asyncio.CancelledError:
                self.tracker.record_failure(tracking_id, "Connection attempt cancelled", ErrorKind.UNKNOWN)
                raise
            except Exception as e:
                message = f"Unexpected error connecting to {self.backend_label}: {error_text(e)}"
                self.tracker.record_failure(tracking_id, message, ErrorKind.UNKNOWN)
                raise DatabaseConnectionError(
                    message, kind=ErrorKind.UNKNOWN, context=context, cause=e
                ) from e

        session.tracking_id = tracking_id
        self._session = session
        self.tracker.record_success(tracking_id, session.server_version or self.backend_label)
        self.logger.info(
            "Connected",
            tracking_id=tracking_id,
            server_version=session.server_version,
            **session.extra,
        )

    async def disconnect(self) -> None:
        """Release the session. Safe to call when not connected."""
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await self._close_handle(session.handle)
        except Exception as e:
            self.logger.warning("Error while closing connection", error=error_text(e))
        if session.tracking_id is not None:
            self.tracker.record_disconnect(session.tracking_id)

    async def is_connected(self) -> bool:
        """Liveness round-trip on the active session; ``False`` on any failure."""
        session = self._session
        if session is None:
            return False
        try:
            return bool(
                await asyncio.wait_for(self._ping(session.handle), timeout=self.config.socket_timeout)
            )
        except Exception as e:
            self.logger.debug("Liveness check failed", error=error_text(e))
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        session = self._session
        profile = session.profile if session else None
        return {
            "backend": self.backend.value,
            "host": profile.host if profile else None,
            "port": profile.port if profile else None,
            "database": profile.database if profile else None,
            "server_version": session.server_version if session else None,
            "driver": self.driver_name,
            "connected": session is not None,
        }

    def get_health_status(self) -> Dict[str, Any]:
        status = super().get_health_status()
        status.update(self.get_connection_info())
        return status

    async def __aenter__(self) -> "DatabaseService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    # Helpers for subclasses

    def _require_session(self) -> ActiveSession:
        if self._session is None:
            raise NotConnectedError(
                f"Not connected to a {self.backend_label} database",
                context={"backend": self.backend.value},
            )
        return self._session

    def _operation_error(
        self,
        error: BaseException,
        classification: Optional[Classification],
        operation: str,
        fallback_prefix: str,
    ) -> OperationError:
        """Build the exception raised for a failed browse or query operation."""
        message = format_error(classification, error, fallback_prefix)
        kind = classification.kind if classification else ErrorKind.UNKNOWN
        context = {"backend": self.backend.value, "operation": operation}
        if kind is ErrorKind.PERMISSION_DENIED:
            return PermissionDeniedError(message, context=context, cause=error)
        return QueryError(
            message,
            kind=kind,
            code=ErrorCodes.QUERY_EXECUTION_FAILED if classification is None else None,
            context=context,
            cause=error,
        )

    # Backend hooks

    @abstractmethod
    async def _open_session(self, profile: ConnectionProfile) -> ActiveSession:
        """Dial, authenticate and verify liveness.

        Must release anything it opened before raising. Raises
        ``DatabaseConnectionError`` for classified failures.
        """

    @abstractmethod
    async def _ping(self, handle: Any) -> bool:
        """One liveness round-trip on ``handle``."""

    @abstractmethod
    async def _close_handle(self, handle: Any) -> None:
        """Close ``handle``."""

    # Operations

    @abstractmethod
    async def list_databases(self) -> List[str]:
        """Names of the databases visible to the session."""

    @abstractmethod
    async def list_tables(self, database: str) -> List[str]:
        """Names of the tables or collections in ``database``."""

    @abstractmethod
    async def execute_query(self, query: str) -> QueryRows:
        """Run a read query and return plain rows."""

    @abstractmethod
    async def execute_update(self, query: str) -> int:
        """Run a write and return the number of affected rows or documents."""

    @abstractmethod
    async def describe_table(self, name: str) -> TableStructure:
        """Column or field name to type descriptor."""
