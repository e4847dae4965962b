"""Session orchestrator owning the single active database service.

``DatabaseSession`` is the boundary a UI talks to. It creates the service
for a profile, funnels every operation through one lock so operations on the
active session never overlap, and republishes a ``SessionState`` snapshot to
subscribers after each change. Its operations never raise: failures end up
in ``SessionState.last_error``.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple

from .config.models import ConnectionProfile, QueryCoreSettings
from .database.base import DatabaseService
from .database.factory import DatabaseServiceFactory
from .database.models import RowMap
from .database.tracker import ConnectionTracker, get_default_tracker
from .logging import get_logger

SessionListener = Callable[["SessionState"], None]


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _describe(error: BaseException) -> str:
    message = getattr(error, "message", None)
    return message if isinstance(message, str) and message else str(error) or type(error).__name__


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the session published to subscribers."""

    profile: Optional[ConnectionProfile] = None
    connected: bool = False
    databases: Tuple[str, ...] = ()
    current_database: Optional[str] = None
    tables: Tuple[str, ...] = ()
    query_results: Tuple[RowMap, ...] = ()
    table_structure: Mapping[str, str] = field(default_factory=dict)
    last_error: Optional[str] = None
    last_update_count: Optional[int] = None
    server_version: Optional[str] = None
    updated_at: datetime = field(default_factory=_now)


class DatabaseSession:
    """Owns the active service and serializes operations against it.

    Example:
        >>> session = DatabaseSession()
        >>> unsubscribe = session.subscribe(render)
        >>> await session.connect(profile)
        >>> await session.load_tables("shop")
        >>> await session.execute_query("SELECT * FROM orders LIMIT 100")
    """

    def __init__(
        self,
        settings: Optional[QueryCoreSettings] = None,
        *,
        tracker: Optional[ConnectionTracker] = None,
        factory: Optional[DatabaseServiceFactory] = None,
    ) -> None:
        self._settings = settings or QueryCoreSettings()
        self.tracker = tracker or get_default_tracker(self._settings.tracker)
        self._factory = factory or DatabaseServiceFactory()
        self.logger = get_logger("querycore.session")
        self._lock = asyncio.Lock()
        self._service: Optional[DatabaseService] = None
        self._state = SessionState()
        self._listeners: Set[SessionListener] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def service(self) -> Optional[DatabaseService]:
        return self._service

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to state updates; returns an unsubscribe handle.

        The listener is called immediately with the current state.
        """
        self._listeners.add(listener)
        self._call(listener, self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def unsubscribe(self, listener: SessionListener) -> None:
        self._listeners.discard(listener)

    def _call(self, listener: SessionListener, state: SessionState) -> None:
        try:
            listener(state)
        except Exception:
            self.logger.exception("Session listener failed", listener=repr(listener))

    def _publish(self, state: SessionState) -> SessionState:
        self._state = state
        for listener in tuple(self._listeners):
            self._call(listener, state)
        return state

    def _update(self, **changes: Any) -> SessionState:
        return self._publish(replace(self._state, updated_at=_now(), **changes))

    # Lifecycle

    async def connect(self, profile: ConnectionProfile) -> SessionState:
        """Replace the active service with a new one connected to ``profile``.

        On success the database list is loaded straight away.
        """
        async with self._lock:
            await self._release()
            try:
                service = self._factory.create(
                    profile, timeouts=self._settings.timeouts, tracker=self.tracker
                )
                await service.connect(profile)
            except Exception as e:
                self.logger.warning("Connection failed", profile=profile.name, error=_describe(e))
                return self._publish(
                    SessionState(profile=profile, connected=False, last_error=f"Connection failed: {_describe(e)}")
                )

            self._service = service
            self._publish(
                SessionState(
                    profile=profile,
                    connected=True,
                    current_database=profile.database or None,
                    server_version=service.session.server_version if service.session else None,
                )
            )
            return await self._load_databases()

    async def disconnect(self) -> SessionState:
        async with self._lock:
            error = await self._release()
            return self._publish(SessionState(last_error=error))

    async def close(self) -> None:
        """Disconnect and drop every subscriber."""
        await self.disconnect()
        self._listeners.clear()

    async def _release(self) -> Optional[str]:
        service, self._service = self._service, None
        if service is None:
            return None
        try:
            await service.disconnect()
        except Exception as e:
            self.logger.warning("Disconnect failed", error=_describe(e))
            return f"Disconnect failed: {_describe(e)}"
        return None

    # Browsing and queries

    async def load_databases(self) -> SessionState:
        async with self._lock:
            return await self._load_databases()

    async def _load_databases(self) -> SessionState:
        if self._service is None:
            return self._update(last_error="Cannot load databases: Not connected")
        try:
            databases = await self._service.list_databases()
        except Exception as e:
            return self._update(databases=(), last_error=f"Failed to load databases: {_describe(e)}")
        if not databases:
            return self._update(databases=(), last_error="No databases found or access denied")
        self.logger.debug("Databases loaded", count=len(databases))
        return self._update(databases=tuple(databases), last_error=None)

    async def load_tables(self, database: str) -> SessionState:
        async with self._lock:
            if self._service is None:
                return self._update(last_error="Cannot load tables: Not connected")
            try:
                tables = await self._service.list_tables(database)
            except Exception as e:
                return self._update(tables=(), last_error=f"Failed to load tables: {_describe(e)}")
            return self._update(tables=tuple(tables), current_database=database, last_error=None)

    async def execute_query(self, query: str) -> SessionState:
        async with self._lock:
            if self._service is None:
                return self._update(last_error="Query execution failed: Not connected")
            try:
                rows = await self._service.execute_query(query)
            except Exception as e:
                return self._update(query_results=(), last_error=f"Query execution failed: {_describe(e)}")
            return self._update(query_results=tuple(rows), last_error=None)

    async def execute_update(self, query: str) -> SessionState:
        async with self._lock:
            if self._service is None:
                return self._update(last_update_count=None, last_error="Update failed: Not connected")
            try:
                count = await self._service.execute_update(query)
            except Exception as e:
                return self._update(last_update_count=None, last_error=f"Update failed: {_describe(e)}")
            self.logger.info("Update applied", rows_affected=count)
            return self._update(last_update_count=count, last_error=None)

    async def load_table_structure(self, name: str) -> SessionState:
        async with self._lock:
            if self._service is None:
                return self._update(last_error="Failed to load table structure: Not connected")
            try:
                structure: Dict[str, str] = await self._service.describe_table(name)
            except Exception as e:
                return self._update(table_structure={}, last_error=f"Failed to load table structure: {_describe(e)}")
            return self._update(table_structure=dict(structure), last_error=None)

    async def is_connected(self) -> bool:
        async with self._lock:
            return self._service is not None and await self._service.is_connected()
