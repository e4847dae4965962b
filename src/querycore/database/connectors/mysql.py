"""MySQL and MariaDB database services.

Both products speak the MySQL wire protocol and share one implementation
over PyMySQL. PyMySQL is a blocking driver; every call that touches the
socket runs on a worker thread via ``asyncio.to_thread`` and calls on one
connection are serialized by a per-service lock.
"""

import asyncio
import importlib
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ...config.models import BackendType, ConnectionProfile
from ...core.exceptions import DatabaseConnectionError, ErrorKind
from ..base import DatabaseService
from ..classifier import classify_sql_error, classify_sql_operation_error, format_error
from ..models import ActiveSession, QueryRows, TableStructure
from ..values import plain_row

DRIVER_MODULE = "pymysql"

_LIST_TABLES_SQL = (
    "SELECT TABLE_NAME AS table_name FROM information_schema.TABLES "
    "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE' "
    "ORDER BY TABLE_NAME"
)


def load_driver(label: str = "MySQL") -> Any:
    """Import the driver module by name.

    Raises:
        DatabaseConnectionError: DRIVER_UNAVAILABLE when it cannot be imported
    """
    try:
        driver = importlib.import_module(DRIVER_MODULE)
        importlib.import_module(f"{DRIVER_MODULE}.cursors")
    except ImportError as e:
        raise DatabaseConnectionError(
            f"{label} driver '{DRIVER_MODULE}' is not available. Install it with: pip install PyMySQL",
            kind=ErrorKind.DRIVER_UNAVAILABLE,
            context={"driver": DRIVER_MODULE},
            cause=e,
        ) from e
    return driver


def quote_identifier(name: str) -> str:
    """Backtick-quote a possibly schema-qualified identifier.

    >>> quote_identifier("shop.order`s")
    '`shop`.`order``s`'
    """
    return ".".join("`" + part.replace("`", "``") + "`" for part in name.split("."))


def _decode(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _fetch(conn: Any, sql: str, params: Optional[Sequence[Any]] = None) -> List[dict]:
    with conn.cursor() as cursor:
        cursor.execute(sql, params)
        if cursor.description is None:
            return []
        return list(cursor.fetchall())


def _write(conn: Any, sql: str) -> int:
    with conn.cursor() as cursor:
        cursor.execute(sql)
        return cursor.rowcount


def _handshake(conn: Any) -> Tuple[str, str]:
    """Liveness round-trip then server version lookup."""
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
        cursor.execute("SELECT VERSION() AS version")
        row = cursor.fetchone()
    version = _decode(row["version"]) if row else "unknown"
    product = "MariaDB" if "mariadb" in version.lower() else "MySQL"
    return product, version


class MySQLService(DatabaseService):
    """MySQL database service.

    Queries are plain SQL text. Result rows come back as column name to
    plain value mappings.
    """

    component_name = "MySQLService"
    backend = BackendType.MYSQL
    driver_name = DRIVER_MODULE

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._io_lock = asyncio.Lock()

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        async with self._io_lock:
            return await asyncio.to_thread(func, *args)

    def _connection_error(self, error: BaseException, profile: ConnectionProfile) -> DatabaseConnectionError:
        classification = classify_sql_error(error, profile.port)
        return DatabaseConnectionError(
            format_error(classification, error, f"Failed to connect to {self.backend_label}"),
            kind=classification.kind if classification else ErrorKind.UNKNOWN,
            context={"host": profile.host, "port": profile.port, "database": profile.database},
            cause=error,
        )

    async def _open_session(self, profile: ConnectionProfile) -> ActiveSession:
        driver = load_driver(self.backend_label)
        try:
            conn = await asyncio.to_thread(
                driver.connect,
                host=profile.host,
                port=profile.port,
                user=profile.username,
                password=profile.password_value,
                database=profile.database or None,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.socket_timeout,
                write_timeout=self.config.socket_timeout,
                charset="utf8mb4",
                autocommit=True,
                cursorclass=driver.cursors.DictCursor,
            )
        except Exception as e:
            raise self._connection_error(e, profile) from e

        try:
            product, version = await asyncio.to_thread(_handshake, conn)
        except Exception as e:
            await self._close_quietly(conn)
            raise self._connection_error(e, profile) from e

        return ActiveSession(
            handle=conn,
            profile=profile,
            server_version=f"{product} {version}",
            extra={"product": product},
        )

    async def _close_quietly(self, conn: Any) -> None:
        try:
            await asyncio.to_thread(conn.close)
        except Exception as e:
            self.logger.debug("Ignoring error while closing failed connection", error=str(e))

    async def _ping(self, handle: Any) -> bool:
        rows = await self._run(_fetch, handle, "SELECT 1 AS alive")
        return bool(rows)

    async def _close_handle(self, handle: Any) -> None:
        await self._run(handle.close)

    async def list_databases(self) -> List[str]:
        session = self._require_session()
        try:
            rows = await self._run(_fetch, session.handle, "SHOW DATABASES")
        except Exception as e:
            classification = classify_sql_operation_error(e, "list databases")
            if (
                classification is not None
                and classification.kind is ErrorKind.PERMISSION_DENIED
                and session.profile.database
            ):
                self.logger.warning(
                    "Cannot list databases, falling back to configured database",
                    database=session.profile.database,
                )
                return [session.profile.database]
            raise self._operation_error(e, classification, "list_databases", "Failed to list databases") from e
        return [_decode(row["Database"]) for row in rows]

    async def list_tables(self, database: str) -> List[str]:
        """List base tables of ``database`` and make it the connection's default schema.

        Later unqualified statements run against the database browsed last.
        """
        session = self._require_session()
        try:
            rows = await self._run(_fetch, session.handle, _LIST_TABLES_SQL, (database,))
        except Exception as e:
            raise self._operation_error(
                e, classify_sql_operation_error(e, "list tables"), "list_tables", "Failed to list tables"
            ) from e
        try:
            await self._run(session.handle.select_db, database)
        except Exception as e:
            raise self._operation_error(
                e, classify_sql_operation_error(e, "use this database"), "list_tables", "Failed to select database"
            ) from e
        return [_decode(row["table_name"]) for row in rows]

    async def execute_query(self, query: str) -> QueryRows:
        """Run a statement and return its result set as plain rows.

        DECIMAL columns come back as strings (``"9.90"``) so no precision is
        lost; convert with ``decimal.Decimal`` where a numeric value is needed.
        """
        session = self._require_session()
        with self.perf_logger.measure("execute_query", backend=self.backend.value):
            try:
                rows = await self._run(_fetch, session.handle, query)
            except Exception as e:
                raise self._operation_error(
                    e, classify_sql_operation_error(e, "run this query"), "execute_query", "Query execution failed"
                ) from e
        self.logger.debug("Query returned rows", row_count=len(rows))
        return [plain_row(row) for row in rows]

    async def execute_update(self, query: str) -> int:
        session = self._require_session()
        with self.perf_logger.measure("execute_update", backend=self.backend.value):
            try:
                affected = await self._run(_write, session.handle, query)
            except Exception as e:
                raise self._operation_error(
                    e, classify_sql_operation_error(e, "run this update"), "execute_update", "Update execution failed"
                ) from e
        return max(int(affected), 0)

    async def describe_table(self, name: str) -> TableStructure:
        session = self._require_session()
        try:
            rows = await self._run(_fetch, session.handle, f"DESCRIBE {quote_identifier(name)}")
        except Exception as e:
            raise self._operation_error(
                e, classify_sql_operation_error(e, "describe this table"), "describe_table", "Failed to describe table"
            ) from e
        return {_decode(row["Field"]): _decode(row["Type"]) for row in rows}


class MariaDBService(MySQLService):
    """MariaDB database service; same driver, its own backend label."""

    component_name = "MariaDBService"
    backend = BackendType.MARIADB
