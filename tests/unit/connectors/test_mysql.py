"""Tests for the MySQL and MariaDB services with a mocked PyMySQL driver."""

import decimal
from unittest.mock import MagicMock, patch

import pymysql
import pymysql.cursors
import pytest
import pytest_asyncio

from querycore.config.models import BackendType
from querycore.core.exceptions import (
    DatabaseConnectionError,
    ErrorKind,
    NotConnectedError,
    PermissionDeniedError,
    QueryError,
)
from querycore.database.connectors import mysql as mysql_module
from querycore.database.connectors.mysql import MariaDBService, MySQLService, quote_identifier
from querycore.database.tracker import AttemptStatus


def make_connection(version: str = "8.0.36"):
    """Mock PyMySQL connection whose cursor answers the connect handshake."""
    conn = MagicMock(name="connection")
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.fetchone.side_effect = [{"1": 1}, {"version": version}]
    cursor.rowcount = 0
    return conn, cursor


@pytest.fixture
def connection():
    conn, cursor = make_connection()
    with patch("pymysql.connect", return_value=conn) as connect:
        yield connect, conn, cursor


@pytest.fixture
def service(tracker):
    return MySQLService(tracker=tracker)


class TestConnect:
    """Connection establishment."""

    @pytest.mark.asyncio
    async def test_connect_passes_profile_and_timeouts(self, service, tracker, connection, mysql_profile):
        connect, conn, _ = connection

        await service.connect(mysql_profile)

        kwargs = connect.call_args.kwargs
        assert kwargs["host"] == "db.example"
        assert kwargs["port"] == 3306
        assert kwargs["user"] == "root"
        assert kwargs["password"] == "x"
        assert kwargs["database"] == "shop"
        assert kwargs["connect_timeout"] == 20.0
        assert kwargs["read_timeout"] == 30.0
        assert kwargs["autocommit"] is True
        assert kwargs["cursorclass"] is pymysql.cursors.DictCursor
        assert service.session.handle is conn
        assert service.session.server_version == "MySQL 8.0.36"
        assert tracker.get_status("MySQL-1") is AttemptStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_empty_database_not_sent(self, service, connection, mysql_profile):
        connect, _, _ = connection

        await service.connect(mysql_profile.model_copy(update={"database": ""}))

        assert connect.call_args.kwargs["database"] is None

    @pytest.mark.asyncio
    async def test_wrong_port_never_dials(self, service, tracker, connection, mysql_profile):
        connect, _, _ = connection

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile.model_copy(update={"port": 27017}))

        assert exc_info.value.kind is ErrorKind.WRONG_PORT
        connect.assert_not_called()
        history = tracker.detailed_history()
        assert len(history) == 1
        assert history[0]["status"] == "FAILED"

    @pytest.mark.asyncio
    async def test_access_denied(self, service, tracker, connection, mysql_profile):
        connect, _, _ = connection
        connect.side_effect = pymysql.err.OperationalError(
            1045, "Access denied for user 'root'@'10.0.0.2' (using password: YES)"
        )

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile)

        assert exc_info.value.kind is ErrorKind.AUTH_FAILED
        assert exc_info.value.message.startswith("Authentication failed")
        assert tracker.detailed_history()[0]["error_type"] == "AUTH_FAILED"
        assert service.session is None

    @pytest.mark.asyncio
    async def test_unknown_database(self, service, connection, mysql_profile):
        connect, _, _ = connection
        connect.side_effect = pymysql.err.OperationalError(1049, "Unknown database 'shop'")

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile)

        assert "does not exist" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unclassified_failure_uses_prefix(self, service, connection, mysql_profile):
        connect, _, _ = connection
        connect.side_effect = pymysql.err.InternalError(1815, "Internal error")

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile)

        assert exc_info.value.message == "Failed to connect to MySQL: Internal error"
        assert exc_info.value.kind is ErrorKind.UNKNOWN

    @pytest.mark.asyncio
    async def test_handshake_failure_closes_connection(self, service, connection, mysql_profile):
        _, conn, cursor = connection
        cursor.execute.side_effect = pymysql.err.OperationalError(2013, "Lost connection to MySQL server")

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile)

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        conn.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_driver_unavailable(self, service, tracker, mysql_profile):
        with patch.object(mysql_module, "DRIVER_MODULE", "querycore_missing_driver"):
            with pytest.raises(DatabaseConnectionError) as exc_info:
                await service.connect(mysql_profile)

        assert exc_info.value.kind is ErrorKind.DRIVER_UNAVAILABLE
        assert "pip install PyMySQL" in exc_info.value.message
        assert tracker.detailed_history()[0]["error_type"] == "DRIVER_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_mariadb_label(self, tracker, mysql_profile):
        conn, _ = make_connection("10.11.6-MariaDB")
        service = MariaDBService(tracker=tracker)

        with patch("pymysql.connect", return_value=conn):
            await service.connect(mysql_profile.model_copy(update={"backend": BackendType.MARIADB}))

        assert service.session.tracking_id == "MariaDB-1"
        assert service.session.server_version == "MariaDB 10.11.6-MariaDB"


class TestOperations:
    """Browse and query operations on an open session."""

    @pytest_asyncio.fixture
    async def connected(self, service, connection, mysql_profile):
        await service.connect(mysql_profile)
        _, conn, cursor = connection
        cursor.execute.reset_mock()
        return service, conn, cursor

    @pytest.mark.asyncio
    async def test_shop_scenario(self, connected):
        service, _, cursor = connected

        cursor.fetchall.return_value = [{"table_name": "orders"}, {"table_name": "users"}]
        assert await service.list_tables("shop") == ["orders", "users"]
        assert cursor.execute.call_args.args[1] == ("shop",)

        cursor.fetchall.return_value = [
            {"id": 1, "total": decimal.Decimal("9.90")},
            {"id": 2, "total": decimal.Decimal("12.00")},
        ]
        rows = await service.execute_query("SELECT id, total FROM orders")

        assert rows == [{"id": 1, "total": "9.90"}, {"id": 2, "total": "12.00"}]

    @pytest.mark.asyncio
    async def test_list_tables_selects_database(self, connected):
        service, conn, cursor = connected
        cursor.fetchall.return_value = [{"table_name": "events"}]

        assert await service.list_tables("analytics") == ["events"]
        conn.select_db.assert_called_once_with("analytics")

        cursor.fetchall.return_value = [{"id": 7}]
        assert await service.execute_query("SELECT * FROM events") == [{"id": 7}]
        cursor.execute.assert_called_with("SELECT * FROM events", None)

    @pytest.mark.asyncio
    async def test_list_tables_select_denied(self, connected):
        service, conn, cursor = connected
        cursor.fetchall.return_value = [{"table_name": "events"}]
        conn.select_db.side_effect = pymysql.err.OperationalError(1044, "Access denied for user to database")

        with pytest.raises(PermissionDeniedError) as exc_info:
            await service.list_tables("analytics")

        assert exc_info.value.context["operation"] == "list_tables"

    @pytest.mark.asyncio
    async def test_list_tables_failure_skips_select(self, connected):
        service, conn, cursor = connected
        cursor.execute.side_effect = pymysql.err.OperationalError(1142, "SELECT command denied")

        with pytest.raises(PermissionDeniedError):
            await service.list_tables("analytics")

        conn.select_db.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_without_result_set(self, connected):
        service, _, cursor = connected
        cursor.description = None

        assert await service.execute_query("SET @a = 1") == []

    @pytest.mark.asyncio
    async def test_list_databases(self, connected):
        service, _, cursor = connected
        cursor.fetchall.return_value = [{"Database": "information_schema"}, {"Database": b"shop"}]

        assert await service.list_databases() == ["information_schema", "shop"]

    @pytest.mark.asyncio
    async def test_list_databases_falls_back_when_denied(self, connected):
        service, _, cursor = connected
        cursor.execute.side_effect = pymysql.err.OperationalError(1142, "SHOW DATABASES command denied")

        assert await service.list_databases() == ["shop"]

    @pytest.mark.asyncio
    async def test_syntax_error(self, connected):
        service, _, cursor = connected
        cursor.execute.side_effect = pymysql.err.ProgrammingError(1064, "You have an error in your SQL syntax")

        with pytest.raises(QueryError) as exc_info:
            await service.execute_query("SELEC 1")

        assert exc_info.value.message.startswith("SQL syntax error")
        assert isinstance(exc_info.value.cause, pymysql.err.ProgrammingError)

    @pytest.mark.asyncio
    async def test_execute_update(self, connected):
        service, _, cursor = connected
        cursor.rowcount = 3

        assert await service.execute_update("UPDATE orders SET total = 0") == 3

        cursor.rowcount = -1
        assert await service.execute_update("DO 1") == 0

    @pytest.mark.asyncio
    async def test_describe_table(self, connected):
        service, _, cursor = connected
        cursor.fetchall.return_value = [
            {"Field": "id", "Type": "int(11)"},
            {"Field": "name", "Type": b"varchar(50)"},
        ]

        structure = await service.describe_table("orders")

        assert structure == {"id": "int(11)", "name": "varchar(50)"}
        cursor.execute.assert_called_with("DESCRIBE `orders`", None)

    @pytest.mark.asyncio
    async def test_is_connected(self, connected):
        service, _, cursor = connected
        cursor.fetchall.return_value = [{"alive": 1}]

        assert await service.is_connected() is True

        cursor.execute.side_effect = pymysql.err.OperationalError(2006, "MySQL server has gone away")
        assert await service.is_connected() is False

    @pytest.mark.asyncio
    async def test_disconnect_twice(self, connected, tracker):
        service, conn, _ = connected

        await service.disconnect()
        await service.disconnect()

        conn.close.assert_called_once()
        assert tracker.get_status("MySQL-1") is AttemptStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_not_connected(self, service):
        with pytest.raises(NotConnectedError):
            await service.execute_query("SELECT 1")


class TestQuoteIdentifier:
    def test_simple(self):
        assert quote_identifier("orders") == "`orders`"

    def test_qualified_with_backtick(self):
        assert quote_identifier("shop.order`s") == "`shop`.`order``s`"
