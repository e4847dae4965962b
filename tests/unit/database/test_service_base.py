"""Tests for the shared DatabaseService lifecycle."""

import asyncio
from typing import Any, List
from unittest.mock import AsyncMock

import pytest

from querycore.config.models import BackendType
from querycore.core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    ErrorCodes,
    ErrorKind,
    NotConnectedError,
    PermissionDeniedError,
    QueryError,
)
from querycore.database.base import DatabaseService
from querycore.database.classifier import Classification
from querycore.database.models import ActiveSession
from querycore.database.tracker import AttemptStatus


class FakeService(DatabaseService):
    """In-memory backend driven by the ``open_result`` attribute."""

    backend = BackendType.MYSQL
    driver_name = "fake"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.open_result: Any = "handle"
        self.ping = AsyncMock(return_value=True)
        self.close = AsyncMock()

    async def _open_session(self, profile):
        if isinstance(self.open_result, BaseException):
            raise self.open_result
        return ActiveSession(handle=self.open_result, profile=profile, server_version="Fake 1.0")

    async def _ping(self, handle):
        return await self.ping(handle)

    async def _close_handle(self, handle):
        await self.close(handle)

    async def list_databases(self) -> List[str]:
        self._require_session()
        return []

    async def list_tables(self, database):
        return []

    async def execute_query(self, query):
        return []

    async def execute_update(self, query):
        return 0

    async def describe_table(self, name):
        return {}


@pytest.fixture
def service(tracker):
    return FakeService(tracker=tracker)


class TestConnect:
    @pytest.mark.asyncio
    async def test_success_records_outcome(self, service, tracker, mysql_profile):
        await service.connect(mysql_profile)

        assert service.session.tracking_id == "MySQL-1"
        assert service.profile is mysql_profile
        assert tracker.get_status("MySQL-1") is AttemptStatus.SUCCESS
        assert tracker.detailed_history()[0]["details"] == "Fake 1.0"

    @pytest.mark.asyncio
    async def test_reconnect_closes_previous_session(self, service, tracker, mysql_profile):
        await service.connect(mysql_profile)
        await service.connect(mysql_profile)

        service.close.assert_awaited_once_with("handle")
        assert tracker.get_status("MySQL-1") is AttemptStatus.DISCONNECTED
        assert tracker.get_status("MySQL-2") is AttemptStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_family_mismatch(self, service, tracker, mongo_profile):
        with pytest.raises(ConfigurationError) as exc_info:
            await service.connect(mongo_profile)

        assert exc_info.value.code == ErrorCodes.BACKEND_NOT_SUPPORTED
        assert tracker.stats()["total_attempts"] == 0

    @pytest.mark.asyncio
    async def test_wrong_port_never_dials(self, service, tracker, mysql_profile):
        profile = mysql_profile.model_copy(update={"port": 27017})
        service.open_result = AssertionError("must not dial")

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(profile)

        assert exc_info.value.kind is ErrorKind.WRONG_PORT
        history = tracker.detailed_history()
        assert len(history) == 1
        assert history[0]["status"] == "FAILED"
        assert history[0]["error_type"] == "WRONG_PORT"

    @pytest.mark.asyncio
    async def test_classified_failure_propagates(self, service, tracker, mysql_profile):
        service.open_result = DatabaseConnectionError("Authentication failed", kind=ErrorKind.AUTH_FAILED)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile)

        assert exc_info.value.kind is ErrorKind.AUTH_FAILED
        assert tracker.detailed_history()[0]["error_type"] == "AUTH_FAILED"
        assert service.session is None

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_wrapped(self, service, tracker, mysql_profile):
        service.open_result = RuntimeError("kaboom")

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await service.connect(mysql_profile)

        assert exc_info.value.message == "Unexpected error connecting to MySQL: kaboom"
        assert exc_info.value.kind is ErrorKind.UNKNOWN
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert tracker.stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_cancellation_records_failure(self, service, tracker, mysql_profile):
        service.open_result = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await service.connect(mysql_profile)

        assert tracker.detailed_history()[0]["details"] == "Connection attempt cancelled"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, service, tracker, mysql_profile):
        await service.connect(mysql_profile)

        await service.disconnect()
        await service.disconnect()

        service.close.assert_awaited_once()
        assert tracker.get_status("MySQL-1") is AttemptStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_error_is_swallowed(self, service, mysql_profile):
        await service.connect(mysql_profile)
        service.close.side_effect = OSError("broken pipe")

        await service.disconnect()

        assert service.session is None

    @pytest.mark.asyncio
    async def test_is_connected(self, service, mysql_profile):
        assert await service.is_connected() is False

        await service.connect(mysql_profile)
        assert await service.is_connected() is True

        service.ping.side_effect = OSError("gone")
        assert await service.is_connected() is False

    @pytest.mark.asyncio
    async def test_async_context_manager(self, service, mysql_profile):
        async with service as svc:
            await svc.connect(mysql_profile)

        assert service.session is None

    @pytest.mark.asyncio
    async def test_operations_require_session(self, service):
        with pytest.raises(NotConnectedError) as exc_info:
            await service.list_databases()

        assert exc_info.value.code == ErrorCodes.NOT_CONNECTED

    @pytest.mark.asyncio
    async def test_connection_info(self, service, mysql_profile):
        assert service.get_connection_info()["connected"] is False

        await service.connect(mysql_profile)
        info = service.get_health_status()

        assert info["connected"] is True
        assert info["driver"] == "fake"
        assert info["server_version"] == "Fake 1.0"
        assert info["component"] == "DatabaseService"


class TestOperationError:
    def test_unclassified(self, service):
        error = service._operation_error(RuntimeError("boom"), None, "query", "Query failed")

        assert isinstance(error, QueryError)
        assert error.code == ErrorCodes.QUERY_EXECUTION_FAILED
        assert error.message == "Query failed: boom"

    def test_permission_denied(self, service):
        classification = Classification(ErrorKind.PERMISSION_DENIED, "Permission denied")

        error = service._operation_error(RuntimeError("no"), classification, "query", "x")

        assert isinstance(error, PermissionDeniedError)
        assert error.kind is ErrorKind.PERMISSION_DENIED
