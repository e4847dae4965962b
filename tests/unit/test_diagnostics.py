"""Tests for reachability probes and the diagnostics report."""

import asyncio
import socket
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from querycore.core.exceptions import ErrorKind
from querycore.diagnostics import (
    REPORT_HEADER,
    ReachabilityResult,
    build_diagnostics_report,
    probe_reachability,
)


def _writer():
    writer = MagicMock(name="writer")
    writer.wait_closed = AsyncMock()
    return writer


class TestProbeReachability:
    @pytest.mark.asyncio
    async def test_reachable(self):
        writer = _writer()

        with patch("asyncio.open_connection", AsyncMock(return_value=(MagicMock(), writer))):
            result = await probe_reachability("127.0.0.1", 3306)

        assert result.reachable is True
        assert result.resolved_address == "127.0.0.1"
        assert result.latency_ms >= 0
        writer.close.assert_called_once()
        assert "reachable (" in result.render()

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        refused = AsyncMock(side_effect=ConnectionRefusedError(111, "Connection refused"))

        with patch("asyncio.open_connection", refused):
            result = await probe_reachability("127.0.0.1", 3306)

        assert result.reachable is False
        assert result.resolved_address == "127.0.0.1"
        assert "Connection refused" in result.error
        assert "not reachable" in result.render()

    @pytest.mark.asyncio
    async def test_timeout(self):
        with patch("asyncio.open_connection", AsyncMock(side_effect=asyncio.TimeoutError())):
            result = await probe_reachability("127.0.0.1", 27017, timeout=0.1)

        assert result.reachable is False
        assert result.error == "TimeoutError"

    @pytest.mark.asyncio
    async def test_resolution_failure(self):
        loop = asyncio.get_running_loop()
        failure = AsyncMock(side_effect=socket.gaierror(-2, "Name or service not known"))

        with patch.object(loop, "getaddrinfo", failure):
            result = await probe_reachability("nowhere.invalid", 3306)

        assert result.resolved_address is None
        assert result.reachable is False
        assert result.render() == (
            "- Testing connectivity to nowhere.invalid:3306: Failed - [Errno -2] Name or service not known"
        )


class TestReport:
    def test_report_without_probes(self, tracker, mysql_profile):
        tracking_id = tracker.start_attempt(mysql_profile, "MySQL")
        tracker.record_failure(tracking_id, "refused", ErrorKind.TIMEOUT)

        report = build_diagnostics_report(tracker)

        lines = report.splitlines()
        assert lines[0] == REPORT_HEADER
        assert "Platform Information:" in lines
        assert "Connection Statistics:" in lines
        assert "- Failed connections: 1" in lines
        assert lines[-2:] == ["Network Tests:", "- No probes run"]

    def test_report_with_probes(self, tracker):
        probes = [
            ReachabilityResult("db.example", 3306, "10.0.0.5", reachable=True, latency_ms=12.0),
            ReachabilityResult("mongo.example", 27017, error="Name or service not known"),
        ]

        report = build_diagnostics_report(tracker, probes)

        assert "- Testing connectivity to db.example:3306: Resolved to 10.0.0.5, reachable" in report
        assert "- Testing connectivity to mongo.example:27017: Failed - Name or service not known" in report
        assert "- No probes run" not in report
